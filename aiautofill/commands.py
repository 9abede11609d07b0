"""Turn mapped fields into selector-qualified autofill commands."""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional

from .models import AutofillCommand, CommandAction, FieldDescriptor, MappedField, ValueType

_CSS_IDENTIFIER = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def attribute_selector(attribute: str, value: str) -> str:
    return f'[{attribute}="{_quote(value)}"]'


def id_selector(element_id: str) -> str:
    if _CSS_IDENTIFIER.match(element_id):
        return f"#{element_id}"
    return attribute_selector("id", element_id)


def resolve_selector(mapped: MappedField, descriptor: Optional[FieldDescriptor]) -> str:
    """Model selector, then element id, name, label, then the field identity itself."""

    if mapped.selector and mapped.selector.strip():
        return mapped.selector.strip()
    if descriptor is not None:
        if descriptor.id:
            return id_selector(descriptor.id)
        if descriptor.name:
            return attribute_selector("name", descriptor.name)
        if descriptor.label:
            return attribute_selector("aria-label", descriptor.label)
    return attribute_selector("id", mapped.field_id)


class CommandSynthesizer:
    """Build AutofillCommands for every mapped field that has a value."""

    def synthesize(
        self,
        mapped_fields: Iterable[MappedField],
        schema_fields: Mapping[str, FieldDescriptor],
    ) -> List[AutofillCommand]:
        commands: List[AutofillCommand] = []
        for mapped in mapped_fields:
            if mapped.mapped_value is None:
                continue
            descriptor = schema_fields.get(mapped.field_id)
            is_document = mapped.value_type is ValueType.DOCUMENT
            commands.append(
                AutofillCommand(
                    field_id=mapped.field_id,
                    selector=resolve_selector(mapped, descriptor),
                    value=mapped.mapped_value,
                    type=mapped.value_type,
                    field_type=descriptor.type if descriptor else "",
                    action=CommandAction.DOCUMENT if is_document else CommandAction.FILL,
                    label=mapped.label or (descriptor.label if descriptor else ""),
                    confidence=mapped.confidence,
                )
            )
        return commands


__all__ = ["CommandSynthesizer", "attribute_selector", "id_selector", "resolve_selector"]
