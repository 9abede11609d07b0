"""Data models for AIAutofill."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class LabelSource(str, Enum):
    """Where in the DOM a raw label candidate was found."""

    EXPLICIT = "explicit"
    HEADING = "heading"
    GROUPED = "grouped"
    ENCLOSING = "enclosing"
    PRECEDING = "preceding"
    NEARBY = "nearby"


class ValueType(str, Enum):
    """Kind of value the model produced for a field."""

    TEXT = "text"
    DOCUMENT = "document"


class CommandAction(str, Enum):
    """Action an executor performs for an autofill command."""

    FILL = "fill"
    DOCUMENT = "document"


class FailureKind(str, Enum):
    """Reason a mapping call did not produce a result."""

    PARSE = "parse"
    ENGINE = "engine"
    CONFIGURATION = "configuration"
    EMPTY = "empty"


@dataclass(frozen=True)
class RawChoice:
    """One member of a radio/checkbox group as seen in the DOM."""

    explicit_label: str = ""
    enclosing_label: str = ""
    adjacent_label: str = ""


@dataclass(frozen=True)
class RawFieldDescriptor:
    """An input, select or textarea exactly as extracted from the page."""

    tag: str
    type: str = ""
    id: str = ""
    name: str = ""
    placeholder: str = ""
    labels: Mapping[LabelSource, str] = field(default_factory=dict)
    options: Tuple[str, ...] = ()
    group: Tuple[RawChoice, ...] = ()
    grouped_choices: Tuple[str, ...] = ()

    def label_from(self, source: LabelSource) -> str:
        return (self.labels.get(source) or "").strip()


@dataclass(frozen=True)
class NormalizedField:
    """A form control with a resolved label and a stable identity."""

    final_name: str
    label: str
    type: str
    placeholder: str = ""
    options: Tuple[str, ...] = ()
    tag: str = ""
    element_id: str = ""
    element_name: str = ""


@dataclass(frozen=True)
class FieldDescriptor:
    """Schema entry for one field.

    ``to_dict`` is the wire entry shared with the model and the HTTP API;
    the element's ``id`` and ``name`` travel separately in ``element_refs``.
    """

    label: str
    type: str
    placeholder: str = ""
    options: Tuple[str, ...] = ()
    id: str = ""
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label, "type": self.type}
        if self.placeholder:
            data["placeholder"] = self.placeholder
        if self.options:
            data["options"] = list(self.options)
        return data

    def element_refs(self) -> Dict[str, str]:
        refs: Dict[str, str] = {}
        if self.id:
            refs["id"] = self.id
        if self.name:
            refs["name"] = self.name
        return refs

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], refs: Optional[Mapping[str, Any]] = None) -> "FieldDescriptor":
        refs = refs or {}
        return cls(
            label=str(data.get("label") or ""),
            type=str(data.get("type") or ""),
            placeholder=str(data.get("placeholder") or ""),
            options=tuple(str(option) for option in data.get("options") or ()),
            id=str(refs.get("id") or ""),
            name=str(refs.get("name") or ""),
        )


@dataclass(frozen=True)
class FormSchema:
    """Ordered, filtered field mapping for one scanned page."""

    url: str
    scanned_at: str
    fields: Dict[str, FieldDescriptor] = field(default_factory=dict)
    buttons: List[Dict[str, Any]] = field(default_factory=list)
    step_indicators: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def fields_dict(self) -> Dict[str, Dict[str, Any]]:
        return {key: descriptor.to_dict() for key, descriptor in self.fields.items()}

    def element_refs(self) -> Dict[str, Dict[str, str]]:
        # Selector hints for command synthesis, kept out of the field entries.
        refs = {}
        for key, descriptor in self.fields.items():
            element = descriptor.element_refs()
            if element:
                refs[key] = element
        return refs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scannedAt": self.scanned_at,
            "url": self.url,
            "fieldCount": self.field_count,
            "buttonCount": len(self.buttons),
            "fields": self.fields_dict(),
            "elements": self.element_refs(),
            "buttons": list(self.buttons),
            "stepIndicators": list(self.step_indicators),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormSchema":
        raw_fields = data.get("fields") or {}
        raw_refs = data.get("elements") or {}
        return cls(
            url=str(data.get("url") or ""),
            scanned_at=str(data.get("scannedAt") or ""),
            fields={key: FieldDescriptor.from_dict(value, raw_refs.get(key)) for key, value in raw_fields.items()},
            buttons=list(data.get("buttons") or []),
            step_indicators=list(data.get("stepIndicators") or []),
        )


@dataclass(frozen=True)
class MappingRequest:
    """Payload for a single MappingEngine call."""

    form_fields: Dict[str, Dict[str, Any]]
    dataset: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"form_fields": self.form_fields, "dataset": self.dataset}


@dataclass(frozen=True)
class MappedField:
    """One field/value pair proposed by the model."""

    field_id: str
    label: str = ""
    mapped_value: Optional[str] = None
    value_type: ValueType = ValueType.TEXT
    confidence: float = 0.0
    reasoning: str = ""
    selector: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldId": self.field_id,
            "label": self.label,
            "mappedValue": self.mapped_value,
            "valueType": self.value_type.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "selector": self.selector,
        }


@dataclass(frozen=True)
class MissingFieldEntry:
    """A field the model could not find a defensible value for."""

    label: str
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "reason": self.reason}


@dataclass(frozen=True)
class MappingSuccess:
    mapped_fields: Tuple[MappedField, ...] = ()
    missing_fields: Tuple[MissingFieldEntry, ...] = ()


@dataclass(frozen=True)
class MappingFailure:
    kind: FailureKind
    message: str
    raw_response: Optional[str] = None


MappingResult = Union[MappingSuccess, MappingFailure]


@dataclass(frozen=True)
class AutofillCommand:
    """Selector-qualified instruction for an external UI executor."""

    field_id: str
    selector: str
    value: str
    type: ValueType
    field_type: str
    action: CommandAction
    label: str = ""
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldId": self.field_id,
            "selector": self.selector,
            "value": self.value,
            "type": self.type.value,
            "fieldType": self.field_type,
            "action": self.action.value,
            "label": self.label,
            "confidence": self.confidence,
        }


__all__ = [
    "AutofillCommand",
    "CommandAction",
    "FailureKind",
    "FieldDescriptor",
    "FormSchema",
    "LabelSource",
    "MappedField",
    "MappingFailure",
    "MappingRequest",
    "MappingResult",
    "MappingSuccess",
    "MissingFieldEntry",
    "NormalizedField",
    "RawChoice",
    "RawFieldDescriptor",
    "ValueType",
]
