"""Build the ordered FormSchema field mapping from normalized fields."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .models import FieldDescriptor, FormSchema, NormalizedField
from .normalizer import UNKNOWN_PREFIX
from .utils import isoformat, utc_now

logger = logging.getLogger(__name__)

EXCLUDED_TYPES = frozenset({"hidden", "button", "submit"})


def is_unresolved_identity(final_name: str) -> bool:
    return not final_name or final_name == "undefined" or final_name.startswith(UNKNOWN_PREFIX)


class SchemaBuilder:
    """Filter normalized fields and key them by ``finalName`` in discovery order."""

    def build(self, fields: Iterable[NormalizedField]) -> Dict[str, FieldDescriptor]:
        output: Dict[str, FieldDescriptor] = {}
        skipped = 0
        for field in fields:
            if is_unresolved_identity(field.final_name) or field.type in EXCLUDED_TYPES:
                skipped += 1
                continue
            if field.final_name in output:
                # Last writer wins; the earlier field is dropped.
                logger.warning("[Schema] Duplicate field identity '%s'; keeping the later field", field.final_name)
            output[field.final_name] = FieldDescriptor(
                label=field.label or field.placeholder or "",
                type=field.type,
                placeholder=field.placeholder,
                options=field.options,
                id=field.element_id,
                name=field.element_name,
            )
        logger.info("[Schema] Converted %d fields, %d skipped", len(output), skipped)
        return output

    def build_schema(
        self,
        url: str,
        fields: Iterable[NormalizedField],
        *,
        buttons: Optional[List[Dict[str, Any]]] = None,
        step_indicators: Optional[List[Dict[str, Any]]] = None,
        scanned_at: Optional[str] = None,
    ) -> FormSchema:
        return FormSchema(
            url=url,
            scanned_at=scanned_at or isoformat(utc_now()),
            fields=self.build(fields),
            buttons=list(buttons or []),
            step_indicators=list(step_indicators or []),
        )


__all__ = ["EXCLUDED_TYPES", "SchemaBuilder", "is_unresolved_identity"]
