"""LLM-backed field mapping for scanned web forms.

This module holds the MappingEngine boundary: a prompt that encodes the
mapping rules, a Google Gemini implementation, and the parser that turns
the model's loosely formatted answer into typed mapping results.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Mapping, Optional, Protocol

import google.generativeai as genai

from .config import ConfigurationError, Settings
from .models import (
    FailureKind,
    MappedField,
    MappingFailure,
    MappingRequest,
    MappingResult,
    MappingSuccess,
    MissingFieldEntry,
    ValueType,
)

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an AI assistant that maps form fields to dataset values. "
    "Always respond with valid JSON only."
)

MAPPING_PROMPT = """You are an AI Field-Mapping Engine tasked with filling web form fields from an organization dataset.

Input you will receive:

1. form_fields -> JSON extracted from the page, keyed by field id, with label, type, placeholder and options.
2. dataset -> JSON describing the organization profile, registration, projects, financials, documents, addresses and other information.

Output format: always produce exactly one valid JSON object:

{
"mappedFields": [
{
"fieldId": "<key from form_fields>",
"label": "<label from form_fields>",
"mappedValue": "<value or generated document text, or null>",
"valueType": "text" | "document",
"confidence": <number between 0 and 1>,
"reasoning": "<one sentence>",
"selector": "<CSS selector for the field>"
}
],
"missingFields": [
{
"label": "<label from form_fields>",
"reason": "<why no value could be mapped>"
}
]
}

Mapping rules:

1. Match by meaning, not by literal label text.
2. TEXT fields take the exact dataset value. Only when the field explicitly asks for a portion or a format of the data (for example only the state from a full address) return just what the field requires.
3. FILE UPLOAD fields (PDF, DOC, certificate, project summary, registration proof, ...):
   * Never return a file path.
   * If the dataset contains a matching document, reference it verbatim; otherwise write the document content as plain text using only information present in the dataset, and set valueType to "document".
   * Never fabricate regulated or certified documents (government-issued IDs, registration certificates, tax certificates, audited statements) that are not in the dataset. Map them to null.
4. Dates belong to separate categories: birth dates, registration/incorporation dates, project start/end dates, and certificate issue/expiry dates. A value from one category must never fill a field of another category.
   * Two numbers joined by "/" or "-" (for example 12/05 or 12-05) are a day and a month, never a year, unless the value is explicitly a full date.
   * Two numbers joined by a hyphen or en dash that are two-digit or four-digit years (for example 2019-20, 2019-2020, 2019–2020) are a year range, not a date, and may only fill year-range fields.
   * If the form needs a full date and only a partial date exists, mappedValue is null.
   * Return dates, phone numbers and other formatted values in the format the form requires.
5. Names belong to roles: organization/company name, authorized signatory or point-of-contact name, founder/director name, and applicant name. Never use a name from one role for a field of another role. If the right role-specific name is absent, mappedValue is null; do not substitute.
6. Do not reuse a dataset value verbatim for a materially different field (including choice and dropdown fields) once it has been used, when no further relevant data exists. Prefer null with a stated reason over a duplicate.
7. Tax and registration numbers (PAN, GST, CIN, ...), addresses and contact details must be copied exactly unless the field asks for a portion.
8. For project-related fields, use the dataset project most relevant to the field.
9. Every field without a defensible value gets mappedValue null AND an entry in missingFields.
10. Every mapped field carries a CSS selector: prefer #id, then [name="..."], then [aria-label="..."].

Important: never return anything outside this JSON structure."""


class MappingEngine(Protocol):
    """Stateless request/response boundary to a language model."""

    def evaluate(self, request: MappingRequest) -> MappingResult:
        ...


def build_prompt(request: MappingRequest) -> str:
    return (
        f"{MAPPING_PROMPT}\n\n"
        f"FORM FIELDS:\n{json.dumps(request.form_fields, indent=2, ensure_ascii=False)}\n\n"
        f"DATASET:\n{json.dumps(request.dataset, indent=2, ensure_ascii=False, default=str)}\n\n"
        "Please map the form fields to the dataset and return ONLY valid JSON with mappedFields and missingFields."
    )


def _extract_json_dict(candidate_text: str) -> dict[str, Any]:
    """Parse the substring between the first ``{`` and the last ``}``."""

    text = candidate_text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ValueError("No JSON object found in model output")
    payload = json.loads(text[start:end + 1])
    if not isinstance(payload, dict):
        raise ValueError("Model output is not a JSON object")
    return payload


def _coerce_confidence(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return min(max(value, 0.0), 1.0)


def _coerce_value(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, (dict, list)):
        return json.dumps(raw, ensure_ascii=False)
    text = str(raw)
    return text if text.strip() else None


def _coerce_mapped_field(item: Mapping[str, Any]) -> Optional[MappedField]:
    field_id = str(item.get("fieldId") or "").strip()
    if not field_id:
        return None
    try:
        value_type = ValueType(str(item.get("valueType") or "text").lower())
    except ValueError:
        value_type = ValueType.TEXT
    selector = str(item.get("selector") or "").strip() or None
    return MappedField(
        field_id=field_id,
        label=str(item.get("label") or ""),
        mapped_value=_coerce_value(item.get("mappedValue")),
        value_type=value_type,
        confidence=_coerce_confidence(item.get("confidence")),
        reasoning=str(item.get("reasoning") or ""),
        selector=selector,
    )


def parse_mapping_response(raw_text: str) -> MappingResult:
    """Convert raw model output into a MappingSuccess or a parse MappingFailure."""

    try:
        payload = _extract_json_dict(raw_text)
    except ValueError as exc:
        # json.JSONDecodeError is a ValueError subclass.
        logger.warning("[Gemini] Failed to parse mapping response: %s", exc)
        return MappingFailure(FailureKind.PARSE, f"Failed to parse AI response: {exc}", raw_response=raw_text)

    mapped: List[MappedField] = []
    for item in payload.get("mappedFields") or []:
        if isinstance(item, Mapping):
            coerced = _coerce_mapped_field(item)
            if coerced is not None:
                mapped.append(coerced)
    missing = [
        MissingFieldEntry(label=str(item.get("label") or ""), reason=str(item.get("reason") or ""))
        for item in payload.get("missingFields") or []
        if isinstance(item, Mapping)
    ]
    return MappingSuccess(mapped_fields=tuple(mapped), missing_fields=tuple(missing))


def configure_gemini(api_key: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    """Configure Google Gemini with an explicit key or the one from settings.

    Raises:
        ConfigurationError: If no API key is found.
    """
    key = api_key or (settings or Settings.from_env()).require_api_key()
    genai.configure(api_key=key)


def _normalise_model_name(raw_name: str) -> str:
    """Normalise user-provided model identifiers to the API format."""

    if not raw_name:
        return "models/gemini-2.5-flash"

    slug = raw_name.strip().lower().replace(" ", "-")
    if not slug.startswith("models/"):
        slug = f"models/{slug}"
    return slug


class GeminiMappingEngine:
    """MappingEngine backed by ``google.generativeai``."""

    def __init__(self, settings: Settings, model: Any = None):
        self._settings = settings
        self._model = model

    @property
    def model_name(self) -> str:
        return _normalise_model_name(self._settings.gemini_model)

    def _get_model(self) -> Any:
        if self._model is None:
            configure_gemini(settings=self._settings)
            self._model = genai.GenerativeModel(
                self.model_name,
                system_instruction=SYSTEM_INSTRUCTION,
                generation_config={
                    "temperature": self._settings.temperature,
                    "top_p": self._settings.top_p,
                    "top_k": self._settings.top_k,
                    "max_output_tokens": self._settings.max_output_tokens,
                },
            )
        return self._model

    def evaluate(self, request: MappingRequest) -> MappingResult:
        logger.info("[Gemini] Mapping %d fields with %s", len(request.form_fields), self.model_name)
        try:
            model = self._get_model()
        except ConfigurationError as exc:
            logger.error("[Gemini] %s", exc)
            return MappingFailure(FailureKind.CONFIGURATION, str(exc))
        try:
            response = model.generate_content(build_prompt(request))
        except Exception as exc:
            logger.exception("[Gemini] Mapping request failed: %s", exc)
            return MappingFailure(FailureKind.ENGINE, str(exc))

        candidates = getattr(response, "candidates", None) or []
        candidate = next((c for c in candidates if c.content.parts), None)
        if not candidate:
            logger.warning(
                "[Gemini] No candidate parts returned (finish_reason=%s)",
                getattr(candidates[0], "finish_reason", "unknown") if candidates else "none",
            )
            return MappingFailure(FailureKind.EMPTY, "No content in AI response")

        raw_text = "".join(part.text for part in candidate.content.parts if getattr(part, "text", ""))
        if not raw_text:
            return MappingFailure(FailureKind.EMPTY, "No content in AI response")

        logger.debug("[Gemini] Raw mapping response (first 500 chars): %s", raw_text[:500])
        result = parse_mapping_response(raw_text)
        if isinstance(result, MappingSuccess):
            logger.info(
                "[Gemini] Parsed %d mapped and %d missing fields",
                len(result.mapped_fields),
                len(result.missing_fields),
            )
        return result


__all__ = [
    "GeminiMappingEngine",
    "MAPPING_PROMPT",
    "MappingEngine",
    "build_prompt",
    "configure_gemini",
    "parse_mapping_response",
]
