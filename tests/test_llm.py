"""
Tests for aiautofill.llm

The Gemini model is replaced by a MagicMock; no network calls are made.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from aiautofill.config import Settings
from aiautofill.llm import MAPPING_PROMPT, GeminiMappingEngine, build_prompt, parse_mapping_response
from aiautofill.models import FailureKind, MappingFailure, MappingRequest, MappingSuccess, ValueType


# ============ Fixtures ============

@pytest.fixture
def request_payload():
    return MappingRequest(
        form_fields={"orgName": {"label": "Organization Name", "type": "text"}},
        dataset={"organization": {"name": "Acme Trust"}},
    )


def gemini_response(*texts):
    parts = [SimpleNamespace(text=text) for text in texts]
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts), finish_reason="STOP")])


VALID_RESPONSE = """```json
{
  "mappedFields": [
    {"fieldId": "orgName", "label": "Organization Name", "mappedValue": "Acme Trust",
     "valueType": "text", "confidence": 0.95, "reasoning": "Direct match", "selector": "#orgName"}
  ],
  "missingFields": [{"label": "PAN", "reason": "Not in dataset"}]
}
```"""


# ============ Parser Tests ============

class TestParseMappingResponse:
    """Tests for parse_mapping_response."""

    def test_fenced_json(self):
        """Should extract the object from a fenced code block."""
        result = parse_mapping_response(VALID_RESPONSE)

        assert isinstance(result, MappingSuccess)
        assert result.mapped_fields[0].field_id == "orgName"
        assert result.mapped_fields[0].mapped_value == "Acme Trust"
        assert result.mapped_fields[0].selector == "#orgName"
        assert result.missing_fields[0].label == "PAN"

    def test_no_object(self):
        """Should report a parse failure and keep the raw text."""
        result = parse_mapping_response("I could not find anything useful.")

        assert isinstance(result, MappingFailure)
        assert result.kind is FailureKind.PARSE
        assert result.message.startswith("Failed to parse AI response")
        assert result.raw_response == "I could not find anything useful."

    def test_invalid_json(self):
        """Should report a parse failure for malformed JSON between braces."""
        result = parse_mapping_response('{"mappedFields": [oops]}')

        assert isinstance(result, MappingFailure)
        assert result.kind is FailureKind.PARSE

    def test_non_object_payload(self):
        assert isinstance(parse_mapping_response("[1, 2]"), MappingFailure)

    def test_value_coercion(self):
        """Should normalise confidence, valueType and empty values."""
        result = parse_mapping_response(
            """{"mappedFields": [
                {"fieldId": "a", "mappedValue": "", "confidence": "1.7", "valueType": "TEXT"},
                {"fieldId": "b", "mappedValue": null, "confidence": "high", "valueType": "image"},
                {"fieldId": "c", "mappedValue": "Summary text", "valueType": "document", "confidence": -2},
                {"fieldId": "d", "mappedValue": {"line1": "12 Main St"}},
                {"label": "no id"},
                "junk"
            ]}"""
        )

        a, b, c, d = result.mapped_fields
        assert a.mapped_value is None and a.confidence == 1.0 and a.value_type is ValueType.TEXT
        assert b.mapped_value is None and b.confidence == 0.0 and b.value_type is ValueType.TEXT
        assert c.value_type is ValueType.DOCUMENT and c.confidence == 0.0
        assert d.mapped_value == '{"line1": "12 Main St"}'
        assert result.missing_fields == ()

    def test_build_prompt_includes_fields_and_dataset(self, request_payload):
        prompt = build_prompt(request_payload)

        assert "FORM FIELDS:" in prompt
        assert '"orgName"' in prompt
        assert "Acme Trust" in prompt

    @pytest.mark.parametrize(
        "rule",
        [
            "Match by meaning",
            "Never return a file path",
            "Never fabricate regulated or certified documents",
            "A value from one category must never fill a field of another category",
            "are a year range, not a date",
            "only a partial date exists, mappedValue is null",
            "Never use a name from one role for a field of another role",
            "Do not reuse a dataset value verbatim",
            "must be copied exactly",
            "mappedValue null AND an entry in missingFields",
            'prefer #id, then [name="..."], then [aria-label="..."]',
        ],
    )
    def test_prompt_states_mapping_rules(self, request_payload, rule):
        """Should carry every mapping rule into the prompt sent to the model."""
        assert rule in MAPPING_PROMPT
        assert rule in build_prompt(request_payload)


# ============ Engine Tests ============

class TestGeminiMappingEngine:
    """Tests for GeminiMappingEngine with a mocked model."""

    def test_success(self, request_payload):
        model = MagicMock()
        model.generate_content.return_value = gemini_response(VALID_RESPONSE)

        result = GeminiMappingEngine(Settings(), model=model).evaluate(request_payload)

        assert isinstance(result, MappingSuccess)
        model.generate_content.assert_called_once()
        assert "Organization Name" in model.generate_content.call_args[0][0]

    def test_multi_part_response_joined(self, request_payload):
        model = MagicMock()
        model.generate_content.return_value = gemini_response('{"mappedFields": ', '[{"fieldId": "orgName"}]}')

        result = GeminiMappingEngine(Settings(), model=model).evaluate(request_payload)

        assert result.mapped_fields[0].field_id == "orgName"

    def test_model_error(self, request_payload):
        """Should turn a raised API error into an engine failure."""
        model = MagicMock()
        model.generate_content.side_effect = RuntimeError("quota exceeded")

        result = GeminiMappingEngine(Settings(), model=model).evaluate(request_payload)

        assert isinstance(result, MappingFailure)
        assert result.kind is FailureKind.ENGINE
        assert "quota exceeded" in result.message

    def test_empty_candidates(self, request_payload):
        model = MagicMock()
        model.generate_content.return_value = SimpleNamespace(candidates=[])

        result = GeminiMappingEngine(Settings(), model=model).evaluate(request_payload)

        assert result.kind is FailureKind.EMPTY

    def test_missing_api_key(self, request_payload, monkeypatch):
        """Should fail as a configuration error when no key is configured."""
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

        result = GeminiMappingEngine(Settings(google_api_key=None)).evaluate(request_payload)

        assert isinstance(result, MappingFailure)
        assert result.kind is FailureKind.CONFIGURATION
        assert "GOOGLE_API_KEY" in result.message

    def test_model_name_normalised(self):
        assert GeminiMappingEngine(Settings(gemini_model="Gemini 2.5 Flash")).model_name == "models/gemini-2.5-flash"
