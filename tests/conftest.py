"""Shared fixtures: deterministic engine and extractor fakes, HTML pages."""

from typing import Callable, Dict, List, Optional

import pytest

from aiautofill.models import MappedField, MappingRequest, MappingResult, MappingSuccess
from aiautofill.orchestrator import MappingOrchestrator
from aiautofill.storage import InMemoryArtifactStore
from services.field_detector import FieldDetector, PageSnapshot
from services.page_loader import ExtractionError
from services.pipeline import AutofillPipeline

CONTACT_URL = "https://example.org/contact"

CONTACT_HTML = """
<html><body>
<form id="contact">
  <div class="field">
    <label for="orgName">Organization Name</label>
    <input type="text" id="orgName">
  </div>
  <div class="field"><label>Email <input type="email" name="email"></label></div>
  <input type="hidden" name="csrf" value="token">
  <div class="field">
    <label for="country">Country</label>
    <select id="country" name="country">
      <option>Select</option>
      <option>India</option>
      <option>Nepal</option>
    </select>
  </div>
  <fieldset>
    <legend>Preferred contact</legend>
    <input type="radio" id="c_phone" name="contact" value="phone"><label for="c_phone">Phone</label>
    <input type="radio" id="c_mail" name="contact" value="mail"><label for="c_mail">Mail</label>
  </fieldset>
  <div class="field"><textarea name="message" placeholder="Tell us more"></textarea></div>
  <div class="steps"><span class="step active">Step 1</span></div>
  <button type="button" id="next-btn">Next</button>
  <button type="submit" disabled>Submit</button>
</form>
</body></html>
"""

SECOND_PAGE_HTML = """
<html><body>
<form>
  <label for="budget">Project Budget</label>
  <input type="number" id="budget" name="budget">
  <button type="submit">Submit</button>
</form>
</body></html>
"""


def echo_mapping(request: MappingRequest) -> MappingResult:
    """Map every requested field to ``value-<fieldId>``."""
    return MappingSuccess(
        mapped_fields=tuple(
            MappedField(field_id=key, label=descriptor.get("label", ""), mapped_value=f"value-{key}", confidence=0.9)
            for key, descriptor in request.form_fields.items()
        ),
    )


class ScriptedEngine:
    """MappingEngine fake; each script step is a result, an exception or a callable."""

    def __init__(self, *steps, default: Optional[Callable[[MappingRequest], MappingResult]] = echo_mapping):
        self.steps = list(steps)
        self.default = default
        self.requests: List[MappingRequest] = []

    def evaluate(self, request: MappingRequest) -> MappingResult:
        self.requests.append(request)
        step = self.steps.pop(0) if self.steps else self.default
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(request)
        return step


class StaticExtractor:
    """PageExtractor fake serving pre-parsed HTML pages."""

    def __init__(self, pages: Dict[str, List[str]], error: Optional[ExtractionError] = None):
        self.pages = pages
        self.error = error
        self.calls: List[str] = []
        self._detector = FieldDetector()

    def _snapshots(self, url: str) -> List[PageSnapshot]:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return [self._detector.extract_snapshot(html, url=url) for html in self.pages[url]]

    def extract(self, url: str) -> PageSnapshot:
        return self._snapshots(url)[0]

    def extract_pages(self, url: str, max_pages: int) -> List[PageSnapshot]:
        return self._snapshots(url)[:max_pages]


# ============ Fixtures ============

@pytest.fixture
def store():
    """Fresh in-memory artifact store."""
    return InMemoryArtifactStore()


@pytest.fixture
def engine():
    """Engine that echoes a value for every field."""
    return ScriptedEngine()


@pytest.fixture
def extractor():
    """Extractor serving the contact form and a two-page wizard."""
    return StaticExtractor(
        {
            CONTACT_URL: [CONTACT_HTML],
            "https://example.org/wizard": [CONTACT_HTML, SECOND_PAGE_HTML],
        }
    )


@pytest.fixture
def make_pipeline(store, extractor):
    """Build a pipeline around the shared store and extractor with a chosen engine."""

    def build(engine_instance=None, pipeline_extractor=None):
        orchestrator = MappingOrchestrator(
            engine_instance or ScriptedEngine(),
            store,
            chunk_delay=0,
        )
        return AutofillPipeline(pipeline_extractor or extractor, orchestrator, store)

    return build


@pytest.fixture
def local_dataset():
    """Dataset configuration as sent by the extension for local files."""
    return {
        "type": "local",
        "lastSaved": "2024-05-01T09:30:00.000Z",
        "local": {
            "totalFiles": 1,
            "files": ["profile.json"],
            "processedData": {
                "totalFiles": 1,
                "successCount": 1,
                "errorCount": 0,
                "processedAt": "2024-05-01T09:30:00.000Z",
                "files": [{"name": "profile.json", "type": "json", "content": {"orgName": "Acme Trust"}}],
            },
        },
    }

