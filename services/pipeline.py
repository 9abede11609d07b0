"""High-level orchestration for the scan → map → autofill pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from aiautofill.commands import CommandSynthesizer
from aiautofill.models import FieldDescriptor, FormSchema
from aiautofill.normalizer import FieldNormalizer
from aiautofill.orchestrator import MappingOrchestrator
from aiautofill.schema import SchemaBuilder
from aiautofill.storage import (
    MAPPING_PREFIX,
    MULTI_PAGE_SCHEMA_KEY,
    ArtifactStore,
    DatasetNotConfiguredError,
    DatasetRepository,
    SchemaCache,
    StorageError,
    dataset_summary,
)
from aiautofill.utils import isoformat, utc_now
from models.mapping_outcome import MappingOutcome

from .field_detector import PageSnapshot
from .page_loader import PageExtractor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingRun:
    """A mapping outcome together with the audit record it was saved under."""

    outcome: MappingOutcome
    saved_to: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.outcome.success, "result": self.outcome.to_dict(), "savedTo": self.saved_to}


def _mapping_message(ai_mapping: Dict[str, Any]) -> str:
    if ai_mapping.get("success"):
        return "AI mapping completed."
    if ai_mapping.get("skipped"):
        return "AI mapping skipped - no dataset configured."
    return "AI mapping failed - check logs."


class AutofillPipeline:
    """Coordinate page extraction → schema → mapping → autofill commands."""

    def __init__(
        self,
        extractor: PageExtractor,
        orchestrator: MappingOrchestrator,
        store: ArtifactStore,
        *,
        normalizer: Optional[FieldNormalizer] = None,
        builder: Optional[SchemaBuilder] = None,
        synthesizer: Optional[CommandSynthesizer] = None,
        cache: Optional[SchemaCache] = None,
        max_pages: int = 10,
    ) -> None:
        self._extractor = extractor
        self._orchestrator = orchestrator
        self._store = store
        self._normalizer = normalizer or FieldNormalizer()
        self._builder = builder or SchemaBuilder()
        self._synthesizer = synthesizer or CommandSynthesizer()
        self.cache = cache or SchemaCache(store)
        self.datasets = DatasetRepository(store)
        self.max_pages = max_pages

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------
    def build_schema(self, snapshot: PageSnapshot, url: str) -> FormSchema:
        normalized = self._normalizer.normalize(snapshot.fields)
        return self._builder.build_schema(
            url,
            normalized,
            buttons=snapshot.buttons,
            step_indicators=snapshot.step_indicators,
        )

    def scan(self, url: str) -> FormSchema:
        """Extract a single page and replace the cached schema for its URL."""

        schema = self.build_schema(self._extractor.extract(url), url)
        self.cache.put(schema)
        logger.info("[Scan] Form schema saved for %s with %d fields", url, schema.field_count)
        return schema

    def scan_form(self, url: str) -> Dict[str, Any]:
        schema = self.scan(url)
        ai_mapping = self.run_auto_mapping(schema)
        return {
            "success": True,
            "scan": {
                "url": url,
                "fieldCount": schema.field_count,
                "buttonCount": len(schema.buttons),
                "fields": schema.fields_dict(),
                "buttons": schema.buttons,
                "stepIndicators": schema.step_indicators,
            },
            "aiMapping": ai_mapping,
            "message": (
                f"Form scanned successfully with {schema.field_count} fields. {_mapping_message(ai_mapping)}"
            ),
        }

    def scan_multi_page_form(self, url: str, max_pages: Optional[int] = None) -> Dict[str, Any]:
        limit = max_pages or self.max_pages
        snapshots = self._extractor.extract_pages(url, limit)
        pages: List[FormSchema] = [self.build_schema(snapshot, snapshot.url or url) for snapshot in snapshots]

        total_fields = sum(page.field_count for page in pages)
        total_buttons = sum(len(page.buttons) for page in pages)
        page_dicts = [dict(page.to_dict(), pageNumber=number) for number, page in enumerate(pages, start=1)]
        self._store.put(
            MULTI_PAGE_SCHEMA_KEY,
            {
                "scannedAt": isoformat(utc_now()),
                "startUrl": url,
                "totalPages": len(pages),
                "totalFields": total_fields,
                "totalButtons": total_buttons,
                "pages": page_dicts,
            },
        )
        logger.info("[Scan] Multi-page schema saved: %d pages, %d fields", len(pages), total_fields)

        ai_mapping = self.run_auto_mapping(self.merge_pages(url, pages))
        return {
            "success": True,
            "scan": {
                "totalPages": len(pages),
                "totalFields": total_fields,
                "totalButtons": total_buttons,
                "pages": page_dicts,
            },
            "aiMapping": ai_mapping,
            "message": (
                f"Scanned {len(pages)} pages with {total_fields} fields. {_mapping_message(ai_mapping)}"
            ),
        }

    @staticmethod
    def merge_pages(url: str, pages: List[FormSchema]) -> FormSchema:
        fields: Dict[str, FieldDescriptor] = {}
        for page in pages:
            fields.update(page.fields)
        return FormSchema(
            url=url,
            scanned_at=pages[0].scanned_at if pages else isoformat(utc_now()),
            fields=fields,
            buttons=[button for page in pages for button in page.buttons],
            step_indicators=[step for page in pages for step in page.step_indicators],
        )

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------
    def map_schema(self, schema: FormSchema, dataset: Any) -> MappingRun:
        outcome, saved_to = self._orchestrator.run(schema, dataset)
        return MappingRun(outcome=outcome, saved_to=saved_to)

    def run_auto_mapping(self, schema: FormSchema, dataset: Any = None) -> Dict[str, Any]:
        """Map a freshly scanned schema; problems are reported, never raised."""

        try:
            dataset = dataset if dataset is not None else self.datasets.latest_config()
            if dataset is None:
                logger.warning("[Scan] No dataset config available - skipping AI mapping")
                return {"success": False, "message": "No dataset configuration found", "skipped": True}
            return self.map_schema(schema, dataset).to_dict()
        except StorageError as exc:
            logger.exception("[Scan] Error in auto AI mapping: %s", exc)
            return {"success": False, "error": str(exc)}

    def run_manual_mapping(self) -> Dict[str, Any]:
        dataset = self.datasets.require_config()
        schema = self.cache.latest()
        if schema is None:
            raise LookupError("No form schema found. Please scan a form first.")
        return self.map_schema(schema, dataset).to_dict()

    # ------------------------------------------------------------------
    # Direct autofill
    # ------------------------------------------------------------------
    def direct_autofill(self, url: str, dataset: Any = None) -> Dict[str, Any]:
        """Return autofill commands for ``url``, reusing the cached schema when the URL matches."""

        dataset = dataset if dataset else self.datasets.latest_config()
        if not dataset:
            raise DatasetNotConfiguredError("No dataset configuration found. Please configure a dataset first.")

        schema = self.cache.get(url)
        if schema is not None:
            logger.info("[Autofill] Reusing cached schema for %s", url)
        else:
            schema = self.scan(url)

        run = self.map_schema(schema, dataset)
        outcome = run.outcome
        metadata = {
            "totalFields": schema.field_count,
            "missingFields": [entry.to_dict() for entry in outcome.missing_fields],
            "timestamp": isoformat(utc_now()),
            "chunked": outcome.chunked,
            "totalChunks": outcome.total_chunks,
            "successfulChunks": outcome.successful_chunks,
        }
        if not outcome.success:
            return {"success": False, "error": outcome.error, "commands": [], "metadata": metadata}

        commands = self._synthesizer.synthesize(outcome.mapped_fields, schema.fields)
        logger.info("[Autofill] Generated %d commands for %s", len(commands), url)
        return {"success": True, "commands": [command.to_dict() for command in commands], "metadata": metadata}

    # ------------------------------------------------------------------
    # Dataset configuration and introspection
    # ------------------------------------------------------------------
    def configure_dataset(self, config: Dict[str, Any]) -> Dict[str, Any]:
        saved_as = self.datasets.save_config(config)
        summary = dataset_summary(config)["summary"]
        local = config.get("local") or {}
        if config.get("type") == "local" and local.get("processedData"):
            summary += " (processed)"
        logger.info("Dataset configuration saved (%s)", summary)
        return {
            "success": True,
            "message": "Dataset configuration received successfully",
            "savedAs": saved_as.rsplit("/", 1)[-1],
            "config": {"type": config.get("type"), "timestamp": config.get("lastSaved"), "summary": summary},
        }

    def latest_mapping(self) -> Dict[str, Any]:
        key = self._store.get_latest(MAPPING_PREFIX)
        if key is None:
            return {"success": True, "data": None, "message": "No AI mapping results available"}
        return {"success": True, "data": self._store.get(key), "filename": key.rsplit("/", 1)[-1]}

    def processed_data(self) -> Dict[str, Any]:
        key, data, available = self.datasets.latest_processed_data()
        if key is None:
            return {"success": True, "data": [], "message": "No processed data available"}
        return {"success": True, "data": data, "filename": key.rsplit("/", 1)[-1], "availableFiles": available}

    def dataset_status(self) -> Dict[str, Any]:
        config = self.datasets.latest_config()
        if config is None:
            return {"success": True, "configured": False, "message": "No dataset configuration found"}
        described = dataset_summary(config)
        _, _, processed_files = self.datasets.latest_processed_data()
        return {
            "success": True,
            "configured": True,
            "type": described["type"],
            "summary": described["summary"],
            "lastSaved": described["lastSaved"],
            "processedDataFiles": processed_files,
        }


__all__ = ["AutofillPipeline", "MappingRun"]
