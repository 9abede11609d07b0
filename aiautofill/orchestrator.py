"""Drive the MappingEngine over a FormSchema, chunking large forms."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Tuple

from models.mapping_outcome import MappingOutcome

from .llm import MappingEngine
from .models import FailureKind, FormSchema, MappingFailure, MappingRequest, MappingSuccess
from .storage import MAPPING_PREFIX, ArtifactStore, dataset_summary
from .utils import isoformat, partition_fields, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_THRESHOLD = 10
DEFAULT_CHUNK_SIZE = 5
DEFAULT_CHUNK_DELAY = 1.0


class MappingOrchestrator:
    """Map a schema against a dataset with single-shot or sequential chunked calls.

    Forms with more than ``chunk_threshold`` fields are split into groups of
    ``chunk_size`` fields, mapped one after another with ``chunk_delay``
    seconds between calls. A failing chunk is counted and skipped; the run
    succeeds when any chunk produced mapped fields. Every run is written to
    the artifact store as an audit record.
    """

    def __init__(
        self,
        engine: MappingEngine,
        store: ArtifactStore,
        *,
        chunk_threshold: int = DEFAULT_CHUNK_THRESHOLD,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_delay: float = DEFAULT_CHUNK_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._engine = engine
        self._store = store
        self.chunk_threshold = chunk_threshold
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self._sleep = sleep

    def map(self, schema: FormSchema, dataset: Any) -> MappingOutcome:
        outcome, _ = self.run(schema, dataset)
        return outcome

    def run(self, schema: FormSchema, dataset: Any) -> Tuple[MappingOutcome, str]:
        """Map the schema and return the outcome with the key of its audit record."""

        fields = schema.fields_dict()
        logger.info("[Orchestrator] Mapping %d fields for %s", len(fields), schema.url)
        if len(fields) > self.chunk_threshold:
            outcome = self._map_chunked(fields, dataset)
        else:
            outcome = self._map_single(fields, dataset)
        return outcome, self._write_audit(schema, dataset, outcome)

    def _call_engine(self, fields: Dict[str, Dict[str, Any]], dataset: Any):
        return self._engine.evaluate(MappingRequest(form_fields=fields, dataset=dataset))

    def _map_single(self, fields: Dict[str, Dict[str, Any]], dataset: Any) -> MappingOutcome:
        outcome = MappingOutcome(chunked=False, total_chunks=1)
        try:
            result = self._call_engine(fields, dataset)
        except Exception as exc:
            logger.exception("[Orchestrator] Mapping engine raised: %s", exc)
            return outcome.record_chunk_failure(str(exc)).fail(MappingFailure(FailureKind.ENGINE, str(exc)))
        if isinstance(result, MappingFailure):
            logger.error("[Orchestrator] Mapping failed (%s): %s", result.kind.value, result.message)
            return outcome.record_chunk_failure(result.message).fail(result)
        return outcome.record_chunk_success(result)

    def _map_chunked(self, fields: Dict[str, Dict[str, Any]], dataset: Any) -> MappingOutcome:
        chunks = partition_fields(fields, self.chunk_size)
        logger.info(
            "[Orchestrator] Large form: %d fields split into %d chunks of up to %d",
            len(fields),
            len(chunks),
            self.chunk_size,
        )
        outcome = MappingOutcome(chunked=True, total_chunks=len(chunks))
        for index, chunk in enumerate(chunks, start=1):
            if index > 1 and self.chunk_delay > 0:
                self._sleep(self.chunk_delay)
            try:
                result = self._call_engine(chunk, dataset)
            except Exception as exc:
                logger.exception("[Orchestrator] Chunk %d/%d raised: %s", index, len(chunks), exc)
                outcome = outcome.record_chunk_failure(f"chunk {index}: {exc}")
                continue
            if isinstance(result, MappingSuccess):
                logger.info(
                    "[Orchestrator] Chunk %d/%d mapped %d fields",
                    index,
                    len(chunks),
                    len(result.mapped_fields),
                )
                outcome = outcome.record_chunk_success(result)
            else:
                logger.warning("[Orchestrator] Chunk %d/%d failed: %s", index, len(chunks), result.message)
                outcome = outcome.record_chunk_failure(f"chunk {index}: {result.message}")

        logger.info(
            "[Orchestrator] Chunked mapping finished: %d/%d chunks successful, %d mapped fields",
            outcome.successful_chunks,
            outcome.total_chunks,
            len(outcome.mapped_fields),
        )
        if not outcome.mapped_fields:
            return outcome.fail(
                MappingFailure(
                    FailureKind.EMPTY,
                    f"No chunk produced mapped fields ({outcome.failed_chunks}/{outcome.total_chunks} chunks failed)",
                )
            )
        return outcome

    def _write_audit(self, schema: FormSchema, dataset: Any, outcome: MappingOutcome) -> str:
        moment = utc_now()
        record = {
            "timestamp": isoformat(moment),
            "formUrl": schema.url,
            "formFieldCount": schema.field_count,
            "chunked": outcome.chunked,
            "datasetUsed": dataset_summary(dataset),
            "mappingResult": outcome.to_dict(),
        }
        key = self._store.put_timestamped(MAPPING_PREFIX, record, moment=moment)
        logger.info("[Orchestrator] AI mapping saved to %s", key)
        return key


__all__ = ["MappingOrchestrator"]
