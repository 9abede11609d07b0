"""Outcome tracking for single-shot and chunked mapping runs."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

if TYPE_CHECKING:
    from aiautofill.models import MappedField, MappingFailure, MappingSuccess, MissingFieldEntry


@dataclass(frozen=True)
class MappingOutcome:
    """Immutable snapshot describing the progress and result of a mapping run."""

    mapped_fields: Tuple[MappedField, ...] = ()
    missing_fields: Tuple[MissingFieldEntry, ...] = ()
    chunked: bool = False
    total_chunks: int = 1
    successful_chunks: int = 0
    failed_chunks: int = 0
    failure: Optional[MappingFailure] = None
    chunk_errors: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.failure is None

    @property
    def error(self) -> Optional[str]:
        return self.failure.message if self.failure else None

    def record_chunk_success(self, result: MappingSuccess) -> "MappingOutcome":
        """Append a chunk's results and count it as successful."""

        return replace(
            self,
            mapped_fields=self.mapped_fields + tuple(result.mapped_fields),
            missing_fields=self.missing_fields + tuple(result.missing_fields),
            successful_chunks=self.successful_chunks + 1,
        )

    def record_chunk_failure(self, message: str) -> "MappingOutcome":
        return replace(
            self,
            failed_chunks=self.failed_chunks + 1,
            chunk_errors=self.chunk_errors + (message,),
        )

    def fail(self, failure: MappingFailure) -> "MappingOutcome":
        """Return a failed copy; a failed outcome never carries mapping results."""

        return replace(self, mapped_fields=(), missing_fields=(), failure=failure)

    def get_progress(self) -> Tuple[int, int]:
        """Return a tuple of (successful_chunks, total_chunks)."""

        return self.successful_chunks, self.total_chunks

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "mappedFields": [item.to_dict() for item in self.mapped_fields],
            "missingFields": [item.to_dict() for item in self.missing_fields],
            "chunked": self.chunked,
            "totalChunks": self.total_chunks,
            "successfulChunks": self.successful_chunks,
        }
        if self.failure is not None:
            data["error"] = self.failure.message
            data["errorType"] = self.failure.kind.value
            if self.failure.raw_response is not None:
                data["rawResponse"] = self.failure.raw_response
        if self.chunk_errors:
            data["chunkErrors"] = list(self.chunk_errors)
        return data
