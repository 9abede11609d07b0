"""Turn local dataset documents into the ``processedData`` record."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import fitz

from .utils import isoformat, utc_now

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = frozenset({".txt", ".md", ".csv"})

DocumentSource = Union[str, Path, Tuple[str, bytes]]


@dataclass(frozen=True)
class ProcessedDocument:
    name: str
    type: str
    content: Optional[Any] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.error is not None:
            data["error"] = self.error
        else:
            data["content"] = self.content
        return data


def _pdf_text(data: bytes) -> str:
    with fitz.open(stream=data, filetype="pdf") as document:
        return "\n".join(page.get_text("text") for page in document).strip()


def _read_source(source: DocumentSource) -> Tuple[str, bytes]:
    if isinstance(source, tuple):
        return source
    path = Path(source)
    return path.name, path.read_bytes()


def process_document(name: str, data: bytes) -> ProcessedDocument:
    suffix = Path(name).suffix.lower()
    try:
        if suffix == ".pdf":
            return ProcessedDocument(name=name, type="pdf", content=_pdf_text(data))
        if suffix == ".json":
            return ProcessedDocument(name=name, type="json", content=json.loads(data.decode("utf-8")))
        if suffix in TEXT_SUFFIXES:
            return ProcessedDocument(name=name, type="text", content=data.decode("utf-8", errors="replace"))
    except (ValueError, RuntimeError) as exc:
        # PyMuPDF reports damaged files as RuntimeError subclasses.
        logger.warning("Could not process %s: %s", name, exc)
        return ProcessedDocument(name=name, type=suffix.lstrip(".") or "unknown", error=str(exc))
    return ProcessedDocument(name=name, type=suffix.lstrip(".") or "unknown", error="Unsupported file type")


def process_local_files(sources: Iterable[DocumentSource]) -> Dict[str, Any]:
    """Extract text from each file and summarise the batch as ``processedData``."""

    documents: List[ProcessedDocument] = []
    for source in sources:
        name, data = _read_source(source)
        documents.append(process_document(name, data))

    errors = sum(1 for document in documents if document.error is not None)
    logger.info("Processed %d dataset files (%d failed)", len(documents), errors)
    return {
        "totalFiles": len(documents),
        "successCount": len(documents) - errors,
        "errorCount": errors,
        "processedAt": isoformat(utc_now()),
        "files": [document.to_dict() for document in documents],
    }


def build_local_config(processed: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap processed files into a ``local`` dataset configuration."""

    return {
        "type": "local",
        "lastSaved": processed.get("processedAt") or isoformat(utc_now()),
        "local": {
            "totalFiles": processed.get("totalFiles", 0),
            "files": [entry.get("name") for entry in processed.get("files", [])],
            "processedData": processed,
        },
    }


__all__ = ["ProcessedDocument", "build_local_config", "process_document", "process_local_files"]
