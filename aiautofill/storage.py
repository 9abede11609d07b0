"""Key-value persistence for dataset configs, schemas and mapping audit records."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import FormSchema
from .utils import timestamp_slug, utc_now

logger = logging.getLogger(__name__)

DATASET_CONFIG_KEY = "dataset-configs/dataset-config.json"
PROCESSED_DATA_PREFIX = "processed-data/processed-data-"
MAPPING_PREFIX = "ai-mappings/mapping-"
SINGLE_PAGE_SCHEMA_KEY = "contact-form-schema.json"
MULTI_PAGE_SCHEMA_KEY = "multi-page-form-schema.json"


class StorageError(Exception):
    """Base exception for storage-related errors."""
    pass


class DatasetNotConfiguredError(StorageError):
    """Raised when mapping is requested before any dataset was configured."""
    pass


class ArtifactStore:
    """Minimal key-value interface over JSON artifacts.

    Keys are slash-separated relative paths such as
    ``ai-mappings/mapping-<timestamp>.json``.
    """

    def put(self, key: str, value: Any) -> str:
        raise NotImplementedError

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def keys(self, prefix: str) -> List[str]:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def get_latest(self, prefix: str) -> Optional[str]:
        """Return the newest key under ``prefix`` (timestamped keys sort chronologically)."""

        matches = sorted(key for key in self.keys(prefix) if key.endswith(".json"))
        return matches[-1] if matches else None

    def put_timestamped(self, prefix: str, value: Any, *, moment: Optional[datetime] = None) -> str:
        """Store ``value`` under a fresh ``<prefix><timestamp>.json`` key."""

        moment = moment or utc_now()
        key = f"{prefix}{timestamp_slug(moment)}.json"
        while self.exists(key):
            moment = moment + timedelta(microseconds=1)
            key = f"{prefix}{timestamp_slug(moment)}.json"
        return self.put(key, value)


class FileArtifactStore(ArtifactStore):
    """Store artifacts as pretty-printed JSON files below ``root``."""

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Artifact key escapes the storage root: {key}")
        return path

    def put(self, key: str, value: Any) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save artifact {key}: {e}")
            raise StorageError(f"Failed to save {key}: {e}") from e
        logger.info("Saved artifact %s", key)
        return key

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load artifact {key}: {e}")
            raise StorageError(f"Failed to load {key}: {e}") from e

    def keys(self, prefix: str) -> List[str]:
        directory, _, stem = prefix.rpartition("/")
        base = self.root / directory if directory else self.root
        if not base.is_dir():
            return []
        found = []
        for path in base.iterdir():
            if path.is_file() and path.name.startswith(stem):
                found.append(f"{directory}/{path.name}" if directory else path.name)
        return found


class InMemoryArtifactStore(ArtifactStore):
    """Dictionary-backed store, used for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def put(self, key: str, value: Any) -> str:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to save {key}: {e}") from e
        return key

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def keys(self, prefix: str) -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]


class SchemaCache:
    """Most recent single-page FormSchema, reused for the same URL.

    Only the latest scan is held, in memory and in the artifact store.
    Reuse requires an exact URL match. There is no expiry: a page whose
    markup changes under the same URL keeps serving the old schema until
    it is scanned again.
    """

    def __init__(self, store: ArtifactStore, key: str = SINGLE_PAGE_SCHEMA_KEY):
        self._store = store
        self._key = key
        self._latest: Optional[FormSchema] = None

    def get(self, url: str) -> Optional[FormSchema]:
        if self._latest is not None and self._latest.url == url:
            return self._latest
        persisted = self._store.get(self._key)
        if persisted and persisted.get("url") == url:
            self._latest = FormSchema.from_dict(persisted)
            return self._latest
        return None

    def put(self, schema: FormSchema) -> None:
        self._latest = schema
        self._store.put(self._key, schema.to_dict())

    def latest(self) -> Optional[FormSchema]:
        persisted = self._store.get(self._key)
        return FormSchema.from_dict(persisted) if persisted else None


def dataset_summary(dataset: Any) -> Dict[str, Any]:
    """Describe a dataset for audit records without copying its content."""

    if not isinstance(dataset, dict):
        return {"type": "inline", "lastSaved": None, "summary": "inline dataset"}
    dataset_type = dataset.get("type")
    if dataset_type == "local":
        total = (dataset.get("local") or {}).get("totalFiles") or 0
        summary = f"{total} files"
    elif dataset_type == "google-drive":
        summary = f"Google Drive {(dataset.get('drive') or {}).get('type')}"
    else:
        summary = "inline dataset"
    return {"type": dataset_type or "inline", "lastSaved": dataset.get("lastSaved"), "summary": summary}


class DatasetRepository:
    """Latest dataset configuration and processed-data snapshots."""

    def __init__(self, store: ArtifactStore):
        self._store = store

    def save_config(self, config: Dict[str, Any]) -> str:
        local = config.get("local") or {}
        if config.get("type") == "local" and local.get("processedData"):
            self.save_processed_data(local["processedData"])
        return self._store.put(DATASET_CONFIG_KEY, config)

    def latest_config(self) -> Optional[Dict[str, Any]]:
        config = self._store.get(DATASET_CONFIG_KEY)
        if config is None:
            logger.warning("No dataset configuration found at %s", DATASET_CONFIG_KEY)
        return config

    def require_config(self) -> Dict[str, Any]:
        config = self.latest_config()
        if config is None:
            raise DatasetNotConfiguredError("No dataset configuration found. Please upload dataset first.")
        return config

    def save_processed_data(self, processed: Dict[str, Any]) -> str:
        moment = None
        processed_at = processed.get("processedAt")
        if isinstance(processed_at, str):
            try:
                moment = datetime.fromisoformat(processed_at.replace("Z", "+00:00"))
            except ValueError:
                logger.warning("Ignoring unparseable processedAt %r", processed_at)
        if moment is not None and moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return self._store.put_timestamped(PROCESSED_DATA_PREFIX, processed, moment=moment)

    def latest_processed_data(self) -> tuple[Optional[str], Optional[Any], int]:
        """Return ``(key, data, available_count)`` for the newest processed-data file."""

        keys = [key for key in self._store.keys(PROCESSED_DATA_PREFIX) if key.endswith(".json")]
        latest = self._store.get_latest(PROCESSED_DATA_PREFIX)
        if latest is None:
            return None, None, 0
        return latest, self._store.get(latest), len(keys)


__all__ = [
    "ArtifactStore",
    "DATASET_CONFIG_KEY",
    "DatasetNotConfiguredError",
    "DatasetRepository",
    "FileArtifactStore",
    "InMemoryArtifactStore",
    "MAPPING_PREFIX",
    "MULTI_PAGE_SCHEMA_KEY",
    "PROCESSED_DATA_PREFIX",
    "SINGLE_PAGE_SCHEMA_KEY",
    "SchemaCache",
    "StorageError",
    "dataset_summary",
]
