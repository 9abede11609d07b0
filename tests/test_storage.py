"""
Tests for aiautofill.storage

Uses temporary directories and the in-memory store; never touches ./data.
"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from aiautofill.models import FieldDescriptor, FormSchema
from aiautofill.storage import (
    DATASET_CONFIG_KEY,
    MAPPING_PREFIX,
    PROCESSED_DATA_PREFIX,
    DatasetNotConfiguredError,
    DatasetRepository,
    FileArtifactStore,
    InMemoryArtifactStore,
    SchemaCache,
    StorageError,
    dataset_summary,
)


# ============ Fixtures ============

@pytest.fixture
def file_store(tmp_path):
    """Artifact store rooted in a temporary directory."""
    return FileArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def schema():
    return FormSchema(
        url="https://example.org/contact",
        scanned_at="2024-01-01T00:00:00.000Z",
        fields={"email": FieldDescriptor(label="Email", type="email", name="email")},
    )


# ============ Store Tests ============

class TestFileArtifactStore:
    """Tests for the filesystem implementation."""

    def test_put_and_get(self, file_store, tmp_path):
        """Should write pretty JSON under nested directories."""
        file_store.put("dataset-configs/dataset-config.json", {"type": "local"})

        assert file_store.get("dataset-configs/dataset-config.json") == {"type": "local"}
        assert (tmp_path / "artifacts" / "dataset-configs" / "dataset-config.json").exists()

    def test_missing_key(self, file_store):
        """Should return None for keys never written."""
        assert file_store.get("nope.json") is None

    def test_key_cannot_escape_root(self, file_store):
        """Should refuse keys outside the storage root."""
        with pytest.raises(StorageError):
            file_store.put("../outside.json", {})

    def test_corrupt_file_raises(self, file_store, tmp_path):
        """Should surface unreadable artifacts as StorageError."""
        (tmp_path / "artifacts" / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            file_store.get("broken.json")

    def test_keys_and_latest(self, file_store):
        """Should list keys under a prefix and pick the newest timestamped one."""
        file_store.put(f"{MAPPING_PREFIX}2024-01-02T00-00-00-000000Z.json", {"n": 2})
        file_store.put(f"{MAPPING_PREFIX}2024-01-01T00-00-00-000000Z.json", {"n": 1})
        file_store.put("ai-mappings/notes.txt", "ignored")

        assert len(file_store.keys(MAPPING_PREFIX)) == 2
        assert file_store.get_latest(MAPPING_PREFIX) == f"{MAPPING_PREFIX}2024-01-02T00-00-00-000000Z.json"

    def test_latest_without_directory(self, file_store):
        """Should return None when nothing was ever written under the prefix."""
        assert file_store.get_latest(MAPPING_PREFIX) is None


class TestTimestampedKeys:
    """Tests for append-only timestamped writes."""

    def test_same_moment_gets_fresh_key(self):
        """Should never overwrite an existing audit record."""
        store = InMemoryArtifactStore()
        moment = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

        first = store.put_timestamped(MAPPING_PREFIX, {"run": 1}, moment=moment)
        second = store.put_timestamped(MAPPING_PREFIX, {"run": 2}, moment=moment)

        assert first == f"{MAPPING_PREFIX}2024-01-01T12-00-00-000000Z.json"
        assert second != first
        assert second > first
        assert store.get(first) == {"run": 1}
        assert store.get_latest(MAPPING_PREFIX) == second


# ============ Schema Cache Tests ============

class TestSchemaCache:
    """Tests for per-URL schema reuse."""

    def test_hit_after_put(self, schema):
        cache = SchemaCache(InMemoryArtifactStore())
        cache.put(schema)

        assert cache.get("https://example.org/contact") == schema

    def test_persisted_schema_survives_new_cache(self, file_store, schema):
        """Should reload the persisted schema for an exact URL match."""
        SchemaCache(file_store).put(schema)

        reloaded = SchemaCache(file_store)
        assert reloaded.get("https://example.org/contact") == schema
        assert reloaded.latest() == schema

    def test_url_mismatch_misses(self, schema):
        """Should not serve a schema for a different URL."""
        cache = SchemaCache(InMemoryArtifactStore())
        cache.put(schema)

        assert cache.get("https://example.org/contact?step=2") is None

    def test_only_latest_scan_kept(self, schema):
        """Should replace the previous URL's schema instead of accumulating entries."""
        cache = SchemaCache(InMemoryArtifactStore())
        other = replace(schema, url="https://example.org/apply")
        cache.put(schema)
        cache.put(other)

        assert cache.get("https://example.org/contact") is None
        assert cache.get("https://example.org/apply") == other


# ============ Dataset Tests ============

class TestDatasetSummary:
    """Tests for dataset_summary."""

    def test_local(self):
        assert dataset_summary({"type": "local", "local": {"totalFiles": 3}})["summary"] == "3 files"

    def test_google_drive(self):
        summary = dataset_summary({"type": "google-drive", "drive": {"type": "folder", "id": "x"}})
        assert summary["summary"] == "Google Drive folder"

    def test_inline(self):
        assert dataset_summary({"orgName": "Acme"})["summary"] == "inline dataset"
        assert dataset_summary(["not", "a", "dict"])["type"] == "inline"


class TestDatasetRepository:
    """Tests for dataset configuration persistence."""

    def test_require_config_without_dataset(self):
        """Should raise when no dataset was configured."""
        with pytest.raises(DatasetNotConfiguredError):
            DatasetRepository(InMemoryArtifactStore()).require_config()

    def test_save_config_with_processed_data(self, local_dataset):
        """Should store the config and a timestamped processed-data snapshot."""
        store = InMemoryArtifactStore()
        repository = DatasetRepository(store)

        repository.save_config(local_dataset)

        assert store.get(DATASET_CONFIG_KEY) == local_dataset
        key, data, count = repository.latest_processed_data()
        assert key == f"{PROCESSED_DATA_PREFIX}2024-05-01T09-30-00-000000Z.json"
        assert data["successCount"] == 1
        assert count == 1

    def test_no_processed_data(self):
        assert DatasetRepository(InMemoryArtifactStore()).latest_processed_data() == (None, None, 0)
