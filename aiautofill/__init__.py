"""AI Autofill core: normalization, schema building, mapping and command synthesis."""

from .commands import CommandSynthesizer, resolve_selector
from .config import ConfigurationError, Settings
from .dataset import build_local_config, process_local_files
from .llm import GeminiMappingEngine, MappingEngine, configure_gemini, parse_mapping_response
from .models import (
	AutofillCommand,
	FieldDescriptor,
	FormSchema,
	MappedField,
	MappingFailure,
	MappingRequest,
	MappingSuccess,
	RawFieldDescriptor,
)
from .normalizer import FieldNormalizer
from .orchestrator import MappingOrchestrator
from .schema import SchemaBuilder
from .storage import (
	ArtifactStore,
	DatasetNotConfiguredError,
	FileArtifactStore,
	InMemoryArtifactStore,
	SchemaCache,
	StorageError,
)

__all__ = [
	"ArtifactStore",
	"AutofillCommand",
	"CommandSynthesizer",
	"ConfigurationError",
	"DatasetNotConfiguredError",
	"FieldDescriptor",
	"FieldNormalizer",
	"FileArtifactStore",
	"FormSchema",
	"GeminiMappingEngine",
	"InMemoryArtifactStore",
	"MappedField",
	"MappingEngine",
	"MappingFailure",
	"MappingOrchestrator",
	"MappingRequest",
	"MappingSuccess",
	"RawFieldDescriptor",
	"SchemaBuilder",
	"SchemaCache",
	"Settings",
	"StorageError",
	"build_local_config",
	"configure_gemini",
	"parse_mapping_response",
	"process_local_files",
	"resolve_selector",
]
