"""Service-layer utilities for the AI Autofill backend."""

from .field_detector import FieldDetector, PageSnapshot
from .page_loader import ExtractionError, PageExtractor, PlaywrightPageExtractor, PlaywrightPageLoader
from .pipeline import AutofillPipeline, MappingRun
from .extension_bridge import ExtensionBridge, LoggingNotifier

__all__ = [
	"FieldDetector",
	"PageSnapshot",
	"ExtractionError",
	"PageExtractor",
	"PlaywrightPageExtractor",
	"PlaywrightPageLoader",
	"AutofillPipeline",
	"MappingRun",
	"ExtensionBridge",
	"LoggingNotifier",
]
