"""FastAPI backend exposing scanning, dataset configuration and direct autofill."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from aiautofill.config import Settings
from aiautofill.llm import GeminiMappingEngine
from aiautofill.orchestrator import MappingOrchestrator
from aiautofill.storage import DatasetNotConfiguredError, FileArtifactStore, StorageError
from services.page_loader import ExtractionError, PlaywrightPageExtractor
from services.pipeline import AutofillPipeline

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "GET  /": "Health check",
    "POST /api/dataset/configure": "Receive dataset configuration",
    "GET  /api/dataset/processed-data": "Get latest processed data",
    "GET  /api/dataset/test": "Show the configured dataset",
    "POST /scan-form": "Scan single page form (auto AI mapping)",
    "POST /scan-multi-page-form": "Scan multi-page forms (auto AI mapping)",
    "GET  /api/ai-mapping/latest": "Get latest AI mapping result",
    "POST /run-ai-mapping": "Manually run AI mapping",
    "POST /api/autofill/direct": "Scan, map and return autofill commands",
}


class ScanRequest(BaseModel):
    url: Optional[str] = None


class MultiPageScanRequest(BaseModel):
    url: Optional[str] = None
    maxPages: Optional[int] = None


class DirectAutofillRequest(BaseModel):
    url: Optional[str] = None
    dataset: Optional[Any] = None


def build_pipeline(settings: Settings) -> AutofillPipeline:
    store = FileArtifactStore(settings.data_dir)
    orchestrator = MappingOrchestrator(
        GeminiMappingEngine(settings),
        store,
        chunk_threshold=settings.chunk_threshold,
        chunk_size=settings.chunk_size,
        chunk_delay=settings.chunk_delay,
    )
    return AutofillPipeline(
        PlaywrightPageExtractor(settings),
        orchestrator,
        store,
        max_pages=settings.max_pages,
    )


def _url_required() -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": "URL is required"})


def create_app(pipeline: Optional[AutofillPipeline] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    pipeline = pipeline or build_pipeline(settings)

    app = FastAPI(title="AI Autofill Backend")
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.pipeline = pipeline
    app.state.settings = settings

    @app.exception_handler(ExtractionError)
    def handle_extraction_error(request: Request, exc: ExtractionError):
        logger.error("[Scan] Extraction failed for %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(exc), "type": type(exc).__name__},
        )

    @app.exception_handler(DatasetNotConfiguredError)
    def handle_missing_dataset(request: Request, exc: DatasetNotConfiguredError):
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @app.exception_handler(StorageError)
    def handle_storage_error(request: Request, exc: StorageError):
        logger.error("Storage error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    @app.get("/")
    def health():
        return {
            "message": "AI Autofill Backend is running!",
            "model": settings.gemini_model,
            "apiKeyStatus": "Configured" if settings.google_api_key else "Missing",
            "endpoints": ENDPOINTS,
        }

    @app.post("/api/dataset/configure")
    def configure_dataset(config: Dict[str, Any] = Body(...)):
        logger.info("Dataset configuration received (type=%s)", config.get("type"))
        return pipeline.configure_dataset(config)

    @app.get("/api/dataset/processed-data")
    def processed_data():
        return pipeline.processed_data()

    @app.get("/api/dataset/test")
    def dataset_test():
        return pipeline.dataset_status()

    @app.post("/scan-form")
    def scan_form(payload: ScanRequest):
        if not payload.url:
            return _url_required()
        logger.info("[Scan] Form scan initiated: %s", payload.url)
        return pipeline.scan_form(payload.url)

    @app.post("/scan-multi-page-form")
    def scan_multi_page_form(payload: MultiPageScanRequest):
        if not payload.url:
            return _url_required()
        logger.info("[Scan] Multi-page scan initiated: %s", payload.url)
        return pipeline.scan_multi_page_form(payload.url, payload.maxPages)

    @app.get("/api/ai-mapping/latest")
    def latest_mapping():
        return pipeline.latest_mapping()

    @app.post("/run-ai-mapping")
    def run_ai_mapping():
        logger.info("Running AI mapping manually")
        try:
            return pipeline.run_manual_mapping()
        except LookupError as exc:
            return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @app.post("/api/autofill/direct")
    def direct_autofill(payload: DirectAutofillRequest):
        if not payload.url:
            return _url_required()
        logger.info("[Autofill] Direct autofill requested for %s", payload.url)
        return pipeline.direct_autofill(payload.url, payload.dataset)

    return app


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings=settings)
    logger.info("AI Autofill backend listening on http://%s:%d (model %s)", settings.host, settings.port, settings.gemini_model)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
