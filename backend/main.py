# backend/main.py
#
# Run with: uvicorn --factory backend.main:create_app

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Settings
from .db import init_db, make_engine, make_session_factory
from .errors import IngestionError
from .extraction import OpenAIExtractionService
from .ingestion import IngestionPipeline
from .middleware import RequestLoggingMiddleware, configure_logging
from .routes import router
from .storage import DriveBlobStore, LocalBlobStore
from .store import SqlDocumentStore

logger = logging.getLogger(__name__)


def build_blob_store(settings: Settings):
    if settings.blob_backend == "none":
        return None
    if settings.blob_backend == "drive":
        if not settings.gdrive_folder_id:
            raise RuntimeError("Missing GDRIVE_FOLDER_ID in environment")
        return DriveBlobStore.from_service_account(
            settings.gdrive_credentials_path, settings.gdrive_folder_id
        )
    return LocalBlobStore(settings.blob_root)


def build_store(settings: Settings) -> SqlDocumentStore:
    engine = make_engine(settings.database_url)
    init_db(engine)
    return SqlDocumentStore(make_session_factory(engine))


def create_app(settings: Settings = None, store=None, pipeline=None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    if store is None:
        store = build_store(settings)
    if pipeline is None:
        if not settings.openai_api_key:
            logger.warning("OPENAI_API_KEY is not set; uploads will be rejected")
        pipeline = IngestionPipeline(
            extractor=OpenAIExtractionService(settings.openai_api_key, model=settings.openai_model),
            store=store,
            blob_store=build_blob_store(settings),
        )

    app = FastAPI(title="TradeLedger API")
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = pipeline
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(router)

    @app.exception_handler(IngestionError)
    async def ingestion_error_handler(request: Request, exc: IngestionError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": type(exc).__name__},
        )

    return app
