from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import uvicorn
import logging

from app.storage.dynamodb import DynamoDBMetadataStore, DynamoDBIdentityProvider
from app.storage.local import LocalFileStore
from app.storage.s3 import S3ByteStore
from app.settings import Settings, settings as default_settings
from app.image_service.service import UploadHandler, ListingService
from app.routers.image_service import router as image_router
from app.routers.files import router as files_router
from app.exceptions import add_exception_handlers

log = logging.getLogger("image-gallery-service")

def build_byte_store(settings: Settings):
    if settings.storage_backend == "s3":
        return S3ByteStore(settings)
    return LocalFileStore(settings.upload_path)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Initializes and closes the byte store, metadata store and identity
        provider, and wires them into the upload and listing services.
    """
    settings: Settings = app.state.settings
    # Initialize resources
    app.state.store = build_byte_store(settings)
    app.state.db = DynamoDBMetadataStore(settings)
    app.state.identities = DynamoDBIdentityProvider(settings)
    app.state.uploads = UploadHandler(settings, app.state.store, app.state.db, app.state.identities)
    app.state.listing = ListingService(settings, app.state.db)
    log.info("Storage backend: %s, public base: %s", settings.storage_backend, settings.public_base)
    yield
    # Cleanup resources
    app.state.store.close()
    app.state.db.close()
    app.state.identities.close()

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(level=settings.log_level.upper())

    # Initialize App
    app = FastAPI(
        title=settings.app_title,
        lifespan=lifespan,
        description="Image Gallery Upload Service",
    )
    app.state.settings = settings

    # Add exception handlers
    add_exception_handlers(app)

    # CORS - Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add the routers
    app.include_router(image_router, prefix="/api/v1")
    app.include_router(files_router)

    # Check Health
    @app.get("/health")
    def health():
        """Liveness probe."""
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/health/db")
    def health_db(request: Request):
        """Metadata store connectivity."""
        return _probe(request.app.state.db.ping, "DB not reachable")

    @app.get("/health/storage")
    def health_storage(request: Request):
        """Byte store accessibility."""
        return _probe(request.app.state.store.ping, "Storage not accessible")

    return app

def _probe(ping, fallback: str):
    try:
        ping()
    except Exception as e:
        log.warning("Health probe failed: %s", e)
        return JSONResponse(status_code=503, content={"status": "error", "error": str(e) or fallback})
    return {"status": "ok"}

app = create_app()

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=default_settings.port, reload=True)
