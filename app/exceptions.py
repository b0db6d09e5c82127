"""
    Centralized exception handling for the FastAPI application.
    Every error response has the shape {"error": "<message>"}.
"""
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

log = logging.getLogger(__name__)

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

class MissingFileException(APIException):
    """Exception for upload requests without a file."""
    def __init__(self, detail: str = "No file uploaded"):
        super().__init__(status_code=400, detail=detail)

class UnsupportedMediaTypeException(APIException):
    """Exception for uploads whose declared mime type is not allowed."""
    def __init__(self, detail: str = "Only JPEG and PNG files are allowed"):
        super().__init__(status_code=400, detail=detail)

def format_size(num_bytes: int) -> str:
    """Human readable byte count, e.g. 10MB, 10.5MB, 1KB, 300 bytes."""
    for unit, scale in (("MB", 1024 * 1024), ("KB", 1024)):
        if num_bytes >= scale:
            value = f"{num_bytes / scale:.2f}".rstrip("0").rstrip(".")
            return f"{value}{unit}"
    return f"{num_bytes} bytes"

class FileTooLargeException(APIException):
    """Exception for uploads above the configured size ceiling."""
    def __init__(self, max_size: int):
        self.max_size = max_size
        super().__init__(status_code=413, detail=f"File too large. Max {format_size(max_size)}.")

class InvalidImageException(APIException):
    """Exception for invalid image files."""
    def __init__(self, detail: str = "Invalid image file"):
        super().__init__(status_code=400, detail=detail)

class ImageNotFoundException(APIException):
    """Exception for when a stored image is not found."""
    def __init__(self, storage_name: str):
        super().__init__(status_code=404, detail=f"Image '{storage_name}' not found.")

class StorageException(APIException):
    """Exception for byte storage failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

class MetadataPersistenceException(APIException):
    """Exception for metadata store failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

class StorageNameTaken(Exception):
    """Raised by a byte store when the storage name is already in use."""
    def __init__(self, storage_name: str):
        self.storage_name = storage_name
        super().__init__(f"Storage name '{storage_name}' already exists")

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    if exc.status_code >= 500:
        log.error(f"API Exception: {exc.detail}", exc_info=exc)
    else:
        log.warning("API Exception: %s", exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.error(f"HTTP Exception: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles malformed request parameters as client errors."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid request")
    log.warning("Validation error at %s: %s", location, message)
    return JSONResponse(
        status_code=400,
        content={"error": f"{location}: {message}" if location else message},
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred."},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
