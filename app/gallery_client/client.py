from typing import Optional
import logging
import httpx
from pydantic import ValidationError

from app.image_service.models import ListImagesResponse

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
LISTING_PATH = "/api/v1/images"

class GalleryFetchError(Exception):
    """A listing request that completed with a non-success status."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

class GalleryClient:
    """Async HTTP client for the image listing endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def fetch_page(self, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> ListImagesResponse:
        resp = await self._client.get(LISTING_PATH, params={"limit": limit, "offset": offset})
        try:
            data = resp.json()
        except ValueError:
            data = None
        if resp.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            log.debug("Listing request failed with %s", resp.status_code)
            raise GalleryFetchError(message or "Failed to load images", status_code=resp.status_code)
        if data is None:
            raise GalleryFetchError("Failed to load images", status_code=resp.status_code)
        try:
            return ListImagesResponse.model_validate(data)
        except ValidationError as e:
            log.debug("Malformed listing body: %s", e)
            raise GalleryFetchError("Failed to load images", status_code=resp.status_code)

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "GalleryClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
