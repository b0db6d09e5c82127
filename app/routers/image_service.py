from fastapi import APIRouter, Depends, UploadFile, File, Query, Response
from typing import Optional
import logging

from app.dependencies.dependencies import get_upload_handler, get_listing_service
from app.image_service.service import UploadHandler, ListingService
from app.image_service.models import ImageItem, ListImagesResponse
from app.exceptions import MissingFileException

log = logging.getLogger(__name__)

router = APIRouter(
    tags=["image-gallery-service"]
)

@router.post("/uploads", response_model=ImageItem, status_code=201)
async def upload_image(
    response: Response,
    image: Optional[UploadFile] = File(None),
    uploads: UploadHandler = Depends(get_upload_handler),
):
    """Uploads one JPEG or PNG image and records its metadata."""
    # Add security header
    response.headers["X-Content-Type-Options"] = "nosniff"

    if image is None or not image.filename:
        raise MissingFileException()

    # Pre-check content-type and declared size before reading the body
    uploads.precheck(image.content_type, image.size)

    # Read at most one byte past the ceiling so oversize is detected without buffering it all
    contents = await image.read(uploads.max_file_size + 1)

    stored = uploads.handle(
        original_name=image.filename,
        content_type=image.content_type,
        data=contents,
    )
    return uploads.describe(stored)

@router.get("/images", response_model=ListImagesResponse)
def list_images_handler(
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    listing: ListingService = Depends(get_listing_service),
):
    """Lists stored images, newest first."""
    return listing.list_page(limit=limit, offset=offset)
