from fastapi import APIRouter, Depends, Response
import mimetypes

from app.dependencies.dependencies import get_byte_store
from app.image_service.allocator import is_storage_name
from app.image_service.validator import sniff_mime_type
from app.exceptions import ImageNotFoundException

router = APIRouter(
    prefix="/uploads",
    tags=["files"]
)

@router.get("/{storage_name}")
def serve_upload(storage_name: str, store=Depends(get_byte_store)):
    """Serves stored image bytes under the public URL convention."""
    if not is_storage_name(storage_name) or not store.exists(storage_name):
        raise ImageNotFoundException(storage_name)

    with store.open(storage_name) as fh:
        data = fh.read()
    media_type = sniff_mime_type(data) or mimetypes.guess_type(storage_name)[0] or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"X-Content-Type-Options": "nosniff"},
    )
