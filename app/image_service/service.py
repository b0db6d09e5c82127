from contextlib import contextmanager
from typing import Optional
import logging
import re
from botocore.exceptions import BotoCoreError, ClientError

from app.image_service.allocator import allocate_storage_name
from app.image_service.models import ImageItem, ListImagesResponse, StoredImage
from app.image_service.validator import check_mime_type, check_size, probe_dimensions
from app.settings import Settings
from app.exceptions import MetadataPersistenceException, StorageException, StorageNameTaken

log = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
MAX_NAME_ATTEMPTS = 3

_LEADING_INT_RE = re.compile(r"\s*[+-]?\d+")

@contextmanager
def staged_upload(store, storage_name: str):
    """
        Owns the bytes stored under `storage_name` for the duration of the block.
        Any exception leaving the block deletes them before propagating.
    """
    try:
        yield storage_name
    except BaseException:
        try:
            store.delete(storage_name)
            log.info("Removed stored bytes %s after failed upload", storage_name)
        except Exception as cleanup_error:
            log.error(f"Failed to remove {storage_name} after failed upload: {cleanup_error}")
        raise

class UploadHandler:
    """Validates an uploaded image, stores its bytes and records its metadata."""

    def __init__(self, settings: Settings, store, metadata, identities):
        self.settings = settings
        self.store = store
        self.metadata = metadata
        self.identities = identities

    @property
    def max_file_size(self) -> int:
        return self.settings.max_file_size

    def precheck(self, content_type: Optional[str], size: Optional[int]):
        """Fail fast checks that run before any byte is written."""
        check_mime_type(content_type)
        if size is not None:
            check_size(size, self.max_file_size)

    def store_bytes(self, original_name: str, data: bytes, content_type: str) -> str:
        """Writes `data` under a freshly allocated storage name and returns it."""
        for attempt in range(1, MAX_NAME_ATTEMPTS + 1):
            storage_name = allocate_storage_name(original_name)
            try:
                self.store.write(storage_name, data, content_type)
                return storage_name
            except StorageNameTaken:
                log.warning("Storage name %s taken (attempt %d)", storage_name, attempt)
            except (BotoCoreError, ClientError, OSError) as e:
                log.error(f"Byte store write failed: {e}")
                raise StorageException("Failed to store image")
        raise StorageException("Could not allocate a storage name")

    def handle(self, original_name: str, content_type: Optional[str], data: bytes) -> StoredImage:
        self.precheck(content_type, len(data))

        storage_name = self.store_bytes(original_name, data, content_type)
        with staged_upload(self.store, storage_name):
            with self.store.open(storage_name) as stream:
                width, height, mime_type = probe_dimensions(stream)

            try:
                owner = self.identities.resolve_or_create_identity(self.settings.demo_user_email)
            except (BotoCoreError, ClientError) as e:
                log.error(f"Identity resolution failed: {e}")
                raise MetadataPersistenceException("Failed to resolve uploading user")

            image = StoredImage(
                filename=storage_name,
                original_name=original_name,
                mime_type=mime_type,
                size=len(data),
                width=width,
                height=height,
                user_id=owner.user_id,
            )
            try:
                self.metadata.create_record(image)
            except (BotoCoreError, ClientError) as e:
                log.error(f"Metadata create_record failed: {e}")
                raise MetadataPersistenceException("Failed to save image metadata")

        log.info("Saved image %s as %s (%dx%d)", image.image_id, storage_name, width, height)
        return image

    def describe(self, image: StoredImage) -> ImageItem:
        return ImageItem.from_stored(image, self.settings.public_base)

def parse_query_int(raw) -> Optional[int]:
    """Leading integer of a query value, or None when there is none."""
    if raw is None or isinstance(raw, int):
        return raw
    match = _LEADING_INT_RE.match(raw)
    return int(match.group(0)) if match else None

def clamp_limit(limit) -> int:
    # Missing, unparsable and zero limits all fall back to the default
    limit = parse_query_int(limit)
    if not limit:
        return DEFAULT_LIMIT
    return min(max(limit, 1), MAX_LIMIT)

def clamp_offset(offset) -> int:
    offset = parse_query_int(offset)
    if not offset:
        return 0
    return max(offset, 0)

class ListingService:
    """Paginated, newest-first view over stored image metadata."""

    def __init__(self, settings: Settings, metadata):
        self.settings = settings
        self.metadata = metadata

    def list_page(self, limit=None, offset=None) -> ListImagesResponse:
        limit = clamp_limit(limit)
        offset = clamp_offset(offset)
        try:
            records, total = self.metadata.list_records(limit=limit, offset=offset)
        except (BotoCoreError, ClientError) as e:
            log.error(f"Metadata list_records failed: {e}")
            raise MetadataPersistenceException("Failed to fetch images")

        items = [ImageItem.from_stored(r, self.settings.public_base) for r in records]
        return ListImagesResponse(total=total, limit=limit, offset=offset, items=items)
