from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from uuid import uuid4

# Constant partition value of the newest-first listing index
GALLERY_PARTITION = "all"

def new_image_id() -> str:
    """Generates a new unique image ID."""
    return str(uuid4())

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def format_timestamp(value: datetime) -> str:
    """Fixed-width ISO-8601 so lexical order matches chronological order."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

def public_image_url(public_base: str, storage_name: str) -> str:
    return f"{public_base.rstrip('/')}/uploads/{storage_name}"

class Identity(BaseModel):
    user_id: str = Field(default_factory=new_image_id)
    email: str
    username: str
    created_at: datetime = Field(default_factory=utc_now)

    def to_item(self) -> Dict[str, Any]:
        item = self.model_dump()
        item["created_at"] = format_timestamp(self.created_at)
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Identity":
        return cls(
            user_id=item["user_id"],
            email=item["email"],
            username=item["username"],
            created_at=datetime.fromisoformat(item["created_at"]),
        )

class StoredImage(BaseModel):
    image_id: str = Field(default_factory=new_image_id)
    filename: str
    original_name: str
    mime_type: str
    size: int = Field(gt=0)
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)
    user_id: str
    uploaded_at: datetime = Field(default_factory=utc_now)

    def to_item(self) -> Dict[str, Any]:
        item = self.model_dump()
        # Dynamo needs uploaded_at as a sortable string
        item["uploaded_at"] = format_timestamp(self.uploaded_at)
        item["gallery"] = GALLERY_PARTITION
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "StoredImage":
        width = item.get("width")
        height = item.get("height")
        return cls(
            image_id=item["image_id"],
            filename=item["filename"],
            original_name=item["original_name"],
            mime_type=item["mime_type"],
            size=int(item["size"]),
            width=int(width) if width is not None else None,
            height=int(height) if height is not None else None,
            user_id=item["user_id"],
            uploaded_at=datetime.fromisoformat(item["uploaded_at"]),
        )

class ImageItem(BaseModel):
    """Public descriptor of a stored image, serialized in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    width: Optional[int] = None
    height: Optional[int] = None
    url: str
    uploaded_at: datetime

    @classmethod
    def from_stored(cls, image: StoredImage, public_base: str) -> "ImageItem":
        return cls(
            id=image.image_id,
            filename=image.filename,
            original_name=image.original_name,
            mime_type=image.mime_type,
            size=image.size,
            width=image.width,
            height=image.height,
            url=public_image_url(public_base, image.filename),
            uploaded_at=image.uploaded_at,
        )

class ListImagesResponse(BaseModel):
    total: int
    limit: int
    offset: int
    items: List[ImageItem]
