from typing import List, Optional, Union
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from uuid import uuid4

def new_image_id() -> str:
    """Generates a new unique image ID."""
    return uuid4().hex

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class UploadAttributes(BaseModel):
    """Descriptive fields supplied by the uploader."""
    title: str = "Untitled"
    description: str = "No description"
    tags: List[str] = []
    category: Optional[str] = None

    @classmethod
    def from_form(
        cls,
        title: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[str] = None,
        category: Optional[str] = None,
    ) -> "UploadAttributes":
        tags_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else []
        attributes = cls(tags=tags_list, category=category or None)
        if title:
            attributes.title = title
        if description:
            attributes.description = description
        return attributes

class RawUpload(BaseModel):
    filename: str
    content_type: Optional[str] = None
    data: bytes = b""
    # Declared size, set when the body was not read
    size: Optional[int] = None

    @property
    def byte_size(self) -> int:
        return self.size if self.size is not None else len(self.data)

class ProcessedImage(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    stored_filename: str
    content_type: str
    size: int

class ImageRecord(CamelModel):
    id: str = Field(default_factory=new_image_id)
    owner_id: Optional[str] = None
    title: str = "Untitled"
    description: str = "No description"
    tags: List[str] = []
    category: Optional[str] = None
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    stored_filename: str
    original_filename: Optional[str] = None
    content_type: str
    size: int
    created_at: datetime = Field(default_factory=utcnow)

class ItemError(CamelModel):
    filename: str
    error: str
    code: str

UploadOutcome = Union[ImageRecord, ItemError]

class ImageSource(CamelModel):
    large: str

class UploadedImage(CamelModel):
    id: str
    owner_id: Optional[str] = None
    title: str
    description: str
    tags: List[str]
    category: Optional[str] = None
    width: int
    height: int
    created_at: datetime
    src: ImageSource

class ImageItem(UploadedImage):
    display_height: float

class ListImagesResponse(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    data: List[ImageItem]
