from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, TypeVar, Union
import logging
import math

from app.auth.identity import Caller, Authenticated
from app.storage.image_store import ImageStore
from app.storage.metadata_store import MetadataStore
from app.image_service.processor import ImageProcessor
from app.image_service.models import (
    ImageRecord, ImageItem, ImageSource, ItemError, ListImagesResponse,
    RawUpload, UploadAttributes, UploadOutcome, UploadedImage, new_image_id,
)
from app.settings import settings
from app.exceptions import (
    APIException, FileTooLargeException, NoFilesProvidedException,
    StorageFailureException, TooManyFilesException, UnauthorizedException,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

@dataclass(frozen=True)
class AllImages:
    pass

@dataclass(frozen=True)
class OwnerScope:
    owner_id: Optional[str]

Scope = Union[AllImages, OwnerScope]

def owner_scope_for(caller: Caller) -> OwnerScope:
    """Scope for the caller's own images; anonymous callers own nothing."""
    if isinstance(caller, Authenticated):
        return OwnerScope(caller.uid)
    return OwnerScope(None)

# ------------------------------
# Upload pipeline
# ------------------------------

def handle_upload(
    files: Sequence[RawUpload],
    attributes: UploadAttributes,
    caller: Caller,
    processor: ImageProcessor,
    metadata_store: MetadataStore,
    max_files: Optional[int] = None,
    max_bytes: Optional[int] = None,
    require_auth: Optional[bool] = None,
) -> List[UploadOutcome]:
    """Processes every file independently and returns one outcome per file, in order."""
    max_files = settings.max_upload_files if max_files is None else max_files
    max_bytes = settings.max_upload_bytes if max_bytes is None else max_bytes
    require_auth = settings.upload_requires_auth if require_auth is None else require_auth

    if require_auth and not isinstance(caller, Authenticated):
        raise UnauthorizedException()
    if not files:
        raise NoFilesProvidedException()
    if len(files) > max_files:
        raise TooManyFilesException(max_files)

    owner_id = caller.uid if isinstance(caller, Authenticated) else None
    outcomes: List[UploadOutcome] = []
    for upload in files:
        try:
            outcomes.append(save_image_and_meta(upload, attributes, owner_id, processor, metadata_store, max_bytes))
        except APIException as e:
            log.warning("Rejected %s: %s", upload.filename, e.detail)
            outcomes.append(ItemError(filename=upload.filename, error=e.detail, code=e.code))
    return outcomes

def save_image_and_meta(
    upload: RawUpload,
    attributes: UploadAttributes,
    owner_id: Optional[str],
    processor: ImageProcessor,
    metadata_store: MetadataStore,
    max_bytes: int,
) -> ImageRecord:
    """Processes a single upload and commits its metadata record."""
    if upload.byte_size > max_bytes:
        raise FileTooLargeException(upload.filename, max_bytes)

    image_id = new_image_id()
    processed = processor.process(upload.data, upload.content_type, image_id)

    record = ImageRecord(
        id=image_id,
        owner_id=owner_id,
        title=attributes.title,
        description=attributes.description,
        tags=list(attributes.tags),
        category=attributes.category,
        width=processed.width,
        height=processed.height,
        stored_filename=processed.stored_filename,
        original_filename=upload.filename,
        content_type=processed.content_type,
        size=processed.size,
    )
    try:
        metadata_store.put_metadata(record)
    except OSError as e:
        log.error(f"put_metadata failed for {image_id}: {e}")
        processor.store.delete(processed.stored_filename)
        raise StorageFailureException(f"Failed to save image metadata: {e}")

    log.info("Saved image metadata %s", record.id)
    return record

# ------------------------------
# Listing
# ------------------------------

def image_url(stored_filename: str, base_url: Optional[str] = None) -> str:
    base = (settings.base_url if base_url is None else base_url).rstrip("/")
    return f"{base}/uploads/{stored_filename}"

def display_height(width: int, height: int, display_width: Optional[int] = None) -> float:
    """Height of the image when scaled to the fixed display width."""
    target = settings.display_width if display_width is None else display_width
    return height * (target / width)

def paginate(items: Sequence[T], page: int, limit: int) -> Tuple[List[T], int, int]:
    """Returns (page_items, total_items, total_pages) for a 1-based page."""
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")
    total_items = len(items)
    total_pages = math.ceil(total_items / limit)
    start = (page - 1) * limit
    end = min(page * limit, total_items)
    return list(items[start:end]), total_items, total_pages

def to_uploaded_image(record: ImageRecord) -> UploadedImage:
    return UploadedImage(
        id=record.id,
        owner_id=record.owner_id,
        title=record.title,
        description=record.description,
        tags=record.tags,
        category=record.category,
        width=record.width,
        height=record.height,
        created_at=record.created_at,
        src=ImageSource(large=image_url(record.stored_filename)),
    )

def to_item(record: ImageRecord) -> ImageItem:
    return ImageItem(
        **to_uploaded_image(record).model_dump(),
        display_height=display_height(record.width, record.height),
    )

def fetch_images(metadata_store: MetadataStore, image_store: ImageStore, scope: Scope) -> List[ImageRecord]:
    """Reads the records visible in the scope whose image files are still readable."""
    if isinstance(scope, OwnerScope):
        if scope.owner_id is None:
            return []
        filters = {"owner_id": scope.owner_id}
    else:
        filters = None

    try:
        records = metadata_store.scan_metadata(filter_expression=filters)
    except OSError as e:
        log.error(f"scan_metadata failed: {e}")
        raise StorageFailureException("Failed to read images")

    visible = []
    for record in records:
        if image_store.is_readable(record.stored_filename):
            visible.append(record)
        else:
            log.warning("Image file missing or unreadable for %s, skipping", record.id)
    return visible

def list_images(
    metadata_store: MetadataStore,
    image_store: ImageStore,
    page: int,
    limit: int,
    scope: Scope,
) -> ListImagesResponse:
    """Lists one page of images in the scope, oldest first."""
    records = fetch_images(metadata_store, image_store, scope)
    page_records, total_items, total_pages = paginate(records, page, limit)
    return ListImagesResponse(
        current_page=page,
        total_pages=total_pages,
        total_items=total_items,
        data=[to_item(r) for r in page_records],
    )
