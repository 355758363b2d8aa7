from fastapi import APIRouter, Depends, UploadFile, File, Form, Query
from fastapi.concurrency import run_in_threadpool
from typing import List, Literal, Optional
import logging

from app.auth.identity import Caller
from app.storage.image_store import ImageStore
from app.storage.metadata_store import MetadataStore
from app.dependencies.dependencies import get_caller, get_image_processor, get_image_store, get_metadata_store
from app.image_service.processor import ImageProcessor
from app.image_service.service import (
    AllImages, OwnerScope, handle_upload, list_images, owner_scope_for, to_uploaded_image,
)
from app.image_service.models import ImageRecord, ListImagesResponse, RawUpload, UploadAttributes, UploadedImage
from app.exceptions import NoValidImagesException, StorageFailureException
from app.settings import settings

log = logging.getLogger(__name__)

router = APIRouter(tags=["image-upload-service"])

@router.post("/upload", response_model=List[UploadedImage])
async def upload_images(
    files: Optional[List[UploadFile]] = File(None),
    file: Optional[UploadFile] = File(None),  # single-file form field
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),  # Comma Separated Values
    category: Optional[str] = Form(None),
    caller: Caller = Depends(get_caller),
    processor: ImageProcessor = Depends(get_image_processor),
    metadata_store: MetadataStore = Depends(get_metadata_store),
):
    """Uploads one or more images, returning only the ones that were stored."""
    incoming = list(files or [])
    if file is not None:
        incoming.append(file)

    uploads = []
    for f in incoming:
        if not f.filename:
            continue
        if f.size is not None and f.size > settings.max_upload_bytes:
            # Left unread, the pipeline reports it as too large
            uploads.append(RawUpload(filename=f.filename, content_type=f.content_type, size=f.size))
            continue
        data = await f.read()
        uploads.append(RawUpload(filename=f.filename, content_type=f.content_type, data=data))

    attributes = UploadAttributes.from_form(title, description, tags, category)
    outcomes = await run_in_threadpool(
        handle_upload, uploads, attributes, caller, processor, metadata_store
    )

    stored = [o for o in outcomes if isinstance(o, ImageRecord)]
    if not stored:
        items = [o.model_dump(by_alias=True) for o in outcomes]
        if any(o.code == StorageFailureException.code for o in outcomes):
            raise StorageFailureException("Failed to store uploaded images", items)
        raise NoValidImagesException(items)
    log.info("Upload stored %d of %d files", len(stored), len(outcomes))
    return [to_uploaded_image(r) for r in stored]

@router.get("/images", response_model=ListImagesResponse)
def list_images_handler(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    scope: Literal["all", "mine"] = Query("all"),
    caller: Caller = Depends(get_caller),
    metadata_store: MetadataStore = Depends(get_metadata_store),
    image_store: ImageStore = Depends(get_image_store),
):
    """Lists all images, or only the caller's own with scope=mine."""
    query_scope = owner_scope_for(caller) if scope == "mine" else AllImages()
    return list_images(metadata_store, image_store, page, limit, query_scope)

@router.get("/user/{user_id}", response_model=ListImagesResponse)
def list_user_images(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    metadata_store: MetadataStore = Depends(get_metadata_store),
    image_store: ImageStore = Depends(get_image_store),
):
    """Lists the images uploaded by one user."""
    log.info("Listing images for user %s", user_id)
    return list_images(metadata_store, image_store, page, limit, OwnerScope(user_id))
