from typing import Optional
from fastapi import Header, Request, Depends
from app.auth.identity import Caller, TokenVerifier, resolve_caller
from app.image_service.processor import ImageProcessor
from app.storage.image_store import ImageStore
from app.storage.metadata_store import MetadataStore

def get_image_store(request: Request) -> ImageStore:
    """Dependency provider for ImageStore"""
    return request.app.state.images

def get_metadata_store(request: Request) -> MetadataStore:
    """Dependency provider for MetadataStore"""
    return request.app.state.metadata

def get_image_processor(request: Request) -> ImageProcessor:
    """Dependency provider for ImageProcessor"""
    return request.app.state.processor

def get_token_verifier(request: Request) -> Optional[TokenVerifier]:
    """Dependency provider for the identity token verifier, None when auth is not configured"""
    return getattr(request.app.state, "verifier", None)

def get_caller(
    authorization: Optional[str] = Header(None),
    verifier: Optional[TokenVerifier] = Depends(get_token_verifier),
) -> Caller:
    """Resolves the caller, anonymous when no valid bearer token is present"""
    return resolve_caller(authorization, verifier)
