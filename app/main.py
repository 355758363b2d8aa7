from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import uvicorn
import logging

from app.auth.identity import FirebaseTokenVerifier
from app.image_service.processor import ImageProcessor
from app.storage.image_store import ImageStore
from app.storage.metadata_store import MetadataStore
from app.settings import settings
from app.routers.image_service import router as image_router
from app.exceptions import add_exception_handlers

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("image-service")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Initializes and closes the stores, processor and token verifier.
    """
    # Initialize resources
    app.state.images = ImageStore(settings.upload_dir)
    app.state.metadata = MetadataStore(settings.metadata_dir)
    app.state.processor = ImageProcessor(
        app.state.images,
        allowed_content_types=settings.allowed_content_type_set,
        compress=settings.compress_uploads,
        quality=settings.jpeg_quality,
    )
    verifier = None
    if settings.firebase_credentials:
        verifier = FirebaseTokenVerifier(settings.firebase_credentials, settings.firebase_project_id)
    else:
        log.warning("FIREBASE_CREDENTIALS not set, all callers are treated as guests")
    app.state.verifier = verifier
    images, metadata = app.state.images, app.state.metadata
    yield
    # Cleanup resources
    if verifier is not None:
        verifier.close()
    images.close()
    metadata.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Image Upload Service",
)

# Add exception handlers
add_exception_handlers(app)

# CORS - Middleware
origins = settings.cors_origin_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Add the routers
app.include_router(image_router)

# Uploaded files
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

# Check Health
@app.get("/health", response_class=PlainTextResponse)
def health():
    """
        Health check end point

    """
    return "OK"

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port, reload=True)
