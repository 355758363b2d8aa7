from io import BytesIO
from typing import Iterable, Optional, Tuple
import logging
from PIL import Image, ImageOps

from app.storage.image_store import DECODE_ERRORS, ImageStore
from app.image_service.models import ProcessedImage
from app.exceptions import InvalidImageException, UnsupportedFormatException, StorageFailureException

log = logging.getLogger(__name__)

MIME_MAP = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

def open_image(data: bytes) -> Image.Image:
    """Decodes raw bytes fully, raising InvalidImageException on corrupt data."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
        return img
    except DECODE_ERRORS as e:
        raise InvalidImageException(f"Invalid image file: {e}")

def compress_image(img: Image.Image, quality: int) -> bytes:
    """Re-encodes an image as a baseline JPEG at the given quality."""
    img = ImageOps.exif_transpose(img)
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        flattened = Image.new("RGB", rgba.size, (255, 255, 255))
        flattened.paste(rgba, mask=rgba.split()[-1])
        img = flattened
    elif img.mode != "RGB":
        img = img.convert("RGB")
    buffer = BytesIO()
    img.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()

def read_dimensions(data: bytes) -> Tuple[int, int]:
    """Returns (width, height) of encoded image bytes."""
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
    except DECODE_ERRORS as e:
        raise InvalidImageException(f"Could not read image dimensions: {e}")
    if width <= 0 or height <= 0:
        raise InvalidImageException(f"Invalid image dimensions: {width}x{height}")
    return width, height


class ImageProcessor:
    def __init__(
        self,
        store: ImageStore,
        allowed_content_types: Iterable[str] = ("image/jpeg", "image/png", "image/gif"),
        compress: bool = True,
        quality: int = 80,
    ):
        self.store = store
        self.allowed_content_types = {t.lower() for t in allowed_content_types}
        self.compress = compress
        self.quality = quality

    def validate_image_bytes(self, data: bytes, content_type: Optional[str]) -> Tuple[Image.Image, str]:
        """Validate that the uploaded file is a real image of a supported type."""
        declared = (content_type or "").split(";")[0].strip().lower()
        if declared not in self.allowed_content_types:
            raise UnsupportedFormatException(f"Unsupported content type: {content_type}")
        img = open_image(data)
        mime_type = MIME_MAP.get((img.format or "").upper())
        if mime_type not in self.allowed_content_types:
            raise UnsupportedFormatException(f"Unsupported image type: {img.format}")
        return img, mime_type

    def process(self, data: bytes, content_type: Optional[str], image_id: str) -> ProcessedImage:
        """Validates, optionally compresses and durably stores one upload as ``<image_id>.<ext>``."""
        img, mime_type = self.validate_image_bytes(data, content_type)

        if self.compress:
            try:
                data = compress_image(img, self.quality)
            except (OSError, ValueError) as e:
                raise InvalidImageException(f"Could not re-encode image: {e}")
            mime_type = "image/jpeg"

        width, height = read_dimensions(data)
        stored_filename = f"{image_id}.{EXTENSIONS[mime_type]}"

        try:
            self.store.write(stored_filename, data)
        except OSError as e:
            log.error("Failed to write %s: %s", stored_filename, e)
            self.store.delete(stored_filename)
            raise StorageFailureException(f"Failed to store image: {e}")

        log.info("Stored %s (%dx%d, %d bytes)", stored_filename, width, height, len(data))
        return ProcessedImage(
            width=width,
            height=height,
            stored_filename=stored_filename,
            content_type=mime_type,
            size=len(data),
        )
