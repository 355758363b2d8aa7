import os
import tempfile
import time
from pathlib import Path
from typing import Union
from PIL import Image, UnidentifiedImageError
from app.settings import settings
import logging

log = logging.getLogger(__name__)

TEMP_PREFIX = ".incoming-"
# Temp files younger than this may belong to a write in progress
STALE_TEMP_SECONDS = 3600

DECODE_ERRORS = (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError)

# -------------------------
# Image file store
# -------------------------
class ImageStore:
    def __init__(self, directory: Union[str, Path, None] = None):
        self.directory = Path(directory or settings.upload_dir)
        log.info("Initialized image store at %s", self.directory)

        # Ensure directory exists at initialization
        self.ensure_directory()

    def ensure_directory(self):
        if not self.directory.exists():
            self.directory.mkdir(parents=True, exist_ok=True)
            log.info("Created upload directory %s", self.directory)
        self.remove_stale_temp_files()

    def remove_stale_temp_files(self, max_age: float = STALE_TEMP_SECONDS):
        # Leftovers from a process that died mid-write
        cutoff = time.time() - max_age
        for path in self.directory.glob(f"{TEMP_PREFIX}*"):
            try:
                if path.stat().st_mtime > cutoff:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            log.warning("Removed stale temp file %s", path.name)

    def path_for(self, filename: str) -> Path:
        name = Path(filename).name
        if not name or name != filename:
            raise ValueError(f"Invalid stored filename: {filename!r}")
        return self.directory / name

    def write(self, filename: str, data: bytes) -> Path:
        """Writes the bytes under a temp name and renames them into place."""
        target = self.path_for(filename)
        fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log.debug("Wrote %s (%d bytes)", target, len(data))
        return target

    def exists(self, filename: str) -> bool:
        try:
            return self.path_for(filename).is_file()
        except ValueError:
            return False

    def is_readable(self, filename: str) -> bool:
        """True when the file exists and its header decodes to a non-empty image."""
        if not self.exists(filename):
            return False
        try:
            with Image.open(self.path_for(filename)) as img:
                width, height = img.size
        except DECODE_ERRORS as e:
            log.warning("Unreadable image %s: %s", filename, e)
            return False
        return width > 0 and height > 0

    def delete(self, filename: str):
        self.path_for(filename).unlink(missing_ok=True)
        log.debug("Deleted %s", filename)

    def close(self):
        log.info("Closed image store")
