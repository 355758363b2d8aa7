import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Union
from pydantic import ValidationError
from app.settings import settings
from app.image_service.models import ImageRecord
import logging

log = logging.getLogger(__name__)

# -------------------------
# Metadata store
# -------------------------
class MetadataStore:
    """One JSON document per ImageRecord, named after the record id."""

    def __init__(self, directory: Union[str, Path, None] = None):
        self.directory = Path(directory or settings.metadata_dir)
        log.info("Initialized metadata store at %s", self.directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, image_id: str) -> Path:
        return self.directory / f"{Path(image_id).name}.json"

    def put_metadata(self, record: ImageRecord):
        """Persists a new record. Records are write-once, an existing id raises FileExistsError."""
        payload = json.dumps(record.model_dump(mode="json", by_alias=True), indent=2)
        path = self._path(record.id)
        # "x" fails instead of overwriting a record with the same id
        f = path.open("x", encoding="utf-8")
        try:
            with f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        log.debug("Inserted metadata %s", record.id)

    def get_metadata(self, image_id: str) -> Optional[ImageRecord]:
        path = self._path(image_id)
        if not path.is_file():
            return None
        return self._load(path)

    def scan_metadata(self, filter_expression: Optional[Dict[str, str]] = None) -> List[ImageRecord]:
        """Returns every readable record, optionally matching field equality filters.

        Raises OSError when the directory itself cannot be read.
        """
        records = []
        with os.scandir(self.directory) as entries:
            for entry in entries:
                if not entry.name.endswith(".json") or not entry.is_file():
                    continue
                record = self._load(Path(entry.path))
                if record is None:
                    continue
                if filter_expression and any(
                    getattr(record, k, None) != v for k, v in filter_expression.items()
                ):
                    continue
                records.append(record)
        records.sort(key=lambda r: (r.created_at, r.id))
        return records

    def _load(self, path: Path) -> Optional[ImageRecord]:
        try:
            with path.open("r", encoding="utf-8") as f:
                return ImageRecord.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            log.warning("Skipping unreadable metadata %s: %s", path.name, e)
            return None

    def close(self):
        log.info("Closed metadata store")
