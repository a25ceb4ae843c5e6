import logging
import random
import time
from pathlib import Path

from fastapi import UploadFile

from alumnilink.config import settings
from alumnilink.errors import ValidationError

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads"


def is_allowed_type(content_type: str) -> bool:
    return bool(content_type) and (content_type.startswith("image/") or content_type == "application/pdf")


class FileStorage:
    """Stores message attachments on local disk and hands back their URL."""

    def __init__(self, upload_dir: str = None, max_size: int = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.max_size = max_size or settings.MAX_UPLOAD_SIZE
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def _unique_name(self, original_name: str) -> str:
        suffix = Path(original_name or "").suffix.lower()
        return f"file-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{suffix}"

    async def save(self, upload: UploadFile) -> str:
        if upload is None or not upload.filename:
            raise ValidationError("No file uploaded")
        if not is_allowed_type(upload.content_type):
            raise ValidationError("Only images and PDF files are allowed")

        # One byte past the limit is enough to detect oversize files
        data = await upload.read(self.max_size + 1)
        if len(data) > self.max_size:
            raise ValidationError(f"File exceeds the {self.max_size // (1024 * 1024)}MB limit")

        name = self._unique_name(upload.filename)
        (self.upload_dir / name).write_bytes(data)
        logger.info("Stored upload %s (%d bytes)", name, len(data))
        return f"{UPLOAD_URL_PREFIX}/{name}"
