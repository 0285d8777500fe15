"""
Local file storage for uploads (images, documents, videos).

Files are written under UPLOAD_DIR/<category>/YYYY/MM/ with a date-prefixed
random name so user-supplied filenames never reach the filesystem.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os

from infohub.core.config import settings
from infohub.core.exceptions import InvalidFileTypeError, StorageError, ValidationError
from infohub.core.logging_config import logger

IMAGE_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
DOCUMENT_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".txt": "text/plain",
    ".csv": "text/csv",
}
VIDEO_TYPES = {
    ".mp4": "video/mp4",
}

ALLOWED_TYPES = {**IMAGE_TYPES, **DOCUMENT_TYPES, **VIDEO_TYPES}


def file_category(extension: str) -> str:
    if extension in IMAGE_TYPES:
        return "images"
    if extension in VIDEO_TYPES:
        return "videos"
    return "documents"


@dataclass
class StoredFile:
    original_name: str
    stored_path: str  # relative to the upload root, posix separators
    size: int
    content_type: str
    category: str

    @property
    def url(self) -> str:
        return f"/api/v1/files/{self.stored_path}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalName": self.original_name,
            "path": self.stored_path,
            "url": self.url,
            "size": self.size,
            "contentType": self.content_type,
            "category": self.category,
        }


class FileStorage:
    """Stores uploads on local disk"""

    def __init__(self, base_path: Optional[Path] = None, max_size_mb: Optional[int] = None):
        self.base_path = Path(base_path or settings.UPLOAD_PATH)
        self.max_size = (max_size_mb or settings.MAX_UPLOAD_SIZE_MB) * 1024 * 1024

    def validate(self, filename: str, size: int, allowed: Optional[Dict[str, str]] = None,
                 max_size: Optional[int] = None) -> str:
        """Return the normalized extension, raising if the file is not acceptable"""
        allowed = allowed or ALLOWED_TYPES
        max_size = max_size or self.max_size
        extension = Path(filename or "").suffix.lower()
        if extension not in allowed:
            raise InvalidFileTypeError(extension or "unknown", sorted(allowed))
        if size <= 0:
            raise ValidationError("File is empty", field="file")
        if size > max_size:
            raise ValidationError(
                f"File too large (max {max_size // 1024 // 1024}MB)", field="file"
            )
        return extension

    def _generate_name(self, extension: str) -> str:
        stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
        return f"{stamp}_{secrets.token_hex(8)}{extension}"

    def resolve(self, relative_path: str) -> Path:
        """Map a stored path back to disk, refusing anything outside the upload root"""
        root = self.base_path.resolve()
        candidate = (root / relative_path.lstrip("/")).resolve()
        if candidate != root and root not in candidate.parents:
            raise ValidationError("Invalid file path", field="path")
        return candidate

    async def save(
        self,
        filename: str,
        content: bytes,
        folder: Optional[str] = None,
        allowed: Optional[Dict[str, str]] = None,
        max_size: Optional[int] = None,
    ) -> StoredFile:
        """Write an upload to disk; `folder` replaces the default per-category directory"""
        extension = self.validate(filename, len(content), allowed, max_size)
        category = file_category(extension)
        now = datetime.utcnow()
        relative = Path(folder or category) / f"{now:%Y}" / f"{now:%m}" / self._generate_name(extension)
        full_path = self.resolve(relative.as_posix())

        try:
            await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
            async with aiofiles.open(full_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error(f"[Storage] Failed to write {relative}: {e}")
            raise StorageError("Failed to store uploaded file")

        logger.info(f"[Storage] Stored {filename} as {relative.as_posix()} ({len(content)} bytes)")
        return StoredFile(
            original_name=filename,
            stored_path=relative.as_posix(),
            size=len(content),
            content_type=ALLOWED_TYPES[extension],
            category=category,
        )

    async def read(self, relative_path: str) -> Optional[bytes]:
        full_path = self.resolve(relative_path)
        if not full_path.is_file():
            return None
        async with aiofiles.open(full_path, "rb") as f:
            return await f.read()

    async def delete(self, relative_path: str) -> bool:
        full_path = self.resolve(relative_path)
        if not full_path.is_file():
            return False
        await aiofiles.os.remove(full_path)
        return True

    @staticmethod
    def content_type_for(relative_path: str) -> str:
        return ALLOWED_TYPES.get(Path(relative_path).suffix.lower(), "application/octet-stream")


file_storage = FileStorage()
