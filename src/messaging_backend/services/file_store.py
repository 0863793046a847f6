"""Disk-backed storage for chat attachments."""

from __future__ import annotations

import logging
import mimetypes
import secrets
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from messaging_backend.core.errors import NotFoundError, StorageError, ValidationError
from messaging_backend.core.settings import settings
from messaging_backend.db.time import utcnow

logger = logging.getLogger(__name__)

# Upload category -> bucket folder.
CATEGORY_FOLDERS: dict[str, str] = {
    "IMAGE": "images",
    "VIDEO": "videos",
    "AUDIO": "audio",
    "VOICE": "audio",
    "FILE": "documents",
}

# Required content-type prefix per category; None accepts anything.
CATEGORY_CONTENT_PREFIX: dict[str, str | None] = {
    "IMAGE": "image/",
    "VIDEO": "video/",
    "AUDIO": "audio/",
    "VOICE": "audio/",
    "FILE": None,
}

LEGACY_FOLDERS = ("images", "videos", "audio", "documents")
DEFAULT_CONTENT_TYPE = "application/octet-stream"
_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StoredFile:
    """Description of an attachment written to the media root."""

    filename: str
    original_name: str | None
    folder: str
    size: int
    content_type: str | None
    uploaded_at: datetime

    @property
    def url(self) -> str:
        """Return the download path served by the files router."""
        return f"/api/files/{self.folder}/{self.filename}"


class FileStore:
    """Validates uploads and writes them to category-named buckets."""

    def __init__(self, root: str | Path | None = None, max_bytes: int | None = None) -> None:
        self.root = Path(root if root is not None else settings.media_root)
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_upload_bytes

    @staticmethod
    def folder_for(category: str) -> str:
        """Return the bucket folder for an upload category."""
        try:
            return CATEGORY_FOLDERS[category.upper()]
        except KeyError as err:
            raise ValidationError(f"Unsupported file category: {category}") from err

    @staticmethod
    def accepts(category: str, content_type: str | None) -> bool:
        """Return True if ``content_type`` is allowed for ``category``."""
        key = category.upper()
        if key not in CATEGORY_CONTENT_PREFIX:
            return False
        prefix = CATEGORY_CONTENT_PREFIX[key]
        if prefix is None:
            return True
        return bool(content_type) and content_type.startswith(prefix)

    def _generate_name(self, username: str, original_name: str | None) -> str:
        suffix = Path(original_name).suffix if original_name else ""
        stamp = utcnow().strftime("%Y%m%d_%H%M%S")
        return f"{username}_{stamp}_{secrets.token_hex(4)}{suffix}"

    def save(
        self,
        stream: BinaryIO,
        *,
        category: str,
        username: str,
        original_name: str | None,
        content_type: str | None,
        declared_size: int | None = None,
    ) -> StoredFile:
        """Validate and persist an upload.

        Raises:
            ValidationError: For an unknown category, a mismatching content
                type, an empty file or one larger than the configured ceiling.
            StorageError: If the file cannot be written.
        """
        folder = self.folder_for(category)
        if declared_size is not None and declared_size > self.max_bytes:
            raise ValidationError("File size exceeds upload limit")
        if not self.accepts(category, content_type):
            raise ValidationError(f"Invalid file type for {category.upper()}")

        bucket = self.root / folder
        filename = self._generate_name(username, original_name)
        target = bucket / filename
        size = 0
        try:
            bucket.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as out:
                while chunk := stream.read(_CHUNK_SIZE):
                    size += len(chunk)
                    if size > self.max_bytes:
                        break
                    out.write(chunk)
        except OSError as err:
            logger.error("Failed to write upload %s: %s", target, err)
            target.unlink(missing_ok=True)
            raise StorageError("Failed to store file") from err

        if size == 0 or size > self.max_bytes:
            target.unlink(missing_ok=True)
            raise ValidationError("File is empty" if size == 0 else "File size exceeds upload limit")

        logger.info("Stored %s (%d bytes) for %s", target, size, username)
        return StoredFile(
            filename=filename,
            original_name=original_name,
            folder=folder,
            size=size,
            content_type=content_type,
            uploaded_at=utcnow(),
        )

    def _inside_root(self, path: Path) -> bool:
        root = self.root.resolve()
        return path == root or root in path.parents

    def resolve(self, folder: str, filename: str) -> Path:
        """Return the on-disk path of a stored file or raise ``NotFoundError``."""
        path = (self.root / folder / filename).resolve()
        if not self._inside_root(path) or not path.is_file():
            raise NotFoundError("File not found")
        return path

    def resolve_legacy(self, filename: str) -> Path:
        """Find a file by bare name in the known buckets, then the media root."""
        for folder in LEGACY_FOLDERS:
            try:
                return self.resolve(folder, filename)
            except NotFoundError:
                continue
        path = (self.root / filename).resolve()
        if not self._inside_root(path) or not path.is_file():
            raise NotFoundError("File not found")
        return path

    @staticmethod
    def content_type_for(path: Path) -> str:
        """Guess a content type from the file name."""
        guessed, _ = mimetypes.guess_type(path.name)
        return guessed or DEFAULT_CONTENT_TYPE


_file_store: FileStore | None = None


def get_file_store() -> FileStore:
    """Return the process-wide file store."""
    global _file_store
    if _file_store is None:
        _file_store = FileStore()
    return _file_store
