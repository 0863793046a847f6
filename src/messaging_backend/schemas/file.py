"""Schemas describing stored attachments."""

from datetime import datetime

from .common import CamelModel


class FileUploadResponse(CamelModel):
    """Metadata returned after an upload has been written to the media store."""

    filename: str
    original_name: str | None
    url: str
    size: int
    type: str | None
    uploaded_by: str
    username: str
    uploaded_at: datetime
