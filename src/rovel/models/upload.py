"""Uploaded image model."""

from datetime import datetime

from pydantic import BaseModel


class UploadedImage(BaseModel):
    id: str
    filename: str | None = None
    content_type: str
    data: bytes
    size: int
    uploaded_at: datetime
