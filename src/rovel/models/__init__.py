"""Rovel data models."""

from rovel.models.ads import default_ads_config
from rovel.models.content import (
    Chapter,
    ChapterCreate,
    ChapterPayload,
    Content,
    ContentCreate,
    ContentPatch,
    normalize_title,
)
from rovel.models.lease import Lease
from rovel.models.upload import UploadedImage
from rovel.models.user import User

__all__ = [
    "Chapter",
    "ChapterCreate",
    "ChapterPayload",
    "Content",
    "ContentCreate",
    "ContentPatch",
    "Lease",
    "UploadedImage",
    "User",
    "default_ads_config",
    "normalize_title",
]
