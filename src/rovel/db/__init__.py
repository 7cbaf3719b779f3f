"""Rovel database layer."""

from rovel.db.base import Base, Database, StoreState, UTCDateTime
from rovel.db.tables import (
    AdsConfigTable,
    ChapterTable,
    ContentTable,
    LeaseTable,
    UploadTable,
    UserTable,
)

__all__ = [
    "AdsConfigTable",
    "Base",
    "ChapterTable",
    "ContentTable",
    "Database",
    "LeaseTable",
    "StoreState",
    "UTCDateTime",
    "UploadTable",
    "UserTable",
]
