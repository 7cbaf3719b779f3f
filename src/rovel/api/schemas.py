"""API request/response schemas.

The reader app speaks camelCase JSON; models accept either spelling.
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Shared schemas
# ============================================================================


class HealthResponse(BaseModel):
    status: str
    database: str
    timestamp: datetime


class ActionResponse(BaseModel):
    success: bool = True
    message: str


# ============================================================================
# Lease schemas
# ============================================================================


class UnlockRequest(CamelModel):
    """Grant request; fields are optional so missing ones map to 400, not 422."""

    user_id: Optional[str] = None
    content_id: Optional[Union[int, str]] = None
    chapter_id: Optional[Union[int, str]] = None


class AdCompleteRequest(CamelModel):
    """Ad completion callback; `manga` is a content id or normalized title."""

    user_id: Optional[str] = None
    manga: Optional[Union[int, str]] = None
    chapter_id: Optional[Union[int, str]] = None


class StartTimerRequest(CamelModel):
    user_id: Optional[str] = None
    content_id: Optional[Union[int, str]] = None
    chapter_id: Optional[Union[int, str]] = None
    delay_ms: Optional[int] = Field(None, ge=0, description="Override the default countdown")


class LeaseResponse(CamelModel):
    user_id: str
    content_id: int
    chapter_id: str
    granted_at: datetime
    expires_at: datetime


class UnlockResponse(CamelModel):
    success: bool = True
    message: str
    granted_at: datetime
    expires_at: datetime


class CheckUnlockResponse(BaseModel):
    unlocked: bool


class StartTimerResponse(CamelModel):
    success: bool = True
    message: str
    timer_duration: int


class RefreshLocksResponse(CamelModel):
    success: bool = True
    message: str
    deleted_count: int


# ============================================================================
# Content schemas
# ============================================================================


class ContentResponse(BaseModel):
    id: int
    title: str
    normalized_title: str
    description: Optional[str] = None
    type: str
    cover: Optional[str] = None
    author: str
    genres: str
    status: str
    rating: str
    chapters_count: int
    created_at: datetime
    updated_at: datetime


class ChapterCreateRequest(CamelModel):
    chapter_id: Union[int, str]
    title: Optional[str] = None
    pages: list[str] = Field(default_factory=list)
    content: Optional[str] = None


class ChapterResponse(CamelModel):
    content_id: int
    chapter_id: str
    normalized_title: str
    title: str
    pages: list[str]
    content: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Users, ads, uploads
# ============================================================================


class UserResponse(BaseModel):
    id: str
    type: str
    created_at: datetime
    last_seen: datetime


class GuestUserResponse(BaseModel):
    user: UserResponse


class UploadResponse(CamelModel):
    success: bool = True
    image_id: str
    url: str


AdsConfig = dict[str, Any]
