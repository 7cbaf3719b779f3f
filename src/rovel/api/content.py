"""REST API router - catalog, users, ads configuration and uploads."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request, Response

from rovel.api.deps import (
    get_ads_service,
    get_catalog,
    get_upload_service,
    get_user_service,
    verify_admin_key,
)
from rovel.api.schemas import (
    ActionResponse,
    AdsConfig,
    ChapterCreateRequest,
    ChapterResponse,
    ContentResponse,
    GuestUserResponse,
    UploadResponse,
    UserResponse,
)
from rovel.engine import AdsConfigService, CatalogService, UploadService, UserService
from rovel.errors import (
    ChapterAlreadyExists,
    ChapterNotFound,
    ContentAlreadyExists,
    ContentNotFound,
    ImageNotFound,
    UserNotFound,
)
from rovel.models import ChapterCreate, ChapterPayload, ContentCreate, ContentPatch

router = APIRouter(prefix="/api")
admin = [Depends(verify_admin_key)]


# ============================================================================
# Content
# ============================================================================


@router.get("/manga", response_model=list[ContentResponse])
async def list_manga(
    type: Optional[str] = Query(None),
    catalog: CatalogService = Depends(get_catalog),
):
    """List all manga/novel titles."""
    return [ContentResponse(**c.model_dump()) for c in await catalog.list_content(type=type)]


@router.get("/data", response_model=list[ContentResponse], include_in_schema=False)
async def list_data(catalog: CatalogService = Depends(get_catalog)):
    """Legacy alias of /api/manga."""
    return [ContentResponse(**c.model_dump()) for c in await catalog.list_content()]


@router.get("/manga/{content_id}", response_model=ContentResponse)
async def get_manga(content_id: int, catalog: CatalogService = Depends(get_catalog)):
    try:
        content = await catalog.get_content(content_id)
    except ContentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return ContentResponse(**content.model_dump())


@router.post("/manga", response_model=ContentResponse, dependencies=admin)
async def create_manga(
    request: ContentCreate,
    catalog: CatalogService = Depends(get_catalog),
):
    try:
        content = await catalog.create_content(request)
    except ContentAlreadyExists as e:
        raise HTTPException(status_code=400, detail=e.message)
    return ContentResponse(**content.model_dump())


@router.put("/manga/{content_id}", response_model=ActionResponse, dependencies=admin)
async def update_manga(
    content_id: int,
    request: ContentPatch,
    catalog: CatalogService = Depends(get_catalog),
):
    """Update only the fields present in the body."""
    try:
        await catalog.update_content(content_id, request)
    except ContentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ContentAlreadyExists as e:
        raise HTTPException(status_code=400, detail=e.message)
    return ActionResponse(message="Content updated successfully")


@router.delete("/manga/{content_id}", response_model=ActionResponse, dependencies=admin)
async def delete_manga(content_id: int, catalog: CatalogService = Depends(get_catalog)):
    try:
        await catalog.delete_content(content_id)
    except ContentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return ActionResponse(message="Content and associated chapters deleted successfully")


# ============================================================================
# Chapters
# ============================================================================


@router.get("/manga/{content_id}/chapters", response_model=dict[str, ChapterPayload])
async def list_chapters(content_id: int, catalog: CatalogService = Depends(get_catalog)):
    """Chapters keyed by chapter id."""
    return await catalog.list_chapters(content_id)


@router.post("/manga/{content_id}/chapters", response_model=ChapterResponse, dependencies=admin)
async def create_chapter(
    content_id: int,
    request: ChapterCreateRequest,
    catalog: CatalogService = Depends(get_catalog),
):
    data = ChapterCreate(
        chapter_id=str(request.chapter_id),
        title=request.title,
        pages=request.pages,
        content=request.content,
    )
    try:
        chapter = await catalog.create_chapter(content_id, data)
    except ContentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ChapterAlreadyExists:
        raise HTTPException(status_code=400, detail="Chapter already exists")
    return ChapterResponse(**chapter.model_dump())


@router.delete(
    "/manga/{content_id}/chapters/{chapter_id}",
    response_model=ActionResponse,
    dependencies=admin,
)
async def delete_chapter(
    content_id: int,
    chapter_id: str,
    catalog: CatalogService = Depends(get_catalog),
):
    try:
        await catalog.delete_chapter(content_id, chapter_id)
    except ChapterNotFound:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return ActionResponse(message="Chapter deleted successfully")


# ============================================================================
# Ads configuration
# ============================================================================


@router.get("/ads-config")
async def get_ads_config(ads: AdsConfigService = Depends(get_ads_service)) -> AdsConfig:
    """Stored ads config, or the built-in default."""
    return await ads.get()


@router.post("/ads-config", response_model=ActionResponse, dependencies=admin)
async def update_ads_config(
    config: AdsConfig = Body(...),
    ads: AdsConfigService = Depends(get_ads_service),
):
    await ads.put(config)
    return ActionResponse(message="Ads config updated successfully")


# ============================================================================
# Users
# ============================================================================


@router.post("/guest-user", response_model=GuestUserResponse)
async def create_guest_user(users: UserService = Depends(get_user_service)):
    user = await users.create_guest()
    return GuestUserResponse(user=UserResponse(**user.model_dump()))


@router.get("/users", response_model=list[UserResponse], dependencies=admin)
async def list_users(users: UserService = Depends(get_user_service)):
    return [UserResponse(**u.model_dump()) for u in await users.list_users()]


@router.delete("/users/{user_id}", response_model=ActionResponse, dependencies=admin)
async def delete_user(user_id: str, users: UserService = Depends(get_user_service)):
    try:
        await users.delete_user(user_id)
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    return ActionResponse(message="User deleted successfully")


# ============================================================================
# Uploads
# ============================================================================


@router.post("/upload", response_model=UploadResponse)
async def upload_image(
    request: Request,
    content_type: Optional[str] = Header(None),
    x_filename: Optional[str] = Header(None, alias="X-Filename"),
    uploads: UploadService = Depends(get_upload_service),
):
    """Store the raw request body as an image."""
    content_length = request.headers.get("content-length", "")
    declared_size = int(content_length) if content_length.isdigit() else None

    data = await uploads.read_body(request.stream(), declared_size=declared_size)
    image = await uploads.store(data, content_type, filename=x_filename)
    return UploadResponse(image_id=image.id, url=f"/api/image/{image.id}")


@router.get("/image/{image_id}")
async def get_image(image_id: str, uploads: UploadService = Depends(get_upload_service)):
    try:
        image = await uploads.get(image_id)
    except ImageNotFound:
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=image.data, media_type=image.content_type)
