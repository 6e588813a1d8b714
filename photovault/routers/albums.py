"""
Albums router for album management and album photo membership.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from photovault.database import get_db
from photovault.dependencies.auth import get_current_principal
from photovault.exceptions import AlbumServiceError
from photovault.schemas.album import (
    AlbumCreate,
    AlbumDetail,
    AlbumListResponse,
    AlbumPhotoAdd,
    AlbumPhotoRemove,
    AlbumUpdate,
    MembershipResult,
)
from photovault.services.access import Principal
from photovault.services.album import AlbumService
from photovault.services.membership import MembershipService
from photovault.utils.prometheus_metrics import (
    album_operations_total,
    album_photo_operations_total,
)

router = APIRouter(prefix="/albums", tags=["Albums"])


@router.post(
    "/",
    response_model=AlbumDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new album",
)
async def create_album(
    album_data: AlbumCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AlbumDetail:
    """
    Create a new photo album.

    - **title**: Album title (required)
    - **description**: Optional album description
    """
    try:
        return await AlbumService(db).create_album(principal, album_data)
    except AlbumServiceError:
        # 메트릭 수집: 앨범 생성 실패
        album_operations_total.labels(operation="create", result="failure").inc()
        raise


@router.get(
    "/",
    response_model=AlbumListResponse,
    summary="Get owned and shared albums",
)
async def get_albums(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AlbumListResponse:
    """
    Albums owned by the current user, and albums other users shared with
    them (by account or by email) whose grant has not expired.
    """
    return await AlbumService(db).list_albums(principal)


@router.get(
    "/{album_id}",
    response_model=AlbumDetail,
    summary="Get album with photos",
)
async def get_album(
    album_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AlbumDetail:
    """
    Get a specific album with its ordered photo ids.

    - **album_id**: ID of the album to retrieve

    The owner also sees the share list and the public link fields.
    Albums the caller cannot see answer 404.
    """
    return await AlbumService(db).get_album(album_id, principal)


@router.patch(
    "/{album_id}",
    response_model=AlbumDetail,
    summary="Update album",
)
async def update_album(
    album_id: int,
    update_data: AlbumUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AlbumDetail:
    """
    Update an album's metadata (owner only).

    - **title**: New album title (optional)
    - **description**: New description (optional, empty string clears it)
    - **cover_photo_id**: Photo in the album to use as cover (optional, null clears it)
    """
    try:
        return await AlbumService(db).update_album(album_id, principal, update_data)
    except AlbumServiceError:
        # 메트릭 수집: 앨범 수정 실패
        album_operations_total.labels(operation="update", result="failure").inc()
        raise


@router.delete(
    "/{album_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete album",
)
async def delete_album(
    album_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> None:
    """
    Delete an album (owner only).

    Note: This only deletes the album, not the photos in it.
    """
    try:
        await AlbumService(db).delete_album(album_id, principal)
    except AlbumServiceError:
        # 메트릭 수집: 앨범 삭제 실패
        album_operations_total.labels(operation="delete", result="failure").inc()
        raise


# ============== Album Photos ==============


@router.post(
    "/{album_id}/photos",
    response_model=MembershipResult,
    summary="Add photos to album",
)
async def add_photos_to_album(
    album_id: int,
    photo_data: AlbumPhotoAdd,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> MembershipResult:
    """
    Add photos to an album (owner or Edit collaborator).

    - **photo_ids**: List of photo IDs to add

    Only photos owned by the album owner can be added. Photos already in the
    album are skipped.
    """
    try:
        return await MembershipService(db).add_photos(album_id, principal, photo_data.photo_ids)
    except AlbumServiceError:
        # 메트릭 수집: 앨범에 사진 추가 실패
        album_photo_operations_total.labels(operation="add", result="failure").inc()
        raise


@router.delete(
    "/{album_id}/photos",
    response_model=MembershipResult,
    summary="Remove photos from album",
)
async def remove_photos_from_album(
    album_id: int,
    photo_data: AlbumPhotoRemove,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> MembershipResult:
    """
    Remove photos from an album (owner or Edit collaborator).

    Note: This only removes photos from the album, not from the system.
    """
    try:
        return await MembershipService(db).remove_photos(album_id, principal, photo_data.photo_ids)
    except AlbumServiceError:
        # 메트릭 수집: 앨범에서 사진 제거 실패
        album_photo_operations_total.labels(operation="remove", result="failure").inc()
        raise
