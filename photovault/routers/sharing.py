"""
Sharing router: collaborators and the album's public link (owner only).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from photovault.database import get_db
from photovault.dependencies.auth import get_current_principal
from photovault.exceptions import AlbumServiceError
from photovault.models.share import ByEmail, ById
from photovault.schemas.share import (
    PublicLinkCreate,
    PublicLinkResponse,
    ShareCreate,
    ShareEntryResponse,
)
from photovault.services.access import Principal
from photovault.services.public_link import PublicLinkService
from photovault.services.sharing import SharingService
from photovault.utils.prometheus_metrics import (
    album_share_operations_total,
    public_link_operations_total,
)

router = APIRouter(prefix="/albums", tags=["Sharing"])


# ============== Collaborators ==============


@router.get(
    "/{album_id}/shares",
    response_model=List[ShareEntryResponse],
    summary="List album collaborators",
)
async def list_shares(
    album_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> List[ShareEntryResponse]:
    """Share entries of an album, oldest first."""
    return await SharingService(db).list_shares(album_id, principal)


@router.post(
    "/{album_id}/shares",
    response_model=ShareEntryResponse,
    status_code=status.HTTP_200_OK,
    summary="Share album with a user or email",
)
async def share_album(
    album_id: int,
    share_data: ShareCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> ShareEntryResponse:
    """
    Share an album with a collaborator.

    - **username** or **email**: Target (exactly one)
    - **permission**: `view` (default) or `edit`
    - **expires_at**: Optional grant expiry

    Sharing again with the same person returns the existing grant unchanged.
    """
    try:
        return await SharingService(db).share_album(album_id, principal, share_data)
    except AlbumServiceError:
        album_share_operations_total.labels(operation="share", result="failure").inc()
        raise


@router.delete(
    "/{album_id}/shares/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Stop sharing with a user",
)
async def unshare_user(
    album_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> None:
    try:
        await SharingService(db).unshare_album(album_id, principal, ById(user_id))
    except AlbumServiceError:
        album_share_operations_total.labels(operation="unshare", result="failure").inc()
        raise


@router.delete(
    "/{album_id}/shares/emails/{email}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Stop sharing with an email address",
)
async def unshare_email(
    album_id: int,
    email: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> None:
    try:
        await SharingService(db).unshare_album(album_id, principal, ByEmail(email))
    except AlbumServiceError:
        album_share_operations_total.labels(operation="unshare", result="failure").inc()
        raise


# ============== Public link ==============


@router.post(
    "/{album_id}/public",
    response_model=PublicLinkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create or rotate the public link",
)
async def create_public_link(
    album_id: int,
    link_data: Optional[PublicLinkCreate] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> PublicLinkResponse:
    """
    Publish an album through a public link.

    - **expires_at** or **expires_in_days**: Optional expiry

    Any previous public link of the album stops working immediately.
    """
    link_data = link_data or PublicLinkCreate()
    try:
        return await PublicLinkService(db).generate_public_token(
            album_id,
            principal,
            expires_at=link_data.expires_at,
            expires_in_days=link_data.expires_in_days,
        )
    except AlbumServiceError:
        public_link_operations_total.labels(operation="generate", result="failure").inc()
        raise


@router.delete(
    "/{album_id}/public",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke the public link",
)
async def revoke_public_link(
    album_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> None:
    """Disable anonymous access. Collaborator shares are kept."""
    try:
        await PublicLinkService(db).revoke_public_access(album_id, principal)
    except AlbumServiceError:
        public_link_operations_total.labels(operation="revoke", result="failure").inc()
        raise
