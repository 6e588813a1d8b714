"""
Public router for anonymous album access through a public link.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from photovault.config import get_settings
from photovault.database import get_db
from photovault.middlewares.rate_limit_middleware import get_rate_limit_decorator
from photovault.schemas.share import PublicAlbumResponse
from photovault.services.public_link import PublicLinkService

logger = logging.getLogger("photovault.public")
router = APIRouter(prefix="/public", tags=["Public Albums"])

# 토큰 추측 방지용 rate limit
public_rate_limit = get_rate_limit_decorator(f"{get_settings().rate_limit_public_per_minute}/minute")


@router.get(
    "/albums/{token}",
    response_model=PublicAlbumResponse,
    summary="View a public album",
)
@public_rate_limit
async def get_public_album(
    token: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> PublicAlbumResponse:
    """
    View an album published through a public link.

    - **token**: The public token (from the public URL)

    This endpoint does not require authentication. Unknown, revoked and
    expired links all answer 404 with the same message.
    """
    return await PublicLinkService(db).resolve_public_album(token)
