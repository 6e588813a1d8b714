"""
Public link issuance, revocation and anonymous resolution.
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from photovault.config import get_settings
from photovault.exceptions import (
    AlbumNotFoundError,
    InvalidExpiryError,
    PublicAlbumNotFoundError,
    TokenCollisionError,
)
from photovault.schemas.share import PublicAlbumResponse, PublicLinkResponse
from photovault.services.access import AccessLevel, Principal, require_access
from photovault.services.album import AlbumService
from photovault.utils.clock import to_naive_utc, utcnow
from photovault.utils.logger import log_info
from photovault.utils.prometheus_metrics import (
    public_album_access_duration_seconds,
    public_album_access_total,
    public_link_operations_total,
    public_token_collisions_total,
)
from photovault.utils.retry import retry_async
from photovault.utils.security import generate_public_token, is_well_formed_public_token

logger = logging.getLogger("photovault.public_link")


def build_public_url(token: str) -> str:
    settings = get_settings()
    return f"{settings.frontend_url.rstrip('/')}/album/public/{token}"


class PublicLinkService:
    """
    Service for the album's single public link.
    Issuing a new token replaces the previous one; revoking clears it.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.albums = AlbumService(db)
        self.settings = get_settings()

    async def generate_public_token(
        self,
        album_id: int,
        requester: Principal,
        expires_at: Optional[datetime] = None,
        expires_in_days: Optional[int] = None,
    ) -> PublicLinkResponse:
        """
        Publish an album under a fresh token (owner only).

        Args:
            album_id: Album ID
            requester: Caller (must own the album)
            expires_at: Absolute expiry (UTC)
            expires_in_days: Relative expiry, used when expires_at is not given

        Returns:
            The new token and its public URL

        Raises:
            NotOwnerError: If the caller does not own the album
            InvalidExpiryError: If the expiry is not in the future
            TokenCollisionError: If no unique token could be assigned
        """
        album = await self.albums.load_album(album_id)
        require_access(album, requester, AccessLevel.OWNER)

        now = utcnow()
        expiry = to_naive_utc(expires_at)
        if expiry is None and expires_in_days is not None:
            expiry = now + timedelta(days=expires_in_days)
        if expiry is not None and expiry <= now:
            raise InvalidExpiryError()

        async def assign() -> str:
            token = generate_public_token(self.settings.public_token_bytes)
            updated = await self.albums.store.set_public_link(
                album_id, album.owner_id, token, expiry
            )
            if not updated:
                raise AlbumNotFoundError()
            return token

        def on_collision(attempt: int, exc: Exception) -> None:
            public_token_collisions_total.inc()

        token = await retry_async(
            assign,
            max_attempts=self.settings.public_token_max_attempts,
            retryable_exceptions=(TokenCollisionError,),
            target="public_link.assign",
            on_retry=on_collision,
        )

        public_link_operations_total.labels(operation="generate", result="success").inc()
        log_info(
            "Public link issued",
            event="public_link",
            album_id=album_id,
            user_id=requester.user_id,
            has_expiry=expiry is not None,
        )

        return PublicLinkResponse(
            album_id=album_id,
            public_token=token,
            public_url=build_public_url(token),
            expires_at=expiry,
        )

    async def revoke_public_access(self, album_id: int, requester: Principal) -> None:
        """Disable anonymous access (owner only). Revoking twice is fine."""
        album = await self.albums.load_album(album_id)
        require_access(album, requester, AccessLevel.OWNER)

        was_public = album.is_public or album.public_token is not None
        await self.albums.store.clear_public_link(album_id, album.owner_id)

        public_link_operations_total.labels(
            operation="revoke", result="success" if was_public else "noop"
        ).inc()
        log_info("Public link revoked", event="public_link", album_id=album_id, user_id=requester.user_id)

    async def resolve_public_album(self, token: str) -> PublicAlbumResponse:
        """
        Look up an album by public token for anonymous viewers.

        Raises:
            PublicAlbumNotFoundError: For unknown, malformed, revoked or expired tokens
        """
        start_time = time.time()
        token_status = "valid"
        try:
            if not is_well_formed_public_token(token, self.settings.public_token_bytes):
                token_status = "malformed"
                raise PublicAlbumNotFoundError()

            album = await self.albums.store.find_by_public_token(token)
            if album is None:
                token_status = "unknown"
                raise PublicAlbumNotFoundError()
            if not album.is_public:
                token_status = "revoked"
                raise PublicAlbumNotFoundError()
            if album.public_expires_at is not None and album.public_expires_at <= utcnow():
                token_status = "expired"
                raise PublicAlbumNotFoundError()
        except PublicAlbumNotFoundError:
            public_album_access_total.labels(token_status=token_status, result="not_found").inc()
            public_album_access_duration_seconds.labels(result="not_found").observe(
                time.time() - start_time
            )
            logger.info(
                "Public album lookup failed",
                extra={"event": "public_access", "token_status": token_status},
            )
            raise

        public_album_access_total.labels(token_status=token_status, result="success").inc()
        public_album_access_duration_seconds.labels(result="success").observe(
            time.time() - start_time
        )

        return PublicAlbumResponse(
            id=album.id,
            title=album.title,
            description=album.description,
            cover_photo_id=album.cover_photo_id,
            photo_ids=album.photo_ids,
            photo_count=len(album.photo_associations),
            created_at=album.created_at,
        )
