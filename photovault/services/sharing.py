"""
Collaborator sharing: granting and removing per-principal album access.
"""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from photovault.exceptions import (
    ConflictError,
    InvalidExpiryError,
    InvalidShareTargetError,
    UserNotFoundError,
)
from photovault.models.share import (
    AlbumShare,
    ByEmail,
    ById,
    SharePermission,
    SharePrincipal,
)
from photovault.schemas.share import ShareCreate, ShareEntryResponse
from photovault.services.access import AccessLevel, Principal, require_access
from photovault.services.album import AlbumService
from photovault.services.users import UserService
from photovault.utils.clock import to_naive_utc, utcnow
from photovault.utils.logger import log_info
from photovault.utils.prometheus_metrics import album_share_operations_total

logger = logging.getLogger("photovault.sharing")


class SharingService:
    """
    Service for managing who an album is shared with.
    Only the album owner may change sharing; repeated grants are no-ops.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.albums = AlbumService(db)
        self.users = UserService(db)

    async def resolve_target(
        self,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> SharePrincipal:
        """
        Turn a share target into a principal.

        A username must name a registered user. An email that belongs to a
        registered user collapses to that user's id, so sharing by email and
        by username reach the same entry; an unknown email stays email-keyed.

        Raises:
            UserNotFoundError: If the username is unknown
        """
        if username is not None:
            user = await self.users.find_by_username(username)
            if user is None:
                raise UserNotFoundError()
            return ById(user.id)

        if email is None:
            raise ValueError("username or email is required")

        user = await self.users.find_by_email(email)
        if user is not None:
            return ById(user.id)
        return ByEmail(email)

    async def share_album(
        self,
        album_id: int,
        requester: Principal,
        share_data: ShareCreate,
    ) -> ShareEntryResponse:
        """
        Share an album with a user or an email address.

        Args:
            album_id: Album to share
            requester: Caller (must own the album)
            share_data: Target and permission

        Returns:
            The stored entry for that principal. When the principal already had
            an entry it is returned unchanged.

        Raises:
            NotOwnerError: If the caller does not own the album
            UserNotFoundError: If a username target does not exist
            InvalidShareTargetError: If the target is the owner
            ConflictError: If the entry was removed concurrently before it could be returned
        """
        album = await self.albums.load_album(album_id)
        require_access(album, requester, AccessLevel.OWNER)

        expires_at = to_naive_utc(share_data.expires_at)
        now = utcnow()
        if expires_at is not None and expires_at <= now:
            raise InvalidExpiryError()

        principal = await self.resolve_target(
            username=share_data.username,
            email=str(share_data.email) if share_data.email is not None else None,
        )
        if principal == ById(album.owner_id):
            raise InvalidShareTargetError()

        permission = SharePermission(share_data.permission)
        existing = self._find_entry(album.shares, principal)
        if existing is None:
            entry = AlbumShare.for_principal(
                principal,
                permission,
                expires_at=expires_at,
                album_id=album_id,
                shared_at=now,
            )
            created = await self.albums.store.insert_share_if_absent(entry)
        elif not existing.is_live(now):
            # 만료된 grant는 새 grant로 갱신
            created = await self.albums.store.renew_expired_share(
                album_id, principal, permission, expires_at, now
            )
        else:
            created = False

        if created:
            await self.albums.store.touch(album_id)

        album_share_operations_total.labels(
            operation="share", result="created" if created else "noop"
        ).inc()
        if created:
            log_info(
                "Album shared",
                event="share",
                album_id=album_id,
                user_id=requester.user_id,
                target_kind="user" if isinstance(principal, ById) else "email",
                permission=SharePermission(share_data.permission).value,
            )

        album = await self.albums.load_album(album_id)
        stored = self._find_entry(album.shares, principal)
        if stored is None:
            # 동시 unshare로 entry가 사라짐
            raise ConflictError()
        return ShareEntryResponse.model_validate(stored)

    async def unshare_album(
        self,
        album_id: int,
        requester: Principal,
        principal: SharePrincipal,
    ) -> bool:
        """
        Remove a principal's entry (owner only).

        An email that belongs to a registered user also reaches the entry
        keyed by that user's id, since sharing by email stores it that way.

        Returns:
            True if an entry was removed, False if there was none
        """
        album = await self.albums.load_album(album_id)
        require_access(album, requester, AccessLevel.OWNER)

        removed = await self.albums.store.delete_share(album_id, principal)
        if not removed and isinstance(principal, ByEmail):
            user = await self.users.find_by_email(principal.email)
            if user is not None:
                removed = await self.albums.store.delete_share(album_id, ById(user.id))
        if removed:
            await self.albums.store.touch(album_id)
            log_info("Album unshared", event="share", album_id=album_id, user_id=requester.user_id)
        album_share_operations_total.labels(
            operation="unshare", result="removed" if removed else "noop"
        ).inc()
        return removed

    async def list_shares(
        self,
        album_id: int,
        requester: Principal,
    ) -> List[ShareEntryResponse]:
        """Share entries in grant order (owner only)."""
        album = await self.albums.load_album(album_id)
        require_access(album, requester, AccessLevel.OWNER)
        return [ShareEntryResponse.model_validate(share) for share in album.shares]

    @staticmethod
    def _find_entry(shares: List[AlbumShare], principal: SharePrincipal) -> Optional[AlbumShare]:
        return next((share for share in shares if share.principal == principal), None)
