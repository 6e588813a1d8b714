"""
Album service for album lifecycle and album views.
"""
from sqlalchemy.ext.asyncio import AsyncSession

from photovault.exceptions import AlbumNotFoundError, CoverPhotoNotInAlbumError
from photovault.models.album import Album
from photovault.models.share import normalize_email
from photovault.schemas.album import (
    AlbumCreate,
    AlbumDetail,
    AlbumListResponse,
    AlbumResponse,
    AlbumUpdate,
)
from photovault.schemas.share import ShareEntryResponse
from photovault.services.access import AccessLevel, Principal, evaluate, require_access
from photovault.services.album_store import AlbumStore
from photovault.utils.clock import utcnow
from photovault.utils.logger import log_info
from photovault.utils.prometheus_metrics import album_operations_total


def to_album_response(album: Album, level: AccessLevel) -> AlbumResponse:
    return AlbumResponse(
        id=album.id,
        owner_id=album.owner_id,
        title=album.title,
        description=album.description,
        cover_photo_id=album.cover_photo_id,
        photo_count=len(album.photo_associations),
        is_public=album.is_public,
        access_level=level.label,
        created_at=album.created_at,
        updated_at=album.updated_at,
    )


def to_album_detail(album: Album, level: AccessLevel) -> AlbumDetail:
    """Render an album for a caller; owner-only fields stay empty for everyone else."""
    detail = AlbumDetail(
        **to_album_response(album, level).model_dump(),
        photo_ids=album.photo_ids,
    )
    if level == AccessLevel.OWNER:
        detail.shared_with = [
            ShareEntryResponse.model_validate(share) for share in album.shares
        ]
        detail.public_token = album.public_token
        detail.public_expires_at = album.public_expires_at
    return detail


class AlbumService:
    """
    Service for album CRUD.
    Every call re-reads the album and re-evaluates the caller's access.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = AlbumStore(db)

    async def load_album(self, album_id: int) -> Album:
        """
        Get an album by ID with shares and photos loaded.

        Raises:
            AlbumNotFoundError: If the album does not exist
        """
        album = await self.store.get(album_id)
        if album is None:
            raise AlbumNotFoundError()
        return album

    async def create_album(
        self,
        principal: Principal,
        album_data: AlbumCreate,
    ) -> AlbumDetail:
        """
        Create a new album owned by the caller.

        Args:
            principal: Verified caller
            album_data: Album creation data

        Returns:
            Created album (empty, private, unshared)
        """
        description = album_data.description.strip() if album_data.description else None
        album = await self.store.create(
            owner_id=principal.user_id,
            title=album_data.title.strip(),
            description=description or None,
        )
        album_operations_total.labels(operation="create", result="success").inc()
        log_info("Album created", event="album", album_id=album.id, user_id=principal.user_id)
        return to_album_detail(album, AccessLevel.OWNER)

    async def get_album(
        self,
        album_id: int,
        principal: Principal,
    ) -> AlbumDetail:
        """
        Get an album visible to the caller (owner, collaborator or public).

        Raises:
            AlbumNotFoundError: If the album does not exist or the caller has no access
        """
        album = await self.load_album(album_id)
        level = require_access(album, principal, AccessLevel.VIEW)
        return to_album_detail(album, level)

    async def list_albums(self, principal: Principal) -> AlbumListResponse:
        """Albums owned by the caller plus albums shared with them."""
        now = utcnow()
        owned = await self.store.list_owned(principal.user_id)
        email = normalize_email(principal.email) if principal.email else None
        shared = await self.store.list_shared_with(principal.user_id, email, now)

        return AlbumListResponse(
            owned=[to_album_response(album, AccessLevel.OWNER) for album in owned],
            shared=[
                to_album_response(album, evaluate(album, principal, now))
                for album in shared
            ],
        )

    async def update_album(
        self,
        album_id: int,
        principal: Principal,
        update_data: AlbumUpdate,
    ) -> AlbumDetail:
        """
        Update album metadata (owner only).
        An empty description clears it; the cover must be a photo already in
        the album, and an explicit null clears it.
        """
        album = await self.load_album(album_id)
        require_access(album, principal, AccessLevel.OWNER)

        values = {}
        if update_data.title is not None:
            values["title"] = update_data.title.strip()
        if update_data.description is not None:
            values["description"] = update_data.description.strip() or None

        if "cover_photo_id" in update_data.model_fields_set:
            if not await self.store.set_cover(album_id, update_data.cover_photo_id):
                raise CoverPhotoNotInAlbumError()

        if values and not await self.store.update_metadata(album_id, **values):
            raise AlbumNotFoundError()

        album_operations_total.labels(operation="update", result="success").inc()
        album = await self.load_album(album_id)
        return to_album_detail(album, AccessLevel.OWNER)

    async def delete_album(self, album_id: int, principal: Principal) -> None:
        """
        Delete an album (owner only).
        Photos stay; only the album, its membership and its shares go.
        """
        album = await self.load_album(album_id)
        require_access(album, principal, AccessLevel.OWNER)
        await self.store.delete(album_id)
        album_operations_total.labels(operation="delete", result="success").inc()
        log_info("Album deleted", event="album", album_id=album_id, user_id=principal.user_id)
