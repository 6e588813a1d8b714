"""
Album persistence with conditional single-album writes.

Every invariant is scoped to one album, so the store relies on the database's
unique constraints plus SAVEPOINTs instead of application locks: a write that
would break uniqueness is rolled back on its own savepoint and reported to the
caller as "already present" (or as a token collision).
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from photovault.exceptions import ConflictError, TokenCollisionError
from photovault.models.album import Album, AlbumPhoto
from photovault.models.share import AlbumShare, ById, SharePermission, SharePrincipal
from photovault.utils.clock import utcnow

logger = logging.getLogger("photovault.store")


class AlbumStore:
    """
    Storage primitives for albums, membership rows and share entries.
    Callers always re-read the album after a write.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _conflict(e: OperationalError) -> ConflictError:
        logger.warning(
            "Store write conflict",
            extra={"event": "db", "error_type": type(e).__name__},
        )
        return ConflictError()

    @asynccontextmanager
    async def _savepoint(self) -> AsyncGenerator[None, None]:
        """Run a conditional write on its own savepoint; lock/serialization failures become ConflictError."""
        try:
            async with self.db.begin_nested():
                yield
        except OperationalError as e:
            raise self._conflict(e) from e

    async def _write(self, statement):
        """Execute an UPDATE/DELETE; lock/serialization failures become ConflictError."""
        try:
            return await self.db.execute(
                statement.execution_options(synchronize_session=False)
            )
        except OperationalError as e:
            raise self._conflict(e) from e

    def _album_query(self, with_photos: bool = True):
        query = select(Album).options(selectinload(Album.shares))
        if with_photos:
            query = query.options(selectinload(Album.photo_associations))
        # 항상 DB의 최신 상태로 덮어씀 (권한 판단에 stale 데이터 사용 금지)
        return query.execution_options(populate_existing=True)

    # ============== Albums ==============

    async def get(self, album_id: int, with_photos: bool = True) -> Optional[Album]:
        """Load an album with its share entries (and membership rows)."""
        result = await self.db.execute(
            self._album_query(with_photos).where(Album.id == album_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        owner_id: int,
        title: str,
        description: Optional[str] = None,
    ) -> Album:
        album = Album(
            owner_id=owner_id,
            title=title,
            description=description,
            is_public=False,
        )
        self.db.add(album)
        await self.db.flush()
        album_id = album.id
        return await self.get(album_id)

    async def update_metadata(self, album_id: int, **values) -> bool:
        """Update owner-editable columns; owner_id is never accepted here."""
        values.pop("owner_id", None)
        if not values:
            return True
        values["updated_at"] = utcnow()
        result = await self._write(
            update(Album).where(Album.id == album_id).values(**values)
        )
        return result.rowcount == 1

    async def delete(self, album_id: int) -> bool:
        """Remove the album row; membership and share rows cascade, photos stay."""
        result = await self._write(delete(Album).where(Album.id == album_id))
        return result.rowcount == 1

    async def touch(self, album_id: int) -> None:
        await self._write(
            update(Album).where(Album.id == album_id).values(updated_at=utcnow())
        )

    async def list_owned(self, owner_id: int) -> List[Album]:
        result = await self.db.execute(
            self._album_query()
            .where(Album.owner_id == owner_id)
            .order_by(Album.created_at.desc(), Album.id.desc())
        )
        return list(result.scalars().all())

    async def list_shared_with(
        self,
        user_id: int,
        email: Optional[str],
        now: datetime,
    ) -> List[Album]:
        """Albums of other owners with a live share entry for this user id or email."""
        principal_match = AlbumShare.user_id == user_id
        if email:
            principal_match = or_(principal_match, AlbumShare.email == email)

        shared_ids = (
            select(AlbumShare.album_id)
            .where(principal_match)
            .where(or_(AlbumShare.expires_at.is_(None), AlbumShare.expires_at > now))
        )
        result = await self.db.execute(
            self._album_query()
            .where(Album.id.in_(shared_ids))
            .where(Album.owner_id != user_id)
            .order_by(Album.created_at.desc(), Album.id.desc())
        )
        return list(result.scalars().all())

    # ============== Share entries ==============

    async def insert_share_if_absent(self, entry: AlbumShare) -> bool:
        """
        Append a share entry unless one for the same principal exists.

        Returns:
            True if inserted, False if an entry for that principal was already stored
        """
        try:
            async with self._savepoint():
                self.db.add(entry)
                await self.db.flush()
        except IntegrityError:
            return False
        return True

    @staticmethod
    def _principal_filter(principal: SharePrincipal):
        if isinstance(principal, ById):
            return AlbumShare.user_id == principal.user_id
        return AlbumShare.email == principal.email

    async def renew_expired_share(
        self,
        album_id: int,
        principal: SharePrincipal,
        permission: SharePermission,
        expires_at: Optional[datetime],
        now: datetime,
    ) -> bool:
        """
        Replace an expired entry's grant in place.

        Returns:
            True if an expired entry was renewed, False if it was live (or gone)
        """
        result = await self._write(
            update(AlbumShare)
            .where(AlbumShare.album_id == album_id)
            .where(self._principal_filter(principal))
            .where(AlbumShare.expires_at.is_not(None))
            .where(AlbumShare.expires_at <= now)
            .values(permission=permission.value, expires_at=expires_at, shared_at=now)
        )
        return result.rowcount == 1

    async def delete_share(self, album_id: int, principal: SharePrincipal) -> bool:
        result = await self._write(
            delete(AlbumShare)
            .where(AlbumShare.album_id == album_id)
            .where(self._principal_filter(principal))
        )
        return result.rowcount > 0

    # ============== Membership ==============

    async def _next_position(self, album_id: int) -> int:
        result = await self.db.execute(
            select(func.max(AlbumPhoto.position)).where(AlbumPhoto.album_id == album_id)
        )
        return (result.scalar() or 0) + 1

    async def add_photo_if_absent(self, album_id: int, photo_id: int) -> bool:
        """
        Append a photo to the album unless it is already a member.

        Returns:
            True if the membership row was created
        """
        position = await self._next_position(album_id)
        try:
            async with self._savepoint():
                self.db.add(
                    AlbumPhoto(album_id=album_id, photo_id=photo_id, position=position)
                )
                await self.db.flush()
        except IntegrityError:
            return False
        return True

    async def set_cover(self, album_id: int, photo_id: Optional[int]) -> bool:
        """
        Point the cover at a member photo, or clear it with None.

        Returns:
            False if the photo is not (or no longer) a member of the album
        """
        statement = update(Album).where(Album.id == album_id)
        if photo_id is not None:
            membership = (
                select(AlbumPhoto.id)
                .where(AlbumPhoto.album_id == album_id)
                .where(AlbumPhoto.photo_id == photo_id)
                .exists()
            )
            statement = statement.where(membership)
        result = await self._write(
            statement.values(cover_photo_id=photo_id, updated_at=utcnow())
        )
        return result.rowcount == 1

    async def remove_photos(self, album_id: int, photo_ids: List[int]) -> int:
        """Drop membership rows; a cover pointing at a removed photo is cleared."""
        if not photo_ids:
            return 0
        result = await self._write(
            delete(AlbumPhoto)
            .where(AlbumPhoto.album_id == album_id)
            .where(AlbumPhoto.photo_id.in_(photo_ids))
        )
        await self._write(
            update(Album)
            .where(Album.id == album_id)
            .where(Album.cover_photo_id.in_(photo_ids))
            .values(cover_photo_id=None)
        )
        return result.rowcount

    # ============== Public link ==============

    async def set_public_link(
        self,
        album_id: int,
        owner_id: int,
        token: str,
        expires_at: Optional[datetime],
    ) -> bool:
        """
        Publish the album under `token`, replacing any previous token.

        Raises:
            TokenCollisionError: another album already holds this token
        """
        try:
            async with self._savepoint():
                result = await self.db.execute(
                    update(Album)
                    .where(Album.id == album_id)
                    .where(Album.owner_id == owner_id)
                    .values(
                        is_public=True,
                        public_token=token,
                        public_expires_at=expires_at,
                        updated_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError as e:
            raise TokenCollisionError() from e
        return result.rowcount == 1

    async def clear_public_link(self, album_id: int, owner_id: int) -> bool:
        result = await self._write(
            update(Album)
            .where(Album.id == album_id)
            .where(Album.owner_id == owner_id)
            .values(
                is_public=False,
                public_token=None,
                public_expires_at=None,
                updated_at=utcnow(),
            )
        )
        return result.rowcount == 1

    async def find_by_public_token(self, token: str) -> Optional[Album]:
        result = await self.db.execute(
            self._album_query().where(Album.public_token == token)
        )
        return result.scalar_one_or_none()
