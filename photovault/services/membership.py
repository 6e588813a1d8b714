"""
Album membership: adding and removing photo references.
"""
import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from photovault.exceptions import PhotoNotFoundError, PhotoNotOwnedError
from photovault.schemas.album import MembershipResult
from photovault.services.access import AccessLevel, Principal, require_access
from photovault.services.album import AlbumService
from photovault.services.photo import PhotoService
from photovault.utils.prometheus_metrics import album_photo_operations_total

logger = logging.getLogger("photovault.membership")


def _dedupe(photo_ids: List[int]) -> List[int]:
    # 요청 순서 유지
    return list(dict.fromkeys(photo_ids))


class MembershipService:
    """
    Service for album photo membership.
    The owner and Edit collaborators may change membership; only the owner's
    photos can be added.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.albums = AlbumService(db)
        self.photos = PhotoService(db)

    async def add_photos(
        self,
        album_id: int,
        requester: Principal,
        photo_ids: List[int],
    ) -> MembershipResult:
        """
        Add photos to an album.

        The whole batch is validated before anything is written. Photos already
        in the album are skipped.

        Raises:
            InsufficientPermissionError: If the caller has no Edit access
            PhotoNotFoundError: If any photo does not exist
            PhotoNotOwnedError: If any photo belongs to someone other than the album owner
        """
        album = await self.albums.load_album(album_id)
        require_access(album, requester, AccessLevel.EDIT)

        ids = _dedupe(photo_ids)
        owners = await self.photos.get_photo_owners(ids)
        for photo_id in ids:
            if photo_id not in owners:
                raise PhotoNotFoundError(f"Photo {photo_id} not found")
            if owners[photo_id] != album.owner_id:
                raise PhotoNotOwnedError()

        existing = set(album.photo_ids)
        added = 0
        for photo_id in ids:
            if photo_id in existing:
                continue
            if await self.albums.store.add_photo_if_absent(album_id, photo_id):
                added += 1

        if added:
            await self.albums.store.touch(album_id)
        album_photo_operations_total.labels(
            operation="add", result="success" if added else "noop"
        ).inc()
        logger.info(
            "Album photos added",
            extra={
                "event": "membership",
                "album_id": album_id,
                "user_id": requester.user_id,
                "requested": len(ids),
                "changed": added,
            },
        )
        return MembershipResult(total=len(ids), changed=added, skipped=len(ids) - added)

    async def remove_photos(
        self,
        album_id: int,
        requester: Principal,
        photo_ids: List[int],
    ) -> MembershipResult:
        """
        Remove photos from an album; ids that are not members are ignored.
        The photos themselves are untouched.
        """
        album = await self.albums.load_album(album_id)
        require_access(album, requester, AccessLevel.EDIT)

        ids = _dedupe(photo_ids)
        removed = await self.albums.store.remove_photos(album_id, ids)
        if removed:
            await self.albums.store.touch(album_id)

        album_photo_operations_total.labels(
            operation="remove", result="success" if removed else "noop"
        ).inc()
        logger.info(
            "Album photos removed",
            extra={
                "event": "membership",
                "album_id": album_id,
                "user_id": requester.user_id,
                "requested": len(ids),
                "changed": removed,
            },
        )
        return MembershipResult(total=len(ids), changed=removed, skipped=len(ids) - removed)

    async def add_photo(self, album_id: int, requester: Principal, photo_id: int) -> bool:
        result = await self.add_photos(album_id, requester, [photo_id])
        return result.changed == 1

    async def remove_photo(self, album_id: int, requester: Principal, photo_id: int) -> bool:
        result = await self.remove_photos(album_id, requester, [photo_id])
        return result.changed == 1
