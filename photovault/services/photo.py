"""
Photo directory lookups.
Photos are created by the upload pipeline; the album core only needs owners.
"""
import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from photovault.models.photo import Photo

logger = logging.getLogger("photovault.photo")


class PhotoService:
    """Service for resolving photo ownership."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_photo_owner(self, photo_id: int) -> Optional[int]:
        """
        Get the owner of a photo.

        Args:
            photo_id: Photo ID

        Returns:
            Owner user ID, or None if the photo does not exist
        """
        result = await self.db.execute(
            select(Photo.owner_id).where(Photo.id == photo_id)
        )
        return result.scalar_one_or_none()

    async def get_photo_owners(self, photo_ids: Iterable[int]) -> Dict[int, int]:
        """Map each existing photo id to its owner id; unknown ids are absent."""
        ids = list(set(photo_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(Photo.id, Photo.owner_id).where(Photo.id.in_(ids))
        )
        return {photo_id: owner_id for photo_id, owner_id in result.all()}
