"""
Photo reference model.
The file itself lives in object storage; only the owner and the opaque
object key are kept here.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from photovault.database import Base
from photovault.utils.clock import utcnow

if TYPE_CHECKING:
    from photovault.models.user import User
    from photovault.models.album import AlbumPhoto


class Photo(Base):
    """Photo owned by the uploading user."""

    __tablename__ = "photos"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="photos")
    album_associations: Mapped[List["AlbumPhoto"]] = relationship(
        "AlbumPhoto", back_populates="photo", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, owner_id={self.owner_id})>"
