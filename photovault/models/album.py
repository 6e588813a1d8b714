"""
Album model and its ordered photo membership.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from photovault.database import Base
from photovault.utils.clock import utcnow

if TYPE_CHECKING:
    from photovault.models.user import User
    from photovault.models.photo import Photo
    from photovault.models.share import AlbumShare


class Album(Base):
    """
    Album owned by a single user.

    owner_id is written once at creation. The public link is a single
    replaceable value (is_public, public_token, public_expires_at) updated in
    one statement; public_token is unique across all albums.
    """

    __tablename__ = "albums"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Album information
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Cover photo (optional, must be a member of the album)
    cover_photo_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("photos.id", ondelete="SET NULL"), nullable=True
    )

    # Public link
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    public_token: Mapped[Optional[str]] = mapped_column(
        String(128), unique=True, index=True, nullable=True
    )
    public_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="albums")
    photo_associations: Mapped[List["AlbumPhoto"]] = relationship(
        "AlbumPhoto",
        back_populates="album",
        cascade="all, delete-orphan",
        order_by=lambda: [AlbumPhoto.position, AlbumPhoto.id],
    )
    shares: Mapped[List["AlbumShare"]] = relationship(
        "AlbumShare",
        back_populates="album",
        cascade="all, delete-orphan",
        order_by="AlbumShare.id",
    )

    @property
    def photo_ids(self) -> List[int]:
        """Member photo ids in album order (requires photo_associations loaded)."""
        return [ap.photo_id for ap in self.photo_associations]

    def __repr__(self) -> str:
        return f"<Album(id={self.id}, title={self.title})>"


class AlbumPhoto(Base):
    """
    Membership row between Album and Photo.
    A photo appears at most once per album.
    """

    __tablename__ = "album_photos"
    __table_args__ = (
        UniqueConstraint("album_id", "photo_id", name="uq_album_photos_album_photo"),
        # 삭제된 row id 재사용 금지 (identity map 충돌 방지)
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    album_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    photo_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("photos.id", ondelete="CASCADE"), nullable=False
    )

    # Order within the album
    position: Mapped[int] = mapped_column(Integer, default=0)

    added_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    album: Mapped["Album"] = relationship(
        "Album", back_populates="photo_associations"
    )
    photo: Mapped["Photo"] = relationship(
        "Photo", back_populates="album_associations"
    )

    def __repr__(self) -> str:
        return f"<AlbumPhoto(album_id={self.album_id}, photo_id={self.photo_id})>"
