"""
User model mirrored from the identity provider.
Rows are written by the identity sync process; the album core only reads them.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from photovault.database import Base
from photovault.utils.clock import utcnow

if TYPE_CHECKING:
    from photovault.models.photo import Photo
    from photovault.models.album import Album


class User(Base):
    """User model for storing user account information."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    username: Mapped[str] = mapped_column(
        String(100), unique=True, index=True, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    # Relationships
    photos: Mapped[List["Photo"]] = relationship(
        "Photo", back_populates="owner", cascade="all, delete-orphan"
    )
    albums: Mapped[List["Album"]] = relationship(
        "Album", back_populates="owner", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
