"""
Collaborator share entries.

A share entry grants a single principal View or Edit access to an album.
The principal is either a registered user (keyed by user id) or a bare email
address for someone who has not registered yet.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from photovault.database import Base
from photovault.utils.clock import utcnow

if TYPE_CHECKING:
    from photovault.models.album import Album


class SharePermission(str, Enum):
    """Permission carried by a share entry."""
    VIEW = "view"
    EDIT = "edit"


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class ById:
    """Share principal resolved to a registered user."""
    user_id: int


@dataclass(frozen=True)
class ByEmail:
    """Share principal known only by email (not registered yet)."""
    email: str

    def __post_init__(self):
        object.__setattr__(self, "email", normalize_email(self.email))


SharePrincipal = Union[ById, ByEmail]


class AlbumShare(Base):
    """
    One collaborator grant on an album.

    Exactly one of user_id / email is set. The two unique constraints keep a
    single entry per principal; NULLs never collide, so a user-keyed row and
    an email-keyed row are independent.
    """

    __tablename__ = "album_shares"
    __table_args__ = (
        UniqueConstraint("album_id", "user_id", name="uq_album_shares_album_user"),
        UniqueConstraint("album_id", "email", name="uq_album_shares_album_email"),
        CheckConstraint(
            "(user_id IS NULL) != (email IS NULL)",
            name="ck_album_shares_one_principal",
        ),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    album_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    permission: Mapped[str] = mapped_column(
        String(10), nullable=False, default=SharePermission.VIEW.value
    )

    shared_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    album: Mapped["Album"] = relationship("Album", back_populates="shares")

    @classmethod
    def for_principal(
        cls,
        principal: SharePrincipal,
        permission: SharePermission,
        expires_at: Optional[datetime] = None,
        **kwargs,
    ) -> "AlbumShare":
        """Build an entry keyed by the given principal variant."""
        if isinstance(principal, ById):
            return cls(
                user_id=principal.user_id,
                permission=permission.value,
                expires_at=expires_at,
                **kwargs,
            )
        return cls(
            email=principal.email,
            permission=permission.value,
            expires_at=expires_at,
            **kwargs,
        )

    @property
    def principal(self) -> SharePrincipal:
        if self.user_id is not None:
            return ById(self.user_id)
        return ByEmail(self.email)

    def is_live(self, now: datetime) -> bool:
        """An entry without expiry never lapses."""
        return self.expires_at is None or self.expires_at > now

    def __repr__(self) -> str:
        return f"<AlbumShare(album_id={self.album_id}, principal={self.principal}, permission={self.permission})>"
