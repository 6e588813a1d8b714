"""
Album access evaluation.

evaluate() maps an album and a caller to an AccessLevel without touching the
database; require_access() is the guard every album operation goes through.
Results must not be cached across requests: share and public link state can
change between two calls.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Optional

from photovault.exceptions import (
    AlbumNotFoundError,
    InsufficientPermissionError,
    NotOwnerError,
)
from photovault.models.album import Album
from photovault.models.share import SharePermission, normalize_email
from photovault.utils.clock import utcnow
from photovault.utils.prometheus_metrics import access_denied_total

logger = logging.getLogger("photovault.access")


class AccessLevel(IntEnum):
    """Ordered access levels; a higher level implies every lower one."""
    NONE = 0
    VIEW = 1
    EDIT = 2
    OWNER = 3

    @property
    def label(self) -> str:
        return self.name.lower()


_PERMISSION_LEVELS = {
    SharePermission.VIEW.value: AccessLevel.VIEW,
    SharePermission.EDIT.value: AccessLevel.EDIT,
}


@dataclass(frozen=True)
class Principal:
    """Verified caller identity supplied by the identity layer."""
    user_id: int
    email: Optional[str] = None


def is_public_link_active(album: Album, now: Optional[datetime] = None) -> bool:
    """Public access needs the flag set and an unexpired (or absent) expiry."""
    if not album.is_public:
        return False
    now = now or utcnow()
    return album.public_expires_at is None or album.public_expires_at > now


def evaluate(
    album: Album,
    principal: Optional[Principal],
    now: Optional[datetime] = None,
) -> AccessLevel:
    """
    Compute the caller's access level, most privileged rule first.

    1. owner
    2. live share entry keyed by the caller's user id
    3. live share entry keyed by the caller's email
    4. active public link (VIEW only)
    5. nothing

    Args:
        album: Album with its shares loaded
        principal: Caller, or None for anonymous access
        now: Evaluation time (naive UTC), defaults to the current time

    Returns:
        AccessLevel
    """
    now = now or utcnow()

    if principal is not None:
        if principal.user_id == album.owner_id:
            return AccessLevel.OWNER

        live_shares = [share for share in album.shares if share.is_live(now)]

        for share in live_shares:
            if share.user_id is not None and share.user_id == principal.user_id:
                return _PERMISSION_LEVELS[share.permission]

        if principal.email:
            email = normalize_email(principal.email)
            for share in live_shares:
                if share.email is not None and share.email == email:
                    return _PERMISSION_LEVELS[share.permission]

    if is_public_link_active(album, now):
        return AccessLevel.VIEW

    return AccessLevel.NONE


def require_access(
    album: Album,
    principal: Optional[Principal],
    minimum: AccessLevel,
    now: Optional[datetime] = None,
) -> AccessLevel:
    """
    Raise unless the caller holds at least `minimum` on the album.

    Owner-only operations raise NotOwnerError, membership changes without
    Edit raise InsufficientPermissionError, and reads by a caller with no
    access raise AlbumNotFoundError.
    """
    level = evaluate(album, principal, now)
    if level >= minimum:
        return level

    if minimum == AccessLevel.OWNER:
        reason = "not_owner"
        error = NotOwnerError()
    elif minimum == AccessLevel.EDIT:
        reason = "insufficient_permission"
        error = InsufficientPermissionError()
    else:
        reason = "not_found"
        error = AlbumNotFoundError()

    access_denied_total.labels(required=minimum.label, reason=reason).inc()
    logger.warning(
        "Album access denied",
        extra={
            "event": "access",
            "album_id": album.id,
            "user_id": principal.user_id if principal else None,
            "level": level.label,
            "required": minimum.label,
        },
    )
    raise error
