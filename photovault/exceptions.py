"""
Domain errors raised by the album services.

Each error carries the HTTP status and client-facing detail the API layer
renders; services never raise HTTPException themselves.
"""
from fastapi import status


class AlbumServiceError(Exception):
    """Base class for every expected album access-control failure."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "Album request failed"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class NotFoundError(AlbumServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class AlbumNotFoundError(NotFoundError):
    detail = "Album not found"


class PublicAlbumNotFoundError(NotFoundError):
    """
    Every public link failure: unknown, malformed, revoked or expired token.
    The message is identical in all cases so probing clients learn nothing.
    """

    detail = "This album is not available"


class PhotoNotFoundError(NotFoundError):
    detail = "Photo not found"


class UserNotFoundError(NotFoundError):
    detail = "User not found"


class NotOwnerError(AlbumServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Only the album owner can perform this action"


class InsufficientPermissionError(AlbumServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Edit permission is required to change album photos"


class PhotoNotOwnedError(AlbumServiceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "Only photos owned by the album owner can be added"


class InvalidShareTargetError(AlbumServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Album owner cannot be a share target"


class InvalidExpiryError(AlbumServiceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "Expiry must be in the future"


class TokenCollisionError(AlbumServiceError):
    """Raised internally on a public token uniqueness violation; surfaced only after retries."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Could not allocate a public link, please retry"


class ConflictError(AlbumServiceError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Album was modified concurrently, please retry"


class CoverPhotoNotInAlbumError(AlbumServiceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "Cover photo must be a photo in the album"
