"""
Pydantic schemas package.
All schemas are exported here for easy import.
"""
from photovault.schemas.user import TokenPayload
from photovault.schemas.album import (
    AlbumCreate,
    AlbumDetail,
    AlbumListResponse,
    AlbumPhotoAdd,
    AlbumPhotoRemove,
    AlbumResponse,
    AlbumUpdate,
    MembershipResult,
)
from photovault.schemas.share import (
    PublicAlbumResponse,
    PublicLinkCreate,
    PublicLinkResponse,
    ShareCreate,
    ShareEntryResponse,
)

__all__ = [
    # User schemas
    "TokenPayload",
    # Album schemas
    "AlbumCreate",
    "AlbumDetail",
    "AlbumListResponse",
    "AlbumPhotoAdd",
    "AlbumPhotoRemove",
    "AlbumResponse",
    "AlbumUpdate",
    "MembershipResult",
    # Share schemas
    "PublicAlbumResponse",
    "PublicLinkCreate",
    "PublicLinkResponse",
    "ShareCreate",
    "ShareEntryResponse",
]
