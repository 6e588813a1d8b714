"""
Album-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from photovault.schemas.share import ShareEntryResponse


class AlbumBase(BaseModel):
    """Base schema with common album attributes."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class AlbumCreate(AlbumBase):
    """Schema for album creation."""

    pass


class AlbumUpdate(BaseModel):
    """Schema for updating album metadata."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    cover_photo_id: Optional[int] = Field(
        None,
        description="Member photo to use as cover; explicit null clears it",
    )


class AlbumResponse(AlbumBase):
    """Schema for album response."""

    id: int
    owner_id: int
    cover_photo_id: Optional[int] = None
    photo_count: int = 0
    is_public: bool = False
    access_level: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AlbumDetail(AlbumResponse):
    """
    Album with its photo references.
    Share entries and public link fields are filled in for the owner only.
    """

    photo_ids: List[int] = []
    shared_with: Optional[List[ShareEntryResponse]] = None
    public_token: Optional[str] = None
    public_expires_at: Optional[datetime] = None


class AlbumListResponse(BaseModel):
    """Albums owned by the caller and albums shared with them."""

    owned: List[AlbumResponse] = []
    shared: List[AlbumResponse] = []


class AlbumPhotoAdd(BaseModel):
    """Schema for adding photos to an album."""

    photo_ids: List[int] = Field(..., min_length=1)


class AlbumPhotoRemove(BaseModel):
    """Schema for removing photos from an album."""

    photo_ids: List[int] = Field(..., min_length=1)


class MembershipResult(BaseModel):
    """Outcome of a batch membership change."""

    total: int
    changed: int
    skipped: int
