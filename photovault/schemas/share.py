"""
Sharing and public link Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from photovault.models.share import SharePermission


class ShareCreate(BaseModel):
    """
    Schema for sharing an album with a collaborator.
    Exactly one of username / email identifies the target.
    """

    username: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    permission: SharePermission = SharePermission.VIEW
    expires_at: Optional[datetime] = Field(
        None,
        description="Optional expiry of this grant (UTC)",
    )

    @model_validator(mode="after")
    def check_single_target(self):
        if (self.username is None) == (self.email is None):
            raise ValueError("Provide exactly one of username or email")
        return self


class ShareEntryResponse(BaseModel):
    """Schema for one collaborator grant."""

    user_id: Optional[int] = None
    email: Optional[str] = None
    permission: SharePermission
    shared_at: datetime
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PublicLinkCreate(BaseModel):
    """Schema for publishing an album through a public link."""

    expires_at: Optional[datetime] = Field(
        None,
        description="Absolute expiry of the link (UTC)",
    )
    expires_in_days: Optional[int] = Field(
        None,
        ge=1,
        le=365,
        description="Number of days until the link expires (optional)",
    )

    @model_validator(mode="after")
    def check_single_expiry(self):
        if self.expires_at is not None and self.expires_in_days is not None:
            raise ValueError("Provide either expires_at or expires_in_days, not both")
        return self


class PublicLinkResponse(BaseModel):
    """Schema for a freshly issued public link."""

    album_id: int
    public_token: str
    public_url: str
    expires_at: Optional[datetime] = None


class PublicAlbumResponse(BaseModel):
    """
    Read-only album view for anonymous public link access.
    No owner, share or link data is exposed.
    """

    id: int
    title: str
    description: Optional[str] = None
    cover_photo_id: Optional[int] = None
    photo_ids: List[int] = []
    photo_count: int
    created_at: datetime
