"""
Database models package.
All models are exported here for easy import.
"""
from photovault.models.user import User
from photovault.models.photo import Photo
from photovault.models.album import Album, AlbumPhoto
from photovault.models.share import AlbumShare, SharePermission

__all__ = ["User", "Photo", "Album", "AlbumPhoto", "AlbumShare", "SharePermission"]
