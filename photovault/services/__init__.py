"""
Services package.
Contains album access control and sharing business logic.
"""
from photovault.services.access import AccessLevel, Principal, evaluate, require_access
from photovault.services.album import AlbumService
from photovault.services.album_store import AlbumStore
from photovault.services.membership import MembershipService
from photovault.services.photo import PhotoService
from photovault.services.public_link import PublicLinkService
from photovault.services.sharing import SharingService
from photovault.services.users import UserService

__all__ = [
    "AccessLevel",
    "Principal",
    "evaluate",
    "require_access",
    "AlbumService",
    "AlbumStore",
    "MembershipService",
    "PhotoService",
    "PublicLinkService",
    "SharingService",
    "UserService",
]
