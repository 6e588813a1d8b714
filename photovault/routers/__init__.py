"""
API routers package.
"""
from photovault.routers.albums import router as albums_router
from photovault.routers.health import router as health_router
from photovault.routers.public import router as public_router
from photovault.routers.sharing import router as sharing_router

__all__ = ["albums_router", "health_router", "public_router", "sharing_router"]
