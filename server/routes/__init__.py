"""API routes package."""

from server.routes.catalog_routes import router as catalog_router
from server.routes.download_routes import router as download_router
from server.routes.upload_routes import router as upload_router

__all__ = ["catalog_router", "download_router", "upload_router"]
