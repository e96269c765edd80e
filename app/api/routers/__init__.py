"""
app/api/routers package marker.
"""

from app.api.routers.business_import import router as business_import_router

__all__ = [
    "business_import_router",
]
