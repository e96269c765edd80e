"""
app/repositories package marker.
"""

from app.repositories.business_repository import SQLAlchemyBusinessStore
from app.repositories.business_store import BusinessStore

__all__ = [
    "BusinessStore",
    "SQLAlchemyBusinessStore",
]
