"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.business import Business, BusinessStatus
from db.models.business_import_job import BusinessImportJob
from db.models.category import Category
from db.models.neighbourhood import Neighbourhood

__all__ = [
    "Business",
    "BusinessImportJob",
    "BusinessStatus",
    "Category",
    "Neighbourhood",
]
