"""
Repository layer exports.
"""

from db.repositories.business_import_job_repository import BusinessImportJobRepository

__all__ = [
    "BusinessImportJobRepository",
]
