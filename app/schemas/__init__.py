"""
app/schemas package marker.
"""

from app.schemas.business_import import (
    BusinessImportAcceptedResponse,
    BusinessImportJobListResponse,
    BusinessImportJobResponse,
    BusinessImportProgressResponse,
    RowErrorResponse,
    StructuralProblemResponse,
)

__all__ = [
    "BusinessImportAcceptedResponse",
    "BusinessImportJobListResponse",
    "BusinessImportJobResponse",
    "BusinessImportProgressResponse",
    "RowErrorResponse",
    "StructuralProblemResponse",
]
