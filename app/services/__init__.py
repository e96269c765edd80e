"""
app/services package marker.
"""

from app.services.batch_executor import BatchExecutor, BatchInsertOutcome, insert_with_fallback
from app.services.business_import_service import (
    BusinessImportService,
    get_business_import_service,
)
from app.services.csv_table_parser import parse_csv_table
from app.services.import_job_controller import ImportJobController
from app.services.reference_resolver import ReferenceIndex, ReferenceLookup, ReferenceResolver

__all__ = [
    "BatchExecutor",
    "BatchInsertOutcome",
    "BusinessImportService",
    "get_business_import_service",
    "ImportJobController",
    "insert_with_fallback",
    "parse_csv_table",
    "ReferenceIndex",
    "ReferenceLookup",
    "ReferenceResolver",
]
