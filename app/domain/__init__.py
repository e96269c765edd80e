"""
app/domain package marker.
"""

from app.domain.business_import import (
    CandidateRecord,
    ImportPhase,
    ImportSnapshot,
    ParsedTable,
    ReferenceEntity,
    ReferenceKind,
    RowError,
    StructuralProblem,
)
from app.domain.import_errors import (
    BusinessImportError,
    ImportJobStateError,
    ImportNotConfirmedError,
    ReferenceFetchError,
    StoreWriteError,
    StructuralValidationError,
    TableParseError,
    UploadTooLargeError,
)
from app.domain.import_job import ImportJob

__all__ = [
    "BusinessImportError",
    "CandidateRecord",
    "ImportJob",
    "ImportJobStateError",
    "ImportNotConfirmedError",
    "ImportPhase",
    "ImportSnapshot",
    "ParsedTable",
    "ReferenceEntity",
    "ReferenceFetchError",
    "ReferenceKind",
    "RowError",
    "StoreWriteError",
    "StructuralProblem",
    "StructuralValidationError",
    "TableParseError",
    "UploadTooLargeError",
]
