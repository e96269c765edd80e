"""
app/domain/import_errors.py

Exceptions raised by the bulk business import pipeline.
"""

from __future__ import annotations

from collections.abc import Sequence

from app.domain.business_import import StructuralProblem


class BusinessImportError(Exception):
    """Base exception for bulk business import failures."""


class TableParseError(BusinessImportError):
    """Raised when the uploaded file cannot be tokenized into rows."""


class StructuralValidationError(BusinessImportError):
    """
    Raised when the parsed table fails whole-table checks.
    """

    def __init__(self, problems: Sequence[StructuralProblem]) -> None:
        self.problems = tuple(problems)
        super().__init__("; ".join(problem.message for problem in self.problems))

    def to_dict(self) -> dict[str, object]:
        return {
            "message": str(self),
            "problems": [
                {"message": problem.message, "rows": list(problem.rows)}
                for problem in self.problems
            ],
        }


class ReferenceFetchError(BusinessImportError):
    """Raised when categories or neighbourhoods cannot be loaded."""


class ImportNotConfirmedError(BusinessImportError):
    """
    Raised when a large import was not confirmed by the caller.
    """

    def __init__(self, *, total: int, threshold: int) -> None:
        self.total = total
        self.threshold = threshold
        super().__init__(
            f"Importing {total} businesses exceeds the confirmation threshold of "
            f"{threshold}; explicit confirmation is required."
        )


class ImportJobStateError(BusinessImportError):
    """Raised when an operation is not allowed in the job's current phase."""


class StoreWriteError(BusinessImportError):
    """
    Raised by the business store when an insert is rejected.
    """

    def __init__(self, message: str, *, code: str | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class UploadTooLargeError(TableParseError):
    """
    Raised when an uploaded file exceeds the configured size limit.
    """

    def __init__(self, *, max_bytes: int) -> None:
        self.max_bytes = max_bytes
        super().__init__(f"CSV exceeds the maximum upload size of {max_bytes} bytes.")
