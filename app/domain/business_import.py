"""
app/domain/business_import.py

Domain models used by the bulk business import flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

RawRow = Mapping[str, str]

HEADER_ROW_NUMBER = 1


def row_number_for(index: int) -> int:
    """
    Return the 1-based table row number for a 0-based data row index.
    """

    return index + HEADER_ROW_NUMBER + 1


class ReferenceKind(str, Enum):
    CATEGORY = "category"
    NEIGHBOURHOOD = "neighbourhood"


class ImportPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RESOLVING = "resolving"
    IMPORTING = "importing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_PHASES


_TERMINAL_PHASES = frozenset(
    {
        ImportPhase.COMPLETED,
        ImportPhase.COMPLETED_WITH_ERRORS,
        ImportPhase.ABORTED,
    }
)


@dataclass(frozen=True)
class ParsedTable:
    """
    Header-derived rows produced by the table parser.
    """

    headers: tuple[str, ...]
    rows: tuple[RawRow, ...]


@dataclass(frozen=True)
class ReferenceEntity:
    """
    One pre-existing category or neighbourhood.
    """

    id: Any
    slug: str
    name: str


@dataclass(frozen=True)
class CandidateRecord:
    """
    Insert-ready business record built from one CSV row.
    """

    row_number: int
    name: str
    slug: str
    description: str | None = None
    short_description: str | None = None
    address: str | None = None
    postal_code: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    whatsapp: str | None = None
    price_range: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    category_id: Any = None
    neighbourhood_id: Any = None
    status: str = "pending"

    def to_payload(self) -> dict[str, Any]:
        """
        Column values for storage; the row number is attribution-only.
        """

        return {
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "short_description": self.short_description,
            "address": self.address,
            "postal_code": self.postal_code,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
            "whatsapp": self.whatsapp,
            "price_range": self.price_range,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "category_id": self.category_id,
            "neighbourhood_id": self.neighbourhood_id,
            "status": self.status,
        }


@dataclass(frozen=True)
class RowError:
    """
    One row that could not be imported, with the reason.
    """

    row: int
    error: str
    data: RawRow = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "error": self.error, "data": dict(self.data)}


@dataclass(frozen=True)
class StructuralProblem:
    """
    Whole-table validation failure.
    """

    message: str
    rows: tuple[int, ...] = ()


@dataclass(frozen=True)
class ImportSnapshot:
    """
    Immutable, fully-updated view of an import job published to observers.
    """

    version: int = 0
    phase: ImportPhase = ImportPhase.IDLE
    total: int = 0
    processed: int = 0
    success: int = 0
    failed: int = 0
    errors: tuple[RowError, ...] = ()
    problems: tuple[StructuralProblem, ...] = ()
    message: str | None = None
    detached: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal
