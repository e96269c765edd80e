"""
app/mappers/business_record_builder.py

Maps one validated CSV row to an insert-ready business record.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from app.domain.business_import import CandidateRecord, RawRow, RowError

if TYPE_CHECKING:
    from app.services.reference_resolver import ReferenceLookup

ALLOWED_STATUSES = frozenset({"pending", "approved", "rejected"})
DEFAULT_STATUS = "pending"

CATEGORY_COLUMN = "category_slug"
NEIGHBOURHOOD_COLUMN = "neighbourhood_slug"

_OPTIONAL_TEXT_COLUMNS: tuple[str, ...] = (
    "description",
    "short_description",
    "address",
    "postal_code",
    "phone",
    "email",
    "website",
    "whatsapp",
    "price_range",
)

_SLUG_SEPARATOR_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """
    Lower-case ``value`` and collapse every run of non-alphanumerics to ``-``.
    """

    return _SLUG_SEPARATOR_PATTERN.sub("-", value.lower()).strip("-")


def build_record(
    row: RawRow,
    lookup: ReferenceLookup,
    row_number: int,
) -> CandidateRecord | RowError:
    """
    Build a CandidateRecord, or a RowError when the row cannot be coerced.

    Never raises: any failure is attributed to ``row_number``.
    """

    try:
        return _build(row, lookup, row_number)
    except Exception as exc:  # noqa: BLE001
        return RowError(row=row_number, error=f"Data preparation error: {exc}", data=row)


def _build(row: RawRow, lookup: ReferenceLookup, row_number: int) -> CandidateRecord:
    name = _optional_text(row.get("name"))
    if name is None:
        raise ValueError("name is required")

    slug = _optional_text(row.get("slug")) or slugify(name)
    if not slug:
        raise ValueError(f"cannot derive a slug from name {name!r}")

    optional_text: dict[str, Any] = {
        column: _optional_text(row.get(column)) for column in _OPTIONAL_TEXT_COLUMNS
    }

    return CandidateRecord(
        row_number=row_number,
        name=name,
        slug=slug,
        latitude=_optional_coordinate(row.get("latitude"), column="latitude", limit=90.0),
        longitude=_optional_coordinate(row.get("longitude"), column="longitude", limit=180.0),
        category_id=lookup.categories.resolve(row.get(CATEGORY_COLUMN)),
        neighbourhood_id=lookup.neighbourhoods.resolve(row.get(NEIGHBOURHOOD_COLUMN)),
        status=_status(row.get("status")),
        **optional_text,
    )


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def _optional_coordinate(value: str | None, *, column: str, limit: float) -> float | None:
    raw = _optional_text(value)
    if raw is None:
        return None
    try:
        parsed = float(raw)
    except ValueError:
        raise ValueError(f"{column} must be a number, got {raw!r}") from None
    if not -limit <= parsed <= limit:
        raise ValueError(f"{column} must be between {-limit:g} and {limit:g}, got {raw}")
    return parsed


def _status(value: str | None) -> str:
    raw = _optional_text(value)
    if raw is None:
        return DEFAULT_STATUS
    normalized = raw.lower()
    if normalized not in ALLOWED_STATUSES:
        allowed = ", ".join(sorted(ALLOWED_STATUSES))
        raise ValueError(f"unsupported status {raw!r}. Allowed values: {allowed}")
    return normalized
