"""
app/repositories/business_repository.py

SQLAlchemy storage for the bulk business import.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.business_import import CandidateRecord, ReferenceEntity, ReferenceKind
from app.domain.import_errors import StoreWriteError
from db.models.business import Business
from db.models.category import Category
from db.models.neighbourhood import Neighbourhood

_REFERENCE_MODELS: dict[ReferenceKind, Any] = {
    ReferenceKind.CATEGORY: Category,
    ReferenceKind.NEIGHBOURHOOD: Neighbourhood,
}

# PostgreSQL SQLSTATE class 23 codes.
_SQLSTATE_CODES: dict[str, str] = {
    "23505": "unique_violation",
    "23503": "foreign_key_violation",
    "23502": "not_null_violation",
}

_MESSAGE_CODES: tuple[tuple[str, str], ...] = (
    ("unique", "unique_violation"),
    ("foreign key", "foreign_key_violation"),
    ("not null", "not_null_violation"),
    ("not-null", "not_null_violation"),
)


class SQLAlchemyBusinessStore:
    """
    BusinessStore backed by the directory tables.

    Every insert call runs in its own transaction: a failed bulk insert
    leaves nothing behind, so the per-record fallback starts clean.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def fetch_all(self, kind: ReferenceKind) -> list[ReferenceEntity]:
        model = _REFERENCE_MODELS[ReferenceKind(kind)]
        stmt = select(model.id, model.slug, model.name).order_by(model.name)
        return [
            ReferenceEntity(id=row.id, slug=row.slug, name=row.name)
            for row in self._session.execute(stmt)
        ]

    def bulk_insert(self, records: Sequence[CandidateRecord]) -> int | None:
        if not records:
            return 0

        payloads = [record.to_payload() for record in records]
        try:
            inserted_ids = self._session.scalars(
                insert(Business).returning(Business.id),
                payloads,
            ).all()
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise _to_store_error(exc) from exc
        return len(inserted_ids)

    def insert_one(self, record: CandidateRecord) -> None:
        try:
            self._session.execute(insert(Business), [record.to_payload()])
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise _to_store_error(exc) from exc


def _to_store_error(exc: SQLAlchemyError) -> StoreWriteError:
    original = getattr(exc, "orig", None)
    message = str(original).strip() if original is not None else str(exc)
    if not isinstance(exc, IntegrityError):
        return StoreWriteError(message, code="database_error")

    sqlstate = getattr(original, "sqlstate", None)
    if sqlstate in _SQLSTATE_CODES:
        return StoreWriteError(message, code=_SQLSTATE_CODES[sqlstate])

    lowered = message.lower()
    for marker, code in _MESSAGE_CODES:
        if marker in lowered:
            return StoreWriteError(message, code=code)
    return StoreWriteError(message, code="integrity_error")
