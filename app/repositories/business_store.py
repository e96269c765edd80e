"""
app/repositories/business_store.py

Storage collaborator contract used by the bulk business import.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from app.domain.business_import import CandidateRecord, ReferenceEntity, ReferenceKind


class BusinessStore(Protocol):
    """
    Reference reads plus bulk and single business inserts.

    Write failures are raised as ``StoreWriteError`` carrying the backend's
    message so a failed row can be attributed precisely.
    """

    def fetch_all(self, kind: ReferenceKind) -> list[ReferenceEntity]:
        ...

    def bulk_insert(self, records: Sequence[CandidateRecord]) -> int | None:
        """
        Insert all records atomically. Returns the inserted count, or None
        when the backend does not report inserted rows.
        """
        ...

    def insert_one(self, record: CandidateRecord) -> None:
        ...
