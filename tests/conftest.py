"""
tests/conftest.py

Shared fixtures: an in-memory BusinessStore fake and a SQLite-backed
session factory for repository and service tests.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator, Sequence
from types import MappingProxyType
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers models on Base.metadata
from app.domain.business_import import (
    CandidateRecord,
    ParsedTable,
    ReferenceEntity,
    ReferenceKind,
)
from app.domain.import_errors import StoreWriteError
from db.base import Base

CAFE_ID = uuid.UUID("00000000-0000-0000-0000-00000000cafe")
BAKERY_ID = uuid.UUID("00000000-0000-0000-0000-0000000b4e41")
MITTE_ID = uuid.UUID("00000000-0000-0000-0000-00000000317e")


class FakeBusinessStore:
    """
    In-memory BusinessStore that enforces unique slugs like the real table.

    ``fail_slugs`` forces a failure for specific records and ``fail_fetch``
    makes reference loading raise.
    """

    def __init__(
        self,
        *,
        categories: Iterable[ReferenceEntity] = (),
        neighbourhoods: Iterable[ReferenceEntity] = (),
        fail_slugs: Iterable[str] = (),
        fail_fetch: bool = False,
        enforce_unique: bool = True,
        report_count: bool = True,
    ) -> None:
        self.categories = list(categories)
        self.neighbourhoods = list(neighbourhoods)
        self.fail_slugs = set(fail_slugs)
        self.fail_fetch = fail_fetch
        self.enforce_unique = enforce_unique
        self.report_count = report_count

        self.inserted: list[CandidateRecord] = []
        self.fetch_calls: list[ReferenceKind] = []
        self.bulk_calls: list[list[int]] = []
        self.insert_one_calls: list[int] = []

    def fetch_all(self, kind: ReferenceKind) -> list[ReferenceEntity]:
        self.fetch_calls.append(ReferenceKind(kind))
        if self.fail_fetch:
            raise ConnectionError("connection refused")
        if kind is ReferenceKind.CATEGORY:
            return list(self.categories)
        return list(self.neighbourhoods)

    def bulk_insert(self, records: Sequence[CandidateRecord]) -> int | None:
        self.bulk_calls.append([record.row_number for record in records])
        pending: set[str] = set()
        for record in records:
            self._check(record, pending)
            pending.add(record.slug)
        self.inserted.extend(records)
        return len(records) if self.report_count else None

    def insert_one(self, record: CandidateRecord) -> None:
        self.insert_one_calls.append(record.row_number)
        self._check(record, set())
        self.inserted.append(record)

    @property
    def inserted_slugs(self) -> list[str]:
        return [record.slug for record in self.inserted]

    def _check(self, record: CandidateRecord, pending: set[str]) -> None:
        if record.slug in self.fail_slugs:
            raise StoreWriteError(
                f'duplicate key value violates unique constraint "businesses_slug_key" ({record.slug})',
                code="unique_violation",
            )
        if self.enforce_unique and (
            record.slug in pending or record.slug in set(self.inserted_slugs)
        ):
            raise StoreWriteError(
                f'duplicate key value violates unique constraint "businesses_slug_key" ({record.slug})',
                code="unique_violation",
            )


def make_table(rows: Sequence[dict[str, str]], headers: Sequence[str] | None = None) -> ParsedTable:
    """Build a ParsedTable the way the CSV parser would."""
    resolved_headers = tuple(headers) if headers is not None else tuple(rows[0]) if rows else ("name",)
    return ParsedTable(
        headers=resolved_headers,
        rows=tuple(
            MappingProxyType({header: row.get(header, "") for header in resolved_headers})
            for row in rows
        ),
    )


def business_rows(count: int, **extra: Any) -> list[dict[str, str]]:
    """``count`` valid rows named ``Business 1`` .. ``Business N``."""
    return [
        {"name": f"Business {index}", "address": f"{index} Main Street", **extra}
        for index in range(1, count + 1)
    ]


@pytest.fixture()
def reference_entities() -> dict[str, list[ReferenceEntity]]:
    return {
        "categories": [
            ReferenceEntity(id=CAFE_ID, slug="cafe", name="Cafe"),
            ReferenceEntity(id=BAKERY_ID, slug="bakery", name="Bakery & Patisserie"),
        ],
        "neighbourhoods": [
            ReferenceEntity(id=MITTE_ID, slug="mitte", name="Mitte"),
        ],
    }


@pytest.fixture()
def store(reference_entities: dict[str, list[ReferenceEntity]]) -> FakeBusinessStore:
    return FakeBusinessStore(
        categories=reference_entities["categories"],
        neighbourhoods=reference_entities["neighbourhoods"],
    )


@pytest.fixture()
def sleep_calls() -> list[float]:
    return []


@pytest.fixture()
def fake_sleep(sleep_calls: list[float]):
    return sleep_calls.append


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    with session_factory() as session:
        yield session
