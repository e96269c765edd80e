"""
app/services/batch_executor.py

Sequential, rate-limited batch insertion of business records.

Each batch is written with one bulk insert. When that fails, the batch is
retried one record at a time so a single bad row is attributed to itself
instead of failing the rows around it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from app.domain.business_import import CandidateRecord, RawRow, RowError, row_number_for
from app.domain.import_job import ImportJob
from app.mappers.business_record_builder import build_record
from app.repositories.business_store import BusinessStore
from app.services.reference_resolver import ReferenceLookup

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_BATCH_DELAY_SECONDS = 0.1


@dataclass(frozen=True)
class BatchInsertOutcome:
    inserted: int = 0
    errors: tuple[RowError, ...] = field(default_factory=tuple)


def insert_with_fallback(
    store: BusinessStore,
    candidates: Sequence[CandidateRecord],
    *,
    raw_rows: dict[int, RawRow] | None = None,
    batch_number: int | None = None,
    log_row_errors: bool = True,
) -> BatchInsertOutcome:
    """
    Insert ``candidates`` in bulk, falling back to one insert per record.

    A bulk insert that reports fewer rows than it was given is retried per
    record as well, so every candidate ends up counted as inserted or failed.

    ``raw_rows`` maps row numbers to the original CSV rows so failures can
    carry the data the user uploaded.
    """

    if not candidates:
        return BatchInsertOutcome()

    try:
        reported = store.bulk_insert(candidates)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "Bulk insert failed; retrying per record batch=%s size=%d error=%s",
            batch_number,
            len(candidates),
            exc,
        )
    else:
        # A missing or empty echo means the backend did not report rows.
        if not reported or reported >= len(candidates):
            return BatchInsertOutcome(inserted=len(candidates))
        logger.warning(
            "Bulk insert reported fewer rows than sent; retrying per record batch=%s size=%d reported=%d",
            batch_number,
            len(candidates),
            reported,
        )

    inserted = 0
    errors: list[RowError] = []
    for candidate in candidates:
        try:
            store.insert_one(candidate)
        except Exception as exc:  # noqa: BLE001
            if log_row_errors:
                logger.warning(
                    "Record insert failed row=%d slug=%s error=%s",
                    candidate.row_number,
                    candidate.slug,
                    exc,
                )
            data = (raw_rows or {}).get(
                candidate.row_number,
                {"name": candidate.name, "slug": candidate.slug},
            )
            errors.append(RowError(row=candidate.row_number, error=str(exc), data=data))
            continue
        inserted += 1

    return BatchInsertOutcome(inserted=inserted, errors=tuple(errors))


class BatchExecutor:
    """
    Drives one ImportJob through its importing phase.
    """

    def __init__(
        self,
        store: BusinessStore,
        job: ImportJob,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        log_row_errors: bool = True,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._store = store
        self._job = job
        self._batch_size = batch_size
        self._batch_delay_seconds = max(0.0, batch_delay_seconds)
        self._sleep = sleep
        self._log_row_errors = log_row_errors

    def execute(self, rows: Sequence[RawRow], lookup: ReferenceLookup) -> None:
        """
        Process every row in order. Never stops early and never raises for
        row-level failures; those are recorded on the job.
        """

        total = len(rows)
        batch_count = (total + self._batch_size - 1) // self._batch_size

        for batch_index, start in enumerate(range(0, total, self._batch_size)):
            end = min(total, start + self._batch_size)
            batch_number = batch_index + 1

            candidates: list[CandidateRecord] = []
            raw_rows: dict[int, RawRow] = {}
            errors: list[RowError] = []
            for index in range(start, end):
                row_number = row_number_for(index)
                built = build_record(rows[index], lookup, row_number)
                if isinstance(built, RowError):
                    if self._log_row_errors:
                        logger.warning("Row rejected row=%d error=%s", row_number, built.error)
                    errors.append(built)
                    continue
                candidates.append(built)
                raw_rows[row_number] = rows[index]

            outcome = insert_with_fallback(
                self._store,
                candidates,
                raw_rows=raw_rows,
                batch_number=batch_number,
                log_row_errors=self._log_row_errors,
            )
            errors.extend(outcome.errors)
            errors.sort(key=lambda error: error.row)

            snapshot = self._job.record_batch(
                processed=end,
                inserted=outcome.inserted,
                errors=errors,
            )
            logger.info(
                "Batch processed batch=%d/%d processed=%d success=%d failed=%d",
                batch_number,
                batch_count,
                snapshot.processed,
                snapshot.success,
                snapshot.failed,
            )

            if batch_number < batch_count:
                self._sleep(self._batch_delay_seconds)
