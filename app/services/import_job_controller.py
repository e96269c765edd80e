"""
app/services/import_job_controller.py

State machine for one bulk business import.

    idle -> validating -> (aborted | resolving) -> (aborted | importing)
         -> (completed | completed_with_errors)

Structural and reference-data failures abort the job before any write.
Once importing starts the job always runs to a completed phase; row
failures only move counters.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from app.domain.business_import import ImportPhase, ImportSnapshot, ParsedTable
from app.domain.import_errors import (
    ImportJobStateError,
    ImportNotConfirmedError,
    ReferenceFetchError,
    StructuralValidationError,
    TableParseError,
)
from app.domain.import_job import ImportJob, Observer
from app.repositories.business_store import BusinessStore
from app.services.batch_executor import (
    DEFAULT_BATCH_DELAY_SECONDS,
    DEFAULT_BATCH_SIZE,
    BatchExecutor,
)
from app.services.csv_table_parser import parse_csv_table
from app.services.reference_resolver import ReferenceResolver
from app.validators.business_table_validator import validate_table

logger = logging.getLogger(__name__)

DEFAULT_CONFIRM_THRESHOLD = 100

ConfirmCallback = Callable[[int], bool]


class ImportJobController:
    """
    Runs one import at a time against a single ImportJob.
    """

    def __init__(
        self,
        store: BusinessStore,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        confirm_threshold: int = DEFAULT_CONFIRM_THRESHOLD,
        sleep: Callable[[float], None] = time.sleep,
        log_row_errors: bool = True,
        job: ImportJob | None = None,
    ) -> None:
        self._store = store
        self._job = job or ImportJob()
        self._confirm_threshold = max(1, confirm_threshold)
        self._resolver = ReferenceResolver(store)
        self._executor = BatchExecutor(
            store,
            self._job,
            batch_size=batch_size,
            batch_delay_seconds=batch_delay_seconds,
            sleep=sleep,
            log_row_errors=log_row_errors,
        )

    @property
    def job(self) -> ImportJob:
        return self._job

    @property
    def confirm_threshold(self) -> int:
        return self._confirm_threshold

    def snapshot(self) -> ImportSnapshot:
        return self._job.snapshot

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        return self._job.subscribe(observer)

    def requires_confirmation(self, total: int) -> bool:
        return total > self._confirm_threshold

    def import_csv(
        self,
        content: bytes | str,
        confirm: ConfirmCallback | None = None,
    ) -> ImportSnapshot:
        """
        Parse raw CSV content and run the import.

        Raises:
            TableParseError: The content could not be parsed; the job is aborted.
        """

        self._begin()
        try:
            table = parse_csv_table(content)
        except TableParseError as exc:
            self._job.transition(ImportPhase.ABORTED, message=str(exc))
            logger.warning("Business import aborted: unreadable file error=%s", exc)
            raise
        return self._run_from_validating(table, confirm)

    def run(
        self,
        table: ParsedTable,
        confirm: ConfirmCallback | None = None,
    ) -> ImportSnapshot:
        """
        Validate, resolve and import ``table``; returns the terminal snapshot.

        ``confirm`` is called with the row count when it exceeds the
        confirmation threshold. Declining leaves the job idle.

        Raises:
            ImportJobStateError: The controller is not idle.
            StructuralValidationError: The table failed whole-table checks.
            ImportNotConfirmedError: A large import was declined.
            ReferenceFetchError: Reference data could not be loaded.
        """

        self._begin()
        return self._run_from_validating(table, confirm)

    def detach(self) -> ImportSnapshot:
        """
        Stop observing the current import.

        A running import is only hidden and keeps going. A finished import
        returns its final summary and the job is reset to idle.
        """

        current = self._job.snapshot
        if current.phase is ImportPhase.IDLE:
            return current
        try:
            return self._job.mark_detached()
        except ImportJobStateError:
            final = self._job.snapshot
            self._job.reset()
            logger.info(
                "Business import dismissed phase=%s success=%d failed=%d",
                final.phase.value,
                final.success,
                final.failed,
            )
            return final

    def _begin(self) -> None:
        current = self._job.snapshot
        if current.phase is not ImportPhase.IDLE:
            raise ImportJobStateError(
                f"An import is already {current.phase.value}; detach it before starting another."
            )
        self._job.transition(ImportPhase.VALIDATING)

    def _run_from_validating(
        self,
        table: ParsedTable,
        confirm: ConfirmCallback | None,
    ) -> ImportSnapshot:
        problems = validate_table(table)
        if problems:
            error = StructuralValidationError(problems)
            self._job.transition(
                ImportPhase.ABORTED,
                problems=tuple(problems),
                message=str(error),
            )
            logger.warning("Business import aborted: invalid table error=%s", error)
            raise error

        total = len(table.rows)
        if self.requires_confirmation(total) and not (confirm is not None and confirm(total)):
            self._job.transition(ImportPhase.IDLE)
            logger.info(
                "Business import not confirmed total=%d threshold=%d",
                total,
                self._confirm_threshold,
            )
            raise ImportNotConfirmedError(total=total, threshold=self._confirm_threshold)

        self._job.transition(ImportPhase.RESOLVING, total=total)
        try:
            lookup = self._resolver.build()
        except ReferenceFetchError as exc:
            self._job.transition(ImportPhase.ABORTED, message=str(exc))
            logger.warning("Business import aborted: reference data unavailable error=%s", exc)
            raise

        self._job.transition(ImportPhase.IMPORTING)
        logger.info("Business import started total=%d", total)
        self._executor.execute(table.rows, lookup)

        final_phase = (
            ImportPhase.COMPLETED_WITH_ERRORS
            if self._job.snapshot.failed
            else ImportPhase.COMPLETED
        )
        final = self._job.transition(final_phase)
        logger.info(
            "Business import finished phase=%s total=%d success=%d failed=%d",
            final.phase.value,
            final.total,
            final.success,
            final.failed,
        )
        return final
