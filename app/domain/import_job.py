"""
app/domain/import_job.py

Mutable import job state published as immutable, versioned snapshots.

The job has one writer (the controller and the batch executor it drives)
and any number of readers. Every change replaces the whole snapshot under a
lock, so readers never observe counters and errors out of step.

Publishing and delivery are serialized, so observers see versions in
increasing order. When an observer itself publishes, the newer snapshot is
delivered first and the older one is not delivered to the remaining
observers.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from app.domain.business_import import ImportPhase, ImportSnapshot, RowError
from app.domain.import_errors import ImportJobStateError

logger = logging.getLogger(__name__)

Observer = Callable[[ImportSnapshot], None]

_ALLOWED_TRANSITIONS: dict[ImportPhase, frozenset[ImportPhase]] = {
    ImportPhase.IDLE: frozenset({ImportPhase.VALIDATING}),
    ImportPhase.VALIDATING: frozenset(
        {ImportPhase.RESOLVING, ImportPhase.ABORTED, ImportPhase.IDLE}
    ),
    ImportPhase.RESOLVING: frozenset({ImportPhase.IMPORTING, ImportPhase.ABORTED}),
    ImportPhase.IMPORTING: frozenset(
        {ImportPhase.COMPLETED, ImportPhase.COMPLETED_WITH_ERRORS}
    ),
    ImportPhase.COMPLETED: frozenset(),
    ImportPhase.COMPLETED_WITH_ERRORS: frozenset(),
    ImportPhase.ABORTED: frozenset(),
}


class ImportJob:
    """
    Holds the current snapshot and fans it out to observers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = ImportSnapshot()
        self._observers: list[Observer] = []
        # Re-entrant: an observer may publish, e.g. detach from a progress callback.
        self._delivery_lock = threading.RLock()

    @property
    def snapshot(self) -> ImportSnapshot:
        with self._lock:
            return self._snapshot

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer and return a callable that removes it.
        """

        with self._lock:
            self._observers.append(observer)

        def _unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    def transition(self, phase: ImportPhase, **changes: Any) -> ImportSnapshot:
        """
        Move to ``phase`` and apply ``changes`` in one publish.
        """

        def _apply(current: ImportSnapshot) -> ImportSnapshot:
            if phase not in _ALLOWED_TRANSITIONS[current.phase]:
                raise ImportJobStateError(
                    f"Cannot move import job from {current.phase.value} to {phase.value}."
                )
            return replace(current, phase=phase, **changes)

        return self._publish(_apply)

    def record_batch(
        self,
        *,
        processed: int,
        inserted: int,
        errors: Iterable[RowError],
    ) -> ImportSnapshot:
        """
        Apply one batch's counters and errors together.
        """

        new_errors = tuple(errors)

        def _apply(current: ImportSnapshot) -> ImportSnapshot:
            if current.phase is not ImportPhase.IMPORTING:
                raise ImportJobStateError(
                    f"Batch results cannot be recorded while {current.phase.value}."
                )
            if processed < current.processed or processed > current.total:
                raise ImportJobStateError(
                    f"processed={processed} is outside [{current.processed}, {current.total}]."
                )
            success = current.success + inserted
            failed = current.failed + len(new_errors)
            if processed != success + failed:
                raise ImportJobStateError(
                    f"processed={processed} does not equal success={success} + failed={failed}."
                )
            return replace(
                current,
                processed=processed,
                success=success,
                failed=failed,
                errors=current.errors + new_errors,
            )

        return self._publish(_apply)

    def mark_detached(self) -> ImportSnapshot:
        def _apply(current: ImportSnapshot) -> ImportSnapshot:
            if current.is_terminal:
                raise ImportJobStateError("A finished import cannot be hidden; reset it instead.")
            return replace(current, detached=True)

        return self._publish(_apply)

    def reset(self) -> ImportSnapshot:
        """
        Return to a fresh idle state. Only allowed from idle or a terminal phase.
        """

        def _apply(current: ImportSnapshot) -> ImportSnapshot:
            if not (current.is_terminal or current.phase is ImportPhase.IDLE):
                raise ImportJobStateError(
                    f"Cannot reset an import job while {current.phase.value}."
                )
            return ImportSnapshot(version=current.version)

        return self._publish(_apply)

    def _publish(self, apply: Callable[[ImportSnapshot], ImportSnapshot]) -> ImportSnapshot:
        with self._delivery_lock:
            with self._lock:
                updated = apply(self._snapshot)
                snapshot = replace(updated, version=self._snapshot.version + 1)
                self._snapshot = snapshot
                observers = list(self._observers)

            for observer in observers:
                if self.snapshot.version != snapshot.version:
                    # superseded by a publish from inside an observer
                    break
                try:
                    observer(snapshot)
                except Exception:  # noqa: BLE001
                    logger.exception(
                        "Import observer failed version=%s phase=%s",
                        snapshot.version,
                        snapshot.phase.value,
                    )
        return snapshot
