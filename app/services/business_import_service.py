"""
Orchestrator service for bulk business imports: job registry, background
dispatch and job record persistence.
"""

from __future__ import annotations

import csv
import io
import logging
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks, UploadFile
from sqlalchemy.orm import Session, sessionmaker

from app.config import BusinessImportSettings, get_business_import_settings
from app.domain.business_import import ImportPhase, ImportSnapshot, ParsedTable
from app.domain.import_errors import (
    BusinessImportError,
    ImportNotConfirmedError,
    StructuralValidationError,
    UploadTooLargeError,
)
from app.repositories.business_repository import SQLAlchemyBusinessStore
from app.repositories.business_store import BusinessStore
from app.services.csv_table_parser import parse_csv_table
from app.services.import_job_controller import ImportJobController
from app.validators.business_table_validator import validate_table
from db.models.business_import_job import BusinessImportJob
from db.repositories.business_import_job_repository import BusinessImportJobRepository

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 1024 * 1024


class ImportTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


@dataclass(frozen=True)
class BusinessImportHandle:
    job_id: uuid.UUID
    file_name: str | None
    total: int
    created_at: datetime | None
    snapshot: ImportSnapshot


class _JobRecordWriter:
    """
    Mirrors published snapshots onto the persisted job record.

    Each write uses its own short-lived session. Snapshots older than the
    last one written are ignored, since detach can publish from a request
    thread while the import publishes from the worker.
    """

    def __init__(self, session_factory: Callable[[], Session], job_id: uuid.UUID) -> None:
        self._session_factory = session_factory
        self._job_id = job_id
        self._lock = threading.Lock()
        self._last_version = -1
        self._finished = False

    def __call__(self, snapshot: ImportSnapshot) -> None:
        with self._lock:
            if self._finished or snapshot.version <= self._last_version:
                return
            self._last_version = snapshot.version
            self._finished = snapshot.is_terminal
            try:
                self._write(snapshot)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Failed to persist business import progress id=%s version=%s",
                    self._job_id,
                    snapshot.version,
                )

    def _write(self, snapshot: ImportSnapshot) -> None:
        with self._session_factory() as db:
            repository = BusinessImportJobRepository(db)
            if snapshot.phase is ImportPhase.VALIDATING:
                repository.mark_running(job_id=self._job_id, status=snapshot.phase.value)
            else:
                repository.update_progress(
                    job_id=self._job_id,
                    status=snapshot.phase.value,
                    total_rows=snapshot.total,
                    processed_rows=snapshot.processed,
                    success_count=snapshot.success,
                    failed_count=snapshot.failed,
                    errors=[error.to_dict() for error in snapshot.errors],
                    error_message=snapshot.message,
                )
            db.commit()


class BusinessImportService:
    """
    Coordinates upload checks, background execution and status lookup.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | None = None,
        settings: BusinessImportSettings | None = None,
        store_factory: Callable[[Session], BusinessStore] = SQLAlchemyBusinessStore,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        self._settings = settings or get_business_import_settings()
        self._store_factory = store_factory
        self._sleep = sleep
        self._controllers: dict[uuid.UUID, ImportJobController] = {}
        self._finished_jobs: deque[uuid.UUID] = deque()
        self._registry_lock = threading.Lock()

    @property
    def confirm_threshold(self) -> int:
        return self._settings.confirm_threshold

    def trigger_import(
        self,
        *,
        db: Session,
        executor: ImportTaskExecutor,
        upload_file: UploadFile,
        confirm_large_import: bool = False,
    ) -> BusinessImportHandle:
        """
        Check the upload synchronously, then run the import in the background.

        Raises:
            TableParseError: The file is unreadable or too large.
            StructuralValidationError: The table failed whole-table checks.
            ImportNotConfirmedError: A large import was not confirmed.
        """

        content = self._read_upload(upload_file)
        table = parse_csv_table(content)
        problems = validate_table(table)
        if problems:
            raise StructuralValidationError(problems)

        total = len(table.rows)
        if total > self._settings.confirm_threshold and not confirm_large_import:
            raise ImportNotConfirmedError(total=total, threshold=self._settings.confirm_threshold)

        file_name = upload_file.filename or "upload.csv"
        repository = BusinessImportJobRepository(db)
        with db.begin():
            record = repository.create_job(
                status=ImportPhase.IDLE.value,
                file_name=file_name,
                total_rows=total,
            )

        store_session = self._session_factory()
        controller = ImportJobController(
            self._store_factory(store_session),
            batch_size=self._settings.batch_size,
            batch_delay_seconds=self._settings.batch_delay_seconds,
            confirm_threshold=self._settings.confirm_threshold,
            sleep=self._sleep,
            log_row_errors=self._settings.log_row_errors,
        )
        with self._registry_lock:
            self._controllers[record.id] = controller

        try:
            executor.submit(
                self._run_import_job,
                record.id,
                controller,
                table,
                confirm_large_import,
                store_session,
            )
        except Exception:
            self._unregister(record.id)
            store_session.close()
            with db.begin():
                repository.mark_failed(
                    job_id=record.id,
                    error_message="Failed to schedule business import job.",
                )
            raise

        logger.info("Business import accepted id=%s file=%s rows=%d", record.id, file_name, total)
        return BusinessImportHandle(
            job_id=record.id,
            file_name=file_name,
            total=total,
            created_at=record.created_at,
            snapshot=controller.snapshot(),
        )

    def get_snapshot(self, job_id: uuid.UUID) -> ImportSnapshot | None:
        with self._registry_lock:
            controller = self._controllers.get(job_id)
        return controller.snapshot() if controller is not None else None

    def detach(self, job_id: uuid.UUID) -> ImportSnapshot | None:
        """
        Hide a running import, or dismiss a finished one.

        A finished import returns its final summary and leaves the registry;
        its persisted record keeps the result.
        """

        with self._registry_lock:
            controller = self._controllers.get(job_id)
        if controller is None:
            return None

        snapshot = controller.detach()
        if snapshot.is_terminal:
            self._unregister(job_id)
        return snapshot

    def get_job_record(self, *, db: Session, job_id: uuid.UUID) -> BusinessImportJob | None:
        return BusinessImportJobRepository(db).get_job(job_id)

    def list_job_records(
        self,
        *,
        db: Session,
        limit: int = 100,
        status: str | None = None,
    ) -> list[BusinessImportJob]:
        return BusinessImportJobRepository(db).list_jobs(limit=limit, status=status)

    def get_errors(self, *, db: Session, job_id: uuid.UUID) -> list[dict[str, Any]] | None:
        """
        Return the ordered row errors from the live job, else the job record.
        """

        snapshot = self.get_snapshot(job_id)
        if snapshot is not None:
            return [error.to_dict() for error in snapshot.errors]

        record = self.get_job_record(db=db, job_id=job_id)
        if record is None:
            return None
        return list(record.errors_json or [])

    @staticmethod
    def export_errors_csv(errors: Iterable[Mapping[str, Any]]) -> str:
        """
        Render row errors as CSV: ``row``, ``error``, then the uploaded columns.
        """

        error_list = list(errors)
        data_columns: list[str] = []
        for error in error_list:
            for column in (error.get("data") or {}):
                if column not in data_columns and column not in ("row", "error"):
                    data_columns.append(column)

        buffer = io.StringIO()
        writer = csv.DictWriter(
            buffer,
            fieldnames=["row", "error", *data_columns],
            extrasaction="ignore",
            lineterminator="\n",
        )
        writer.writeheader()
        for error in error_list:
            data = error.get("data") or {}
            writer.writerow(
                {
                    **{column: data.get(column, "") for column in data_columns},
                    "row": error.get("row"),
                    "error": error.get("error"),
                }
            )
        return buffer.getvalue()

    def _run_import_job(
        self,
        job_id: uuid.UUID,
        controller: ImportJobController,
        table: ParsedTable,
        confirm_large_import: bool,
        store_session: Session,
    ) -> None:
        unsubscribe = controller.subscribe(_JobRecordWriter(self._session_factory, job_id))
        try:
            controller.run(table, confirm=lambda _total: confirm_large_import)
        except BusinessImportError as exc:
            logger.warning("Business import aborted id=%s error=%s", job_id, exc)
        except Exception as exc:
            self._unregister(job_id)
            self._mark_job_failed(job_id=job_id, exc=exc)
            return
        finally:
            unsubscribe()
            store_session.close()

        self._retire(job_id, controller.snapshot())

    def _retire(self, job_id: uuid.UUID, final: ImportSnapshot) -> None:
        """
        Keep a finished job live for status polling, bounded to the most
        recent ``retained_finished_jobs``. Its job record already holds the
        final state, so evicted jobs are served from there.
        """

        if final.detached or not final.is_terminal:
            self._unregister(job_id)
            return

        with self._registry_lock:
            self._finished_jobs.append(job_id)
            while len(self._finished_jobs) > self._settings.retained_finished_jobs:
                evicted = self._finished_jobs.popleft()
                self._controllers.pop(evicted, None)
                logger.debug("Business import evicted from live registry id=%s", evicted)

    def _mark_job_failed(self, *, job_id: uuid.UUID, exc: Exception) -> None:
        error_message = f"{type(exc).__name__}: {exc}"
        logger.exception("Business import failed id=%s error=%s", job_id, error_message)
        with self._session_factory() as db:
            try:
                repository = BusinessImportJobRepository(db)
                record = repository.get_job(job_id)
                if record is None:
                    logger.error("Unable to mark business import as failed because it was not found id=%s", job_id)
                    return
                if record.status != ImportPhase.ABORTED.value:
                    repository.mark_failed(job_id=job_id, error_message=error_message[:2000])
                db.commit()
            except Exception:
                db.rollback()
                logger.exception("Failed to persist failed business import state id=%s", job_id)

    def _unregister(self, job_id: uuid.UUID) -> None:
        with self._registry_lock:
            self._controllers.pop(job_id, None)
            if job_id in self._finished_jobs:
                self._finished_jobs.remove(job_id)

    def _read_upload(self, upload_file: UploadFile) -> bytes:
        limit = self._settings.max_upload_bytes
        upload_file.file.seek(0)

        chunks: list[bytes] = []
        size = 0
        while True:
            chunk = upload_file.file.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            size += len(chunk)
            if size > limit:
                raise UploadTooLargeError(max_bytes=limit)
            chunks.append(chunk)

        upload_file.file.seek(0)
        return b"".join(chunks)


@lru_cache(maxsize=1)
def get_business_import_service() -> BusinessImportService:
    return BusinessImportService()
