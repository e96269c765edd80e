"""
Repository for business import job persistence and status lookup.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.models.business_import_job import BusinessImportJob

_TERMINAL_STATUSES = frozenset({"completed", "completed_with_errors", "aborted"})


class BusinessImportJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(
        self,
        *,
        status: str,
        file_name: str | None = None,
        total_rows: int = 0,
    ) -> BusinessImportJob:
        job = BusinessImportJob(
            status=status,
            file_name=file_name,
            total_rows=total_rows,
            processed_rows=0,
            success_count=0,
            failed_count=0,
            errors_json=[],
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> BusinessImportJob | None:
        return self._session.get(BusinessImportJob, job_id)

    def list_jobs(
        self,
        *,
        limit: int = 100,
        status: str | None = None,
    ) -> list[BusinessImportJob]:
        stmt: Select[tuple[BusinessImportJob]] = select(BusinessImportJob)

        if status:
            stmt = stmt.where(BusinessImportJob.status == status)

        stmt = stmt.order_by(BusinessImportJob.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def mark_running(self, *, job_id: uuid.UUID, status: str) -> BusinessImportJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = status
        job.started_at = datetime.now(timezone.utc)
        job.completed_at = None
        job.error_message = None
        return job

    def update_progress(
        self,
        *,
        job_id: uuid.UUID,
        status: str,
        total_rows: int,
        processed_rows: int,
        success_count: int,
        failed_count: int,
        errors: list[dict[str, Any]],
        error_message: str | None = None,
    ) -> BusinessImportJob | None:
        """
        Mirror the latest counters onto the job; stamps completion on terminal status.
        """

        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = status
        job.total_rows = total_rows
        job.processed_rows = processed_rows
        job.success_count = success_count
        job.failed_count = failed_count
        job.errors_json = errors
        job.error_message = error_message
        if status in _TERMINAL_STATUSES and job.completed_at is None:
            job.completed_at = datetime.now(timezone.utc)
        return job

    def mark_failed(self, *, job_id: uuid.UUID, error_message: str) -> BusinessImportJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = "aborted"
        job.completed_at = datetime.now(timezone.utc)
        job.error_message = error_message
        return job
