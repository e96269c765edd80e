"""
Schemas for bulk business import trigger, status and detach endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class RowErrorResponse(BaseModel):
    row: int
    error: str
    data: dict[str, Any] = Field(default_factory=dict)


class StructuralProblemResponse(BaseModel):
    message: str
    rows: list[int] = Field(default_factory=list)


class BusinessImportProgressResponse(BaseModel):
    job_id: UUID
    status: str
    total: int = 0
    processed: int = 0
    success: int = 0
    failed: int = 0
    errors: list[RowErrorResponse] = Field(default_factory=list)
    problems: list[StructuralProblemResponse] = Field(default_factory=list)
    message: str | None = None
    detached: bool = False
    live: bool = Field(
        default=True,
        description="False when served from the persisted job record.",
    )
    version: int | None = None


class BusinessImportAcceptedResponse(BaseModel):
    job_id: UUID
    file_name: str | None = None
    status: str
    total: int
    confirm_threshold: int
    created_at: datetime | None = None


class BusinessImportJobResponse(BaseModel):
    job_id: UUID
    file_name: str | None = None
    status: str
    total_rows: int
    processed_rows: int
    success_count: int
    failed_count: int
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class BusinessImportJobListResponse(BaseModel):
    jobs: list[BusinessImportJobResponse] = Field(default_factory=list)
