"""
app/api/routers/business_import.py

Bulk business CSV import endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.dependencies import get_csv_upload
from app.domain.business_import import ImportSnapshot
from app.domain.import_errors import (
    ImportNotConfirmedError,
    StructuralValidationError,
    TableParseError,
    UploadTooLargeError,
)
from app.schemas.business_import import (
    BusinessImportAcceptedResponse,
    BusinessImportJobListResponse,
    BusinessImportJobResponse,
    BusinessImportProgressResponse,
    RowErrorResponse,
    StructuralProblemResponse,
)
from app.services.business_import_service import (
    BusinessImportService,
    FastAPIBackgroundTaskExecutor,
    get_business_import_service,
)
from db.models.business_import_job import BusinessImportJob
from db.session import get_db

router = APIRouter(prefix="/business-imports", tags=["business-imports"])


@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=BusinessImportAcceptedResponse,
)
def trigger_business_import(
    background_tasks: BackgroundTasks,
    file: UploadFile = Depends(get_csv_upload),
    confirm_large_import: bool = Query(
        default=False,
        description="Required when the file has more rows than the confirmation threshold",
    ),
    db: Session = Depends(get_db),
    import_service: BusinessImportService = Depends(get_business_import_service),
) -> BusinessImportAcceptedResponse:
    """
    Accept a business CSV and import it in the background.
    """

    try:
        handle = import_service.trigger_import(
            db=db,
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
            upload_file=file,
            confirm_large_import=confirm_large_import,
        )
    except UploadTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=str(exc),
        ) from exc
    except TableParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StructuralValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.to_dict(),
        ) from exc
    except ImportNotConfirmedError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "total": exc.total,
                "threshold": exc.threshold,
            },
        ) from exc
    finally:
        file.file.close()

    return BusinessImportAcceptedResponse(
        job_id=handle.job_id,
        file_name=handle.file_name,
        status=handle.snapshot.phase.value,
        total=handle.total,
        confirm_threshold=import_service.confirm_threshold,
        created_at=handle.created_at,
    )


@router.get("", response_model=BusinessImportJobListResponse)
def list_business_imports(
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=100, ge=1, le=500, description="Max jobs returned"),
    db: Session = Depends(get_db),
    import_service: BusinessImportService = Depends(get_business_import_service),
) -> BusinessImportJobListResponse:
    jobs = import_service.list_job_records(db=db, limit=limit, status=status_filter)
    return BusinessImportJobListResponse(jobs=[_to_job_response(job) for job in jobs])


@router.get("/{job_id}", response_model=BusinessImportProgressResponse)
def get_business_import(
    job_id: UUID,
    db: Session = Depends(get_db),
    import_service: BusinessImportService = Depends(get_business_import_service),
) -> BusinessImportProgressResponse:
    snapshot = import_service.get_snapshot(job_id)
    if snapshot is not None:
        return _to_progress_response(job_id, snapshot)

    record = import_service.get_job_record(db=db, job_id=job_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Business import not found: {job_id}",
        )
    return _record_to_progress_response(record)


@router.post("/{job_id}/detach", response_model=BusinessImportProgressResponse)
def detach_business_import(
    job_id: UUID,
    import_service: BusinessImportService = Depends(get_business_import_service),
) -> BusinessImportProgressResponse:
    """
    Stop watching an import. A running import keeps going in the background.
    """

    snapshot = import_service.detach(job_id)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active business import: {job_id}",
        )
    return _to_progress_response(job_id, snapshot)


@router.get("/{job_id}/errors.csv")
def export_business_import_errors(
    job_id: UUID,
    db: Session = Depends(get_db),
    import_service: BusinessImportService = Depends(get_business_import_service),
) -> Response:
    errors = import_service.get_errors(db=db, job_id=job_id)
    if errors is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Business import not found: {job_id}",
        )
    return Response(
        content=import_service.export_errors_csv(errors),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="business-import-{job_id}-errors.csv"'},
    )


def _to_progress_response(job_id: UUID, snapshot: ImportSnapshot) -> BusinessImportProgressResponse:
    return BusinessImportProgressResponse(
        job_id=job_id,
        status=snapshot.phase.value,
        total=snapshot.total,
        processed=snapshot.processed,
        success=snapshot.success,
        failed=snapshot.failed,
        errors=[
            RowErrorResponse(row=error.row, error=error.error, data=dict(error.data))
            for error in snapshot.errors
        ],
        problems=[
            StructuralProblemResponse(message=problem.message, rows=list(problem.rows))
            for problem in snapshot.problems
        ],
        message=snapshot.message,
        detached=snapshot.detached,
        live=True,
        version=snapshot.version,
    )


def _record_to_progress_response(record: BusinessImportJob) -> BusinessImportProgressResponse:
    return BusinessImportProgressResponse(
        job_id=record.id,
        status=record.status,
        total=record.total_rows,
        processed=record.processed_rows,
        success=record.success_count,
        failed=record.failed_count,
        errors=[RowErrorResponse(**error) for error in record.errors_json or []],
        message=record.error_message,
        live=False,
    )


def _to_job_response(job: BusinessImportJob) -> BusinessImportJobResponse:
    return BusinessImportJobResponse(
        job_id=job.id,
        file_name=job.file_name,
        status=job.status,
        total_rows=job.total_rows,
        processed_rows=job.processed_rows,
        success_count=job.success_count,
        failed_count=job.failed_count,
        error_message=job.error_message,
        created_at=job.created_at,
        updated_at=job.updated_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )
