from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db.database import get_db
from ..errors import ValidationError
from ..models.job import JobKind, JobStatus, ProcessingJob

router = APIRouter()
logger = logging.getLogger(__name__)


class JobInfo(BaseModel):
    id: str
    job_type: str
    backend: str
    report_id: str | None = None
    status: str
    progress: int | None = None
    result: Any = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


def _to_info(job: ProcessingJob) -> JobInfo:
    return JobInfo(
        id=job.id,
        job_type=job.job_type_str,
        backend=job.backend_str,
        report_id=job.report_id,
        status=job.status_str,
        progress=job.progress,
        result=job.result,
        error_message=job.error_message,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@router.get("", response_model=List[JobInfo])
async def list_jobs(
    status_filter: Optional[str] = Query(None, alias="status"),
    type: Optional[str] = Query(None),
    active: bool = Query(False, description="Only jobs that are still queued or processing"),
    db: Session = Depends(get_db),
) -> List[JobInfo]:
    """Return tracked jobs, newest first."""
    query = db.query(ProcessingJob)
    if status_filter:
        try:
            query = query.filter(ProcessingJob.status == JobStatus(status_filter))
        except ValueError:
            raise ValidationError(f"Unknown status '{status_filter}'")
    if type:
        kind = JobKind.parse(type)
        if kind is None:
            raise ValidationError(f"Unknown job type '{type}'")
        query = query.filter(ProcessingJob.job_type == kind)
    if active:
        query = query.filter(ProcessingJob.status.in_([JobStatus.QUEUED, JobStatus.PROCESSING]))
    jobs = query.order_by(ProcessingJob.created_at.desc()).all()
    return [_to_info(j) for j in jobs]


@router.get("/{job_id}", response_model=JobInfo)
async def get_job(job_id: str, db: Session = Depends(get_db)) -> JobInfo:
    """Return a single job by task id."""
    job = db.query(ProcessingJob).filter(ProcessingJob.id == job_id).first()
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return _to_info(job)
