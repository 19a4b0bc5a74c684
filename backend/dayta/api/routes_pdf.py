"""Local PDF queue backed by Celery workers."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db.database import get_db
from ..errors import DaytaError, ValidationError
from ..models.job import JobBackend, JobKind, JobStatus, ProcessingJob
from ..services import task_store
from ..workers.tasks import render_pdf_task

router = APIRouter()
logger = logging.getLogger(__name__)


class PDFQueueRequest(BaseModel):
    reportId: Optional[str] = None


@router.post("/queue")
async def queue_pdf(body: Optional[PDFQueueRequest] = None, db: Session = Depends(get_db)) -> dict:
    """Queue a local PDF render of an analysis record."""
    if body is None or not body.reportId:
        raise ValidationError("Report ID is required")

    job_id = str(uuid.uuid4())
    task_store.create_job(db, job_id, JobKind.PDF, JobBackend.LOCAL, body.reportId)
    if not task_store.attach_task(db, body.reportId, JobKind.PDF, job_id):
        # The worker fails the job when it cannot load the record
        logger.warning("Queued PDF job %s for unknown report %s", job_id, body.reportId)
    db.commit()

    try:
        render_pdf_task.delay(job_id=job_id, report_id=body.reportId)
    except Exception as exc:
        logger.error("Failed to dispatch PDF job %s: %s", job_id, exc, exc_info=True)
        task_store.write_failure(db, JobKind.PDF, job_id)
        task_store.advance_job(db, job_id, JobStatus.FAILED, error=f"Failed to queue PDF job: {exc}")
        db.commit()
        raise DaytaError("Failed to queue PDF job") from exc
    logger.info("Queued PDF job %s for report %s", job_id, body.reportId)
    return {"message": "PDF generation job queued successfully", "status": "queued", "jobId": job_id}


@router.get("/queue")
async def get_pdf_queue_status(
    reportId: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> dict:
    """Status of the latest local PDF job for a report."""
    if not reportId:
        raise ValidationError("Report ID is required")

    job = (
        db.query(ProcessingJob)
        .filter(
            ProcessingJob.report_id == reportId,
            ProcessingJob.job_type == JobKind.PDF,
            ProcessingJob.backend == JobBackend.LOCAL,
        )
        .order_by(ProcessingJob.created_at.desc())
        .first()
    )
    return {"reportId": reportId, "status": job.status_str if job else "not_found"}
