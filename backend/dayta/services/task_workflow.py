"""Submit / poll / materialise workflow for jobs run on the external queue.

``submit_job`` and ``check_task_status`` never touch the database.
``materialize_result`` is the only writer, and it writes through the
conditional updates in :mod:`dayta.services.task_store`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dayta.config import settings
from dayta.errors import ExternalServiceError, PersistenceError, ValidationError
from dayta.models.job import STATUS_PROGRESS, JobKind, JobStatus
from dayta.services import task_store
from dayta.services.fal_client import FalQueueClient

logger = logging.getLogger(__name__)

# Queue-side status names
_FAL_STATUS_MAP = {
    "IN_QUEUE": JobStatus.QUEUED,
    "IN_PROGRESS": JobStatus.PROCESSING,
    "COMPLETED": JobStatus.COMPLETED,
    "FAILED": JobStatus.FAILED,
}


class SubmittedJob(BaseModel):
    task_id: str
    kind: JobKind
    status: JobStatus = JobStatus.QUEUED
    estimated_time: int


class TaskStatus(BaseModel):
    task_id: str
    status: JobStatus
    progress: Optional[int] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    queue_position: Optional[int] = None


class MaterializedResult(BaseModel):
    task_id: str
    kind: JobKind
    result: Dict[str, Any]
    updated: bool


class ResolvedTask(BaseModel):
    """Outcome of a result request: either the materialised result, or the reason there is none yet."""

    task_id: str
    status: JobStatus
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def parse_kind(value: Optional[str]) -> JobKind:
    kind = JobKind.parse(value)
    if kind is None:
        raise ValidationError(f"Task type must be one of: {', '.join(k.value for k in JobKind)}")
    return kind


def map_queue_status(raw: Optional[str]) -> JobStatus:
    return _FAL_STATUS_MAP.get((raw or "").upper(), JobStatus.QUEUED)


def estimate_seconds(kind: JobKind, payload: Mapping[str, Any]) -> int:
    if kind is JobKind.ANALYSIS and payload.get("analysisType", "comprehensive") == "comprehensive":
        return 300
    return 120


# ---------------------------------------------------------------------------
# Job submitter
# ---------------------------------------------------------------------------


async def submit_job(client: FalQueueClient, kind: Optional[str], payload: Optional[Mapping[str, Any]]) -> SubmittedJob:
    """Validate and enqueue a job, returning the worker's task identifier.

    Associating the identifier with an analysis record is left to the caller.
    """
    if not kind or not payload:
        raise ValidationError("Job type and payload are required")
    job_kind = parse_kind(kind)
    if not payload.get("reportId"):
        raise ValidationError("Report ID is required")

    body = dict(payload)
    if job_kind is JobKind.ANALYSIS:
        data = body.get("data")
        if not data:
            raise ValidationError("Report ID and data are required")
        if not isinstance(data, list):
            raise ValidationError("Analysis data must be a list of rows")
        if len(data) > settings.ANALYSIS_MAX_ROWS:
            logger.info(
                "Truncating analysis data for report %s from %d to %d rows",
                body["reportId"],
                len(data),
                settings.ANALYSIS_MAX_ROWS,
            )
            body["data"] = data[: settings.ANALYSIS_MAX_ROWS]

    task_id = await client.submit(job_kind, body)
    return SubmittedJob(task_id=task_id, kind=job_kind, estimated_time=estimate_seconds(job_kind, body))


# ---------------------------------------------------------------------------
# Status poller
# ---------------------------------------------------------------------------


async def check_task_status(client: FalQueueClient, task_id: Optional[str], kind: Optional[str]) -> TaskStatus:
    """Report whatever the queue currently says about ``task_id``. Read-only."""
    if not task_id or not kind:
        raise ValidationError("Task ID and type are required")
    job_kind = parse_kind(kind)

    raw = await client.status(job_kind, task_id)
    if "status" not in raw:
        raise ExternalServiceError("Queue status response carried no status")

    status = map_queue_status(raw.get("status"))
    error = raw.get("error")
    if status is JobStatus.COMPLETED and error:
        status = JobStatus.FAILED

    progress = raw.get("progress")
    if not isinstance(progress, int):
        progress = STATUS_PROGRESS[status]

    return TaskStatus(
        task_id=task_id,
        status=status,
        progress=progress,
        result=raw.get("data") if status is JobStatus.COMPLETED else None,
        error=str(error) if status is JobStatus.FAILED and error else None,
        queue_position=raw.get("queue_position"),
    )


# ---------------------------------------------------------------------------
# Result materializer
# ---------------------------------------------------------------------------


def shape_result(kind: JobKind, raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn the worker's payload into the client-facing result shape."""
    generated_at = datetime.now(timezone.utc).isoformat()
    if kind is JobKind.PDF:
        if not raw.get("pdf_url"):
            raise ExternalServiceError("PDF result carried no pdf_url")
        return {
            "pdfUrl": raw["pdf_url"],
            "downloadUrl": raw.get("download_url"),
            "metadata": raw.get("metadata"),
            "generatedAt": generated_at,
        }
    if not raw.get("summary"):
        raise ExternalServiceError("Analysis result carried no summary")
    return {
        "summary": raw["summary"],
        "insights": raw.get("insights") or [],
        "recommendations": raw.get("recommendations") or [],
        "visualizations": raw.get("charts"),
        "statistics": raw.get("statistical_analysis"),
        "confidence": raw.get("confidence_score"),
        "processingTime": raw.get("processing_time_ms"),
        "aiModelsUsed": raw.get("ai_models_used"),
        "generatedAt": generated_at,
    }


async def materialize_result(
    client: FalQueueClient,
    db: Session,
    task_id: Optional[str],
    kind: Optional[str],
) -> MaterializedResult:
    """Fetch a completed job's result and write it into the matching analysis record.

    A task id with no matching record is not an error: the result is returned
    and nothing is written. A record that already holds a terminal status is
    left untouched, which makes repeated calls idempotent.
    """
    if not task_id or not kind:
        raise ValidationError("Task ID and type are required")
    job_kind = parse_kind(kind)

    raw = await client.result(job_kind, task_id)
    result = shape_result(job_kind, raw)

    try:
        if job_kind is JobKind.PDF:
            updated = task_store.write_pdf_result(db, task_id, result["pdfUrl"])
        else:
            updated = task_store.write_analysis_result(db, task_id, result)
        task_store.advance_job(db, task_id, JobStatus.COMPLETED, result=result)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to store %s result for task %s: %s", job_kind.value, task_id, exc, exc_info=True)
        raise PersistenceError("Failed to store task result", task_id=task_id, result=result) from exc

    if updated:
        logger.info("Stored %s result for task %s", job_kind.value, task_id)
    else:
        logger.info("No open analysis record for %s task %s; result not stored", job_kind.value, task_id)
    return MaterializedResult(task_id=task_id, kind=job_kind, result=result, updated=updated)


def mark_failed(db: Session, task_id: str, kind: JobKind, error: Optional[str]) -> bool:
    """Record a terminal failure on the job and its analysis record, if they are still open."""
    try:
        updated = task_store.write_failure(db, kind, task_id)
        task_store.advance_job(db, task_id, JobStatus.FAILED, error=error or "Task failed")
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to record failure of %s task %s: %s", kind.value, task_id, exc, exc_info=True)
        raise PersistenceError("Failed to record task failure", task_id=task_id) from exc
    logger.warning("%s task %s failed: %s", kind.value, task_id, error)
    return updated


async def resolve_task(
    client: FalQueueClient,
    db: Session,
    task_id: Optional[str],
    kind: Optional[str],
) -> ResolvedTask:
    """Materialise a job only once the queue reports it completed.

    Failed jobs are closed out on the record; running jobs are left alone.
    """
    status = await check_task_status(client, task_id, kind)
    job_kind = parse_kind(kind)

    if status.status is JobStatus.COMPLETED:
        materialized = await materialize_result(client, db, task_id, kind)
        return ResolvedTask(task_id=materialized.task_id, status=JobStatus.COMPLETED, result=materialized.result)

    if status.status is JobStatus.FAILED:
        mark_failed(db, status.task_id, job_kind, status.error)
        return ResolvedTask(task_id=status.task_id, status=JobStatus.FAILED, error=status.error or "Task failed")

    logger.info("Result requested for %s task %s while still %s", job_kind.value, task_id, status.status.value)
    return ResolvedTask(task_id=status.task_id, status=status.status)
