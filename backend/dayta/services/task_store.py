"""Conditional writes against the task store and the analysis records.

All writers are compare-and-swap style ``UPDATE ... WHERE`` statements keyed
by task identifier: a row already in a terminal state is never rewritten, so
re-delivering a completed job, or two concurrent result fetches, leave the
stored fields exactly as the first write left them.

Nothing here commits; callers own the transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from dayta.models.analysis import AnalysisRecord
from dayta.models.job import (
    STATUS_PROGRESS,
    TERMINAL_STATUSES,
    JobBackend,
    JobKind,
    JobStatus,
    ProcessingJob,
)

logger = logging.getLogger(__name__)

_TERMINAL_VALUES = [s.value for s in TERMINAL_STATUSES]


def create_job(
    db: Session,
    task_id: str,
    kind: JobKind,
    backend: JobBackend,
    report_id: Optional[str] = None,
) -> ProcessingJob:
    job = ProcessingJob(
        id=task_id,
        job_type=kind,
        backend=backend,
        report_id=report_id,
        status=JobStatus.QUEUED,
        progress=STATUS_PROGRESS[JobStatus.QUEUED],
    )
    db.add(job)
    return job


def advance_job(
    db: Session,
    task_id: str,
    status: JobStatus,
    *,
    progress: Optional[int] = None,
    result: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
) -> bool:
    """Move a job forward to ``status``. Returns False when the move is not allowed or the job is unknown."""
    allowed_from = [s for s in JobStatus if s.can_transition(status)]
    if not allowed_from:
        return False
    values: Dict[Any, Any] = {
        ProcessingJob.status: status,
        ProcessingJob.progress: progress if progress is not None else STATUS_PROGRESS[status],
        ProcessingJob.updated_at: datetime.now(timezone.utc),
    }
    if result is not None:
        values[ProcessingJob.result] = result
    if error is not None:
        values[ProcessingJob.error_message] = error[:500]
    updated = (
        db.query(ProcessingJob)
        .filter(ProcessingJob.id == task_id, ProcessingJob.status.in_(allowed_from))
        .update(values, synchronize_session=False)
    )
    logger.debug("advance_job %s -> %s: %d row(s)", task_id, status.value, updated)
    return updated > 0


def attach_task(db: Session, report_id: str, kind: JobKind, task_id: str) -> bool:
    """Point the record at a freshly submitted job and reset its status to queued."""
    if kind is JobKind.PDF:
        values = {AnalysisRecord.pdf_task_id: task_id, AnalysisRecord.pdf_status: JobStatus.QUEUED.value}
    else:
        values = {
            AnalysisRecord.analysis_task_id: task_id,
            AnalysisRecord.analysis_status: JobStatus.QUEUED.value,
        }
    values[AnalysisRecord.updated_at] = datetime.now(timezone.utc)
    updated = (
        db.query(AnalysisRecord)
        .filter(AnalysisRecord.id == report_id)
        .update(values, synchronize_session=False)
    )
    return updated > 0


def _open_records(db: Session, kind: JobKind, task_id: str):
    if kind is JobKind.PDF:
        task_col, status_col = AnalysisRecord.pdf_task_id, AnalysisRecord.pdf_status
    else:
        task_col, status_col = AnalysisRecord.analysis_task_id, AnalysisRecord.analysis_status
    return db.query(AnalysisRecord).filter(
        task_col == task_id,
        or_(status_col.is_(None), status_col.not_in(_TERMINAL_VALUES)),
    )


def mark_record_processing(db: Session, kind: JobKind, task_id: str) -> bool:
    column = AnalysisRecord.pdf_status if kind is JobKind.PDF else AnalysisRecord.analysis_status
    updated = _open_records(db, kind, task_id).update(
        {column: JobStatus.PROCESSING.value, AnalysisRecord.updated_at: datetime.now(timezone.utc)},
        synchronize_session=False,
    )
    return updated > 0


def write_pdf_result(db: Session, task_id: str, pdf_url: str) -> bool:
    updated = _open_records(db, JobKind.PDF, task_id).update(
        {
            AnalysisRecord.pdf_url: pdf_url,
            AnalysisRecord.pdf_status: JobStatus.COMPLETED.value,
            AnalysisRecord.updated_at: datetime.now(timezone.utc),
        },
        synchronize_session=False,
    )
    return updated > 0


def write_analysis_result(db: Session, task_id: str, result: Dict[str, Any]) -> bool:
    updated = _open_records(db, JobKind.ANALYSIS, task_id).update(
        {
            AnalysisRecord.summary: result.get("summary"),
            AnalysisRecord.insights: result.get("insights"),
            AnalysisRecord.recommendations: result.get("recommendations"),
            AnalysisRecord.analysis_status: JobStatus.COMPLETED.value,
            AnalysisRecord.updated_at: datetime.now(timezone.utc),
        },
        synchronize_session=False,
    )
    return updated > 0


def write_failure(db: Session, kind: JobKind, task_id: str) -> bool:
    column = AnalysisRecord.pdf_status if kind is JobKind.PDF else AnalysisRecord.analysis_status
    updated = _open_records(db, kind, task_id).update(
        {column: JobStatus.FAILED.value, AnalysisRecord.updated_at: datetime.now(timezone.utc)},
        synchronize_session=False,
    )
    return updated > 0
