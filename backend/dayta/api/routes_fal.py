"""Endpoints for jobs run on the external fal.ai queue.

1. `POST /fal/pdf/submit`      – submit a PDF render for an analysis record.
2. `POST /fal/analysis/submit` – submit an AI analysis of a dataset.
3. `GET  /fal/status`          – poll a job (read-only).
4. `GET  /fal/result`          – fetch a finished job and store it on its record.

Status and result are not tied to the requesting user: anyone holding a task
id can read it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.database import get_db
from ..errors import NotFoundError, PersistenceError, ValidationError
from ..models.analysis import AnalysisRecord
from ..models.job import JobBackend, JobKind, JobStatus
from ..services import task_store
from ..services.fal_client import FalQueueClient, get_fal_client
from ..services.task_workflow import SubmittedJob, check_task_status, resolve_task, submit_job

router = APIRouter()
logger = logging.getLogger(__name__)


class PDFSubmitRequest(BaseModel):
    reportId: Optional[str] = None
    template: str = "standard"
    branding: Optional[Dict[str, Any]] = None


class AnalysisSubmitRequest(BaseModel):
    reportId: Optional[str] = None
    data: Optional[List[Any]] = None
    analysisType: str = "comprehensive"
    userContext: Dict[str, Any] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(default_factory=dict)


def _record_submission(db: Session, submitted: SubmittedJob, report_id: str) -> None:
    """Remember which record the new task belongs to."""
    try:
        task_store.create_job(db, submitted.task_id, submitted.kind, JobBackend.FAL, report_id)
        task_store.attach_task(db, report_id, submitted.kind, submitted.task_id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to record %s task %s: %s", submitted.kind.value, submitted.task_id, exc, exc_info=True)
        raise PersistenceError("Failed to record submitted task", task_id=submitted.task_id) from exc


def _submit_response(submitted: SubmittedJob, message: str) -> dict:
    return {
        "success": True,
        "taskId": submitted.task_id,
        "status": submitted.status.value,
        "estimatedTime": submitted.estimated_time,
        "message": message,
    }


@router.post("/pdf/submit")
async def submit_pdf(
    body: Optional[PDFSubmitRequest] = None,
    db: Session = Depends(get_db),
    client: FalQueueClient = Depends(get_fal_client),
) -> dict:
    """Submit a PDF render of an existing analysis record."""
    if body is None or not body.reportId:
        raise ValidationError("Report ID is required")

    record = db.query(AnalysisRecord).filter(AnalysisRecord.id == body.reportId).first()
    if not record:
        raise NotFoundError("Report not found")

    payload = {
        "reportId": record.id,
        "reportData": {
            "title": record.file_name or "Analysis Report",
            "summary": record.summary or "No summary available",
            "insights": record.insights or [],
            "recommendations": record.recommendations or [],
            "charts": record.charts or [],
            "metadata": {
                "createdAt": record.created_at.isoformat() if record.created_at else None,
                "userId": record.user_id,
                "analysisType": record.analysis_type,
            },
        },
        "template": body.template,
        "branding": body.branding,
        "options": {"format": "A4", "orientation": "portrait", "includeCharts": True, "includeWatermark": False},
    }
    submitted = await submit_job(client, JobKind.PDF.value, payload)
    _record_submission(db, submitted, record.id)
    return _submit_response(submitted, "PDF generation task submitted successfully")


@router.post("/analysis/submit")
async def submit_analysis(
    body: Optional[AnalysisSubmitRequest] = None,
    db: Session = Depends(get_db),
    client: FalQueueClient = Depends(get_fal_client),
) -> dict:
    """Submit an AI analysis of ``data`` for an analysis record."""
    if body is None or not body.reportId or not body.data:
        raise ValidationError("Report ID and data are required")
    if not db.query(AnalysisRecord.id).filter(AnalysisRecord.id == body.reportId).first():
        raise NotFoundError("Report not found")

    payload = {
        "reportId": body.reportId,
        "data": body.data,
        "analysisType": body.analysisType,
        "userContext": {
            "industry": body.userContext.get("industry"),
            "role": body.userContext.get("role"),
            "goals": body.userContext.get("goals") or [],
        },
        "options": {
            "includeVisualizations": body.options.get("includeVisualizations", True),
            "includeRecommendations": body.options.get("includeRecommendations", True),
            "detailLevel": body.options.get("detailLevel") or "intermediate",
            "includeStatisticalAnalysis": True,
        },
    }
    submitted = await submit_job(client, JobKind.ANALYSIS.value, payload)
    _record_submission(db, submitted, body.reportId)
    return _submit_response(submitted, "Analysis task submitted successfully")


@router.get("/status")
async def get_task_status(
    taskId: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    client: FalQueueClient = Depends(get_fal_client),
) -> dict:
    """Report the queue's current view of a task. Never writes anything."""
    status = await check_task_status(client, taskId, type)
    return {
        "taskId": status.task_id,
        "status": status.status.value,
        "progress": status.progress,
        "result": status.result,
        "error": status.error,
    }


@router.get("/result")
async def get_task_result(
    taskId: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    client: FalQueueClient = Depends(get_fal_client),
) -> dict:
    """Fetch a completed task's result and store it on the matching record."""
    if not taskId or not type:
        raise ValidationError("Task ID and type are required")

    resolved = await resolve_task(client, db, taskId, type)
    if resolved.status is JobStatus.COMPLETED:
        return {"success": True, "taskId": resolved.task_id, "result": resolved.result}
    response = {"success": False, "taskId": resolved.task_id, "status": resolved.status.value, "result": None}
    if resolved.error:
        response["error"] = resolved.error
    return response
