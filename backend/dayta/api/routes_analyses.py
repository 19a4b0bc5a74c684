from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db.database import get_db
from ..errors import NotFoundError
from ..models.analysis import AnalysisRecord

router = APIRouter()
logger = logging.getLogger(__name__)


class AnalysisInfo(BaseModel):
    id: str
    user_id: str
    file_name: str
    file_type: str | None = None
    file_size: int | None = None
    analysis_type: str
    status: str
    summary: str | None = None
    insights: Any = None
    recommendations: Any = None
    analysis_status: str | None = None
    analysis_task_id: str | None = None
    pdf_url: str | None = None
    pdf_status: str | None = None
    pdf_task_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


@router.get("/{analysis_id}", response_model=AnalysisInfo)
async def get_analysis(analysis_id: str, db: Session = Depends(get_db)) -> AnalysisInfo:
    """Return an analysis record with whatever its jobs have written so far."""
    record = db.query(AnalysisRecord).filter(AnalysisRecord.id == analysis_id).first()
    if not record:
        raise NotFoundError("Analysis not found")
    return AnalysisInfo.model_validate(record)
