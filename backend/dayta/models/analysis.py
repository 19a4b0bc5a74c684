"""SQLAlchemy model for analysed datasets and their reports."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from dayta.db.base import Base


def _utcnow():
    return datetime.now(timezone.utc)


class AnalysisRecord(Base):
    """
    Represents a user's uploaded dataset and everything derived from it.

    The AI analysis fields (summary, insights, recommendations) and the PDF
    fields (pdf_url) stay NULL until the matching background job completes.
    Each job is correlated through ``analysis_task_id`` / ``pdf_task_id``.
    """
    __tablename__ = "analyses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), comment="Primary key (UUID string).")
    user_id = Column(String(36), index=True, nullable=False, comment="Owning user identifier.")
    file_name = Column(String(255), nullable=False, comment="The original filename as uploaded by the user.")
    file_type = Column(String(255), nullable=True, comment="MIME type of the uploaded dataset.")
    file_size = Column(Integer, nullable=True, comment="Size of the uploaded dataset in bytes.")
    analysis_type = Column(String(50), nullable=False, default="comprehensive", comment="comprehensive, quick or custom.")
    status = Column(String(20), nullable=False, default="pending", comment="Overall record status.")
    content = Column(Text, nullable=True, comment="Plain-text extract of the dataset, used in local PDF renders.")

    summary = Column(Text, nullable=True)
    insights = Column(JSON, nullable=True)
    recommendations = Column(JSON, nullable=True)
    charts = Column(JSON, nullable=True)
    analysis_status = Column(String(20), nullable=True, comment="Status of the AI analysis job.")
    analysis_task_id = Column(String(64), nullable=True, index=True, comment="Task identifier of the AI analysis job.")

    pdf_url = Column(String(1024), nullable=True)
    pdf_status = Column(String(20), nullable=True, comment="Status of the PDF rendering job.")
    pdf_task_id = Column(String(64), nullable=True, index=True, comment="Task identifier of the PDF rendering job.")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
