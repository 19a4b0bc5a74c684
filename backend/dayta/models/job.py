"""SQLAlchemy model & helpers for asynchronous jobs (the task store).

A row is keyed by the task identifier handed out by the worker that runs the
job: the external queue's request id, or a uuid4 for local Celery renders.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Enum as SAEnum, Integer, String, Text

from dayta.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobKind(str, Enum):
    """What a job produces."""

    PDF = "pdf"
    ANALYSIS = "analysis"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["JobKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


class JobBackend(str, Enum):
    FAL = "fal"
    LOCAL = "local"


class JobStatus(str, Enum):
    """Lifecycle of a background job.

    Transitions only ever move forward:
    ``queued -> processing -> completed`` or ``queued -> processing -> failed``.
    A poller may never observe ``processing``, so skipping it is allowed.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def can_transition(self, new: "JobStatus") -> bool:
        return not self.is_terminal and new.rank > self.rank


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

_STATUS_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}

# Progress reported for each status when the worker gives no better figure
STATUS_PROGRESS = {
    JobStatus.QUEUED: 10,
    JobStatus.PROCESSING: 50,
    JobStatus.COMPLETED: 100,
    JobStatus.FAILED: 0,
}


class ProcessingJob(Base):
    """Persistent representation of a background job."""

    __tablename__ = "processing_jobs"

    id: str = Column(String(64), primary_key=True, index=True)
    job_type: JobKind = Column(SAEnum(JobKind, values_callable=lambda e: [m.value for m in e]), nullable=False)
    backend: JobBackend = Column(
        SAEnum(JobBackend, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobBackend.FAL,
    )
    report_id: Optional[str] = Column(String(36), nullable=True, index=True)
    status: JobStatus = Column(
        SAEnum(JobStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobStatus.QUEUED,
    )
    progress: Optional[int] = Column(Integer, nullable=True)
    result: Optional[dict] = Column(JSON, nullable=True)
    error_message: Optional[str] = Column(Text, nullable=True)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: datetime = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Helpers to convert enums to plain strings for JSON responses
    @property
    def status_str(self) -> str:
        return self.status.value if isinstance(self.status, JobStatus) else str(self.status)

    @property
    def job_type_str(self) -> str:
        return self.job_type.value if isinstance(self.job_type, JobKind) else str(self.job_type)

    @property
    def backend_str(self) -> str:
        return self.backend.value if isinstance(self.backend, JobBackend) else str(self.backend)
