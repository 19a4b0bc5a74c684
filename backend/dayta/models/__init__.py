# Namespace for ORM models.
from .analysis import AnalysisRecord
from .job import JobBackend, JobKind, JobStatus, ProcessingJob

__all__ = ["AnalysisRecord", "JobBackend", "JobKind", "JobStatus", "ProcessingJob"]
