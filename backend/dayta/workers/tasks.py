"""Celery task definitions for the local PDF queue."""

import logging
import time

from celery import Celery, Task
from celery.signals import worker_init

from dayta.config import settings
from dayta.db.database import SessionLocal, create_tables
from dayta.logging_config import setup_logging as setup_app_logging
from dayta.models.analysis import AnalysisRecord
from dayta.models.job import JobKind, JobStatus
from dayta.services import task_store
from dayta.services.pdf_renderer import render_analysis_pdf
from dayta.utils.storage import REPORTS_DIR, save_report_pdf

# Ensure app-level logging is configured when a worker starts.
setup_app_logging()
logger = logging.getLogger(__name__)


celery_app = Celery(
    "dayta",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=['dayta.workers.tasks'],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
)


@worker_init.connect
def _ensure_schema(**_kwargs):
    # The worker may start before the API container has created the tables
    create_tables()


class BaseTaskWithDB(Task):
    """Base Celery Task that closes out the job as failed when the task raises."""
    abstract = True

    def __call__(self, *args, **kwargs):
        logger.info(f"Task {self.name} [{self.request.id}] called with args: {args}, kwargs: {kwargs}")
        return super().__call__(*args, **kwargs)

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Task {self.name} [{task_id}] failed: {exc}", exc_info=einfo)
        job_id = kwargs.get('job_id') or (args[0] if args else None)
        if job_id:
            db = SessionLocal()
            try:
                task_store.write_failure(db, JobKind.PDF, job_id)
                if not task_store.advance_job(db, job_id, JobStatus.FAILED, error=f"Task failed: {exc}"):
                    logger.warning(f"Job {job_id} not found or already terminal on failure of task {self.name} [{task_id}].")
                db.commit()
            except Exception as db_exc:
                logger.error(f"DB error during task failure handling for job {job_id}, task {self.name} [{task_id}]: {db_exc}", exc_info=True)
                db.rollback()
            finally:
                db.close()
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):
        logger.info(f"Task {self.name} [{task_id}] completed successfully. Result: {retval}")
        super().on_success(retval, task_id, args, kwargs)


def report_url(filename: str) -> str:
    return f"{settings.PUBLIC_BASE_URL}/api/outputs/{filename}"


# --- PDF Rendering Task ---
@celery_app.task(name="render_pdf_task", base=BaseTaskWithDB)
def render_pdf_task(job_id: str, report_id: str):
    logger.info(f"Starting PDF render for job_id: {job_id}, report_id: {report_id}")
    db = SessionLocal()
    try:
        task_store.advance_job(db, job_id, JobStatus.PROCESSING)
        task_store.mark_record_processing(db, JobKind.PDF, job_id)
        db.commit()

        record = db.query(AnalysisRecord).filter(AnalysisRecord.id == report_id).first()
        if not record:
            logger.error(f"Analysis record {report_id} not found for PDF job {job_id}.")
            raise ValueError(f"Analysis record {report_id} not found.")

        pdf_bytes = render_analysis_pdf(record)
        filename = f"{report_id}-{int(time.time() * 1000)}.pdf"
        path = save_report_pdf(filename, pdf_bytes, REPORTS_DIR)
        pdf_url = report_url(filename)
        logger.debug(f"PDF for job {job_id} written to {path}")

        result = {"pdfUrl": pdf_url, "downloadUrl": pdf_url, "metadata": {"bytes": len(pdf_bytes)}}
        stored = task_store.write_pdf_result(db, job_id, pdf_url)
        task_store.advance_job(db, job_id, JobStatus.COMPLETED, result=result)
        db.commit()
        if not stored:
            logger.warning(f"Record {report_id} no longer points at job {job_id} or is already terminal; pdf_url not stored.")
        logger.info(f"PDF render successful for job_id: {job_id}. URL: {pdf_url}")
        return {"job_id": job_id, "report_id": report_id, "status": JobStatus.COMPLETED.value, "pdf_url": pdf_url}
    except Exception as e:
        logger.error(f"Unexpected error during PDF render for job {job_id}: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


logger.info("Celery tasks defined and logging configured.")
