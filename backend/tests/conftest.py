"""Shared fixtures: an in-memory database, a fake fal.ai queue and an API client wired to both."""

from __future__ import annotations

import itertools
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from dayta.db.database import SessionLocal, create_tables
from dayta.main import app
from dayta.models.analysis import AnalysisRecord
from dayta.models.job import JobKind, ProcessingJob
from dayta.services.fal_client import FalQueueClient, get_fal_client

PDF_APP = "fal-ai/pdf-generator"
ANALYSIS_APP = "fal-ai/data-analyzer"


class FakeQueue:
    """In-process stand-in for the fal.ai queue REST API."""

    def __init__(self) -> None:
        self.requests: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self._ids = itertools.count(1)

    def add(self, app: str, status: str = "IN_QUEUE", result: Optional[dict] = None, payload: Any = None) -> str:
        request_id = f"req-{next(self._ids)}"
        self.requests[request_id] = {
            "app": app,
            "status": status,
            "result": result,
            "error": None,
            "payload": payload,
        }
        return request_id

    def start(self, request_id: str) -> None:
        self.requests[request_id]["status"] = "IN_PROGRESS"

    def complete(self, request_id: str, result: dict) -> None:
        self.requests[request_id].update(status="COMPLETED", result=result)

    def fail(self, request_id: str, error: str) -> None:
        self.requests[request_id].update(status="COMPLETED", error=error)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path))
        parts = request.url.path.strip("/").split("/")

        if request.method == "POST":
            request_id = self.add("/".join(parts), payload=json.loads(request.content))
            return httpx.Response(200, json={"request_id": request_id, "status": "IN_QUEUE"})

        if "requests" not in parts:
            return httpx.Response(404, json={"detail": "Not found"})
        request_id = parts[parts.index("requests") + 1]
        entry = self.requests.get(request_id)
        if entry is None:
            return httpx.Response(404, json={"detail": "Request not found"})

        if parts[-1] == "status":
            body: Dict[str, Any] = {"status": entry["status"], "queue_position": 0}
            if entry["error"]:
                body["error"] = entry["error"]
            return httpx.Response(200, json=body)

        if entry["status"] != "COMPLETED":
            return httpx.Response(400, json={"detail": "Request is still in progress"})
        return httpx.Response(200, json=entry["result"] or {})


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def fal_client(fake_queue: FakeQueue) -> FalQueueClient:
    return FalQueueClient(
        api_key="test-key",
        base_url="https://queue.test",
        apps={JobKind.PDF: PDF_APP, JobKind.ANALYSIS: ANALYSIS_APP},
        transport=httpx.MockTransport(fake_queue.handler),
    )


@pytest.fixture
def db_session():
    create_tables()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.query(ProcessingJob).delete()
        db.query(AnalysisRecord).delete()
        db.commit()
        db.close()


@pytest.fixture
def client(fal_client: FalQueueClient, db_session) -> TestClient:
    app.dependency_overrides[get_fal_client] = lambda: fal_client
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


def make_record(db, **overrides: Any) -> AnalysisRecord:
    values: Dict[str, Any] = {
        "id": "r1",
        "user_id": "u1",
        "file_name": "sales-q3.csv",
        "file_type": "text/csv",
        "file_size": 2048,
        "analysis_type": "comprehensive",
        "status": "completed",
        "summary": "Revenue grew 12% quarter over quarter.",
        "insights": ["North region leads growth"],
        "recommendations": [{"title": "Expand", "description": "Open two stores in the north."}],
    }
    values.update(overrides)
    record = AnalysisRecord(**values)
    db.add(record)
    db.commit()
    return record


def fetch_record(record_id: str) -> Optional[AnalysisRecord]:
    """Read a record through a fresh session so nothing comes from a stale identity map."""
    with SessionLocal() as db:
        record = db.get(AnalysisRecord, record_id)
        if record is not None:
            db.expunge(record)
        return record


def fetch_job(job_id: str) -> Optional[ProcessingJob]:
    with SessionLocal() as db:
        job = db.get(ProcessingJob, job_id)
        if job is not None:
            db.expunge(job)
        return job
