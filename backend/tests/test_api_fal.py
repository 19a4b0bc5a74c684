from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from dayta.models.job import JobStatus, ProcessingJob

from .conftest import ANALYSIS_APP, PDF_APP, fetch_job, fetch_record, make_record


@pytest.mark.parametrize("endpoint", ["/api/fal/status", "/api/fal/result"])
@pytest.mark.parametrize("params", [{}, {"taskId": "req-1"}, {"type": "pdf"}, {"taskId": "", "type": "pdf"}])
def test_missing_params_are_client_errors(client, fake_queue, endpoint, params):
    response = client.get(endpoint, params=params)

    assert response.status_code == 400
    assert response.json()["error"] == "Task ID and type are required"
    assert fake_queue.calls == []


@pytest.mark.parametrize("endpoint", ["/api/fal/status", "/api/fal/result"])
def test_unknown_type_is_client_error(client, fake_queue, endpoint):
    response = client.get(endpoint, params={"taskId": "req-1", "type": "spreadsheet"})

    assert response.status_code == 400
    assert "error" in response.json()
    assert fake_queue.calls == []


def test_status_reports_queue_state(client, fake_queue):
    task_id = fake_queue.add(ANALYSIS_APP, status="IN_PROGRESS")

    response = client.get("/api/fal/status", params={"taskId": task_id, "type": "analysis"})

    assert response.status_code == 200
    assert response.json() == {
        "taskId": task_id,
        "status": "processing",
        "progress": 50,
        "result": None,
        "error": None,
    }


def test_status_does_not_touch_records(client, fake_queue, db_session):
    task_id = fake_queue.add(PDF_APP, status="COMPLETED", result={"pdf_url": "https://cdn.test/a.pdf"})
    make_record(db_session, pdf_task_id=task_id, pdf_status="processing")

    for _ in range(3):
        assert client.get("/api/fal/status", params={"taskId": task_id, "type": "pdf"}).status_code == 200

    record = fetch_record("r1")
    assert record.pdf_status == "processing"
    assert record.pdf_url is None


def test_status_queue_outage_is_server_error(client, fake_queue):
    response = client.get("/api/fal/status", params={"taskId": "missing", "type": "pdf"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Task queue request failed"
    assert "404" in body["details"]


def test_result_stores_completed_analysis(client, fake_queue, db_session):
    result = {"summary": "Margins improved.", "insights": ["i1"], "recommendations": ["r1"]}
    task_id = fake_queue.add(ANALYSIS_APP, status="COMPLETED", result=result)
    make_record(db_session, summary=None, analysis_task_id=task_id, analysis_status="processing")

    response = client.get("/api/fal/result", params={"taskId": task_id, "type": "analysis"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["taskId"] == task_id
    assert body["result"]["summary"] == "Margins improved."
    record = fetch_record("r1")
    assert record.analysis_status == "completed"
    assert record.summary == "Margins improved."


def test_result_without_record_is_not_an_error(client, fake_queue, db_session):
    task_id = fake_queue.add(PDF_APP, status="COMPLETED", result={"pdf_url": "https://cdn.test/x.pdf"})

    response = client.get("/api/fal/result", params={"taskId": task_id, "type": "pdf"})

    assert response.status_code == 200
    assert response.json()["result"]["pdfUrl"] == "https://cdn.test/x.pdf"


def test_result_of_running_task_is_not_stored(client, fake_queue, db_session):
    task_id = fake_queue.add(PDF_APP, status="IN_QUEUE")
    make_record(db_session, pdf_task_id=task_id, pdf_status="queued")

    response = client.get("/api/fal/result", params={"taskId": task_id, "type": "pdf"})

    assert response.status_code == 200
    assert response.json() == {"success": False, "taskId": task_id, "status": "queued", "result": None}
    assert fetch_record("r1").pdf_status == "queued"


def test_result_of_failed_task_marks_record_failed(client, fake_queue, db_session):
    task_id = fake_queue.add(PDF_APP)
    fake_queue.fail(task_id, "template missing")
    make_record(db_session, pdf_task_id=task_id, pdf_status="processing")

    response = client.get("/api/fal/result", params={"taskId": task_id, "type": "pdf"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["status"] == "failed"
    assert body["error"] == "template missing"
    assert fetch_record("r1").pdf_status == "failed"


def test_result_db_failure_returns_fetched_result(client, fake_queue, db_session):
    task_id = fake_queue.add(PDF_APP, status="COMPLETED", result={"pdf_url": "https://cdn.test/y.pdf"})
    make_record(db_session, pdf_task_id=task_id, pdf_status="processing")

    with patch(
        "dayta.services.task_store.write_pdf_result",
        side_effect=OperationalError("UPDATE analyses", {}, Exception("disk I/O error")),
    ):
        response = client.get("/api/fal/result", params={"taskId": task_id, "type": "pdf"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to store task result"
    assert body["taskId"] == task_id
    assert body["result"]["pdfUrl"] == "https://cdn.test/y.pdf"
    assert fetch_record("r1").pdf_status == "processing"


def test_submit_pdf_requires_report_id(client, fake_queue):
    response = client.post("/api/fal/pdf/submit", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "Report ID is required"}
    assert fake_queue.calls == []


def test_submit_pdf_unknown_report(client, fake_queue, db_session):
    response = client.post("/api/fal/pdf/submit", json={"reportId": "nope"})

    assert response.status_code == 404
    assert fake_queue.calls == []


def test_submit_pdf_sends_report_and_tracks_task(client, fake_queue, db_session):
    make_record(db_session)

    response = client.post("/api/fal/pdf/submit", json={"reportId": "r1", "template": "executive"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "queued"
    assert body["estimatedTime"] == 120
    task_id = body["taskId"]
    sent = fake_queue.requests[task_id]
    assert sent["app"] == PDF_APP
    assert sent["payload"]["template"] == "executive"
    assert sent["payload"]["reportData"]["title"] == "sales-q3.csv"
    record = fetch_record("r1")
    assert record.pdf_task_id == task_id
    assert record.pdf_status == "queued"
    job = fetch_job(task_id)
    assert job.status is JobStatus.QUEUED
    assert job.report_id == "r1"


def test_submit_analysis_requires_data(client, fake_queue):
    response = client.post("/api/fal/analysis/submit", json={"reportId": "r1"})

    assert response.status_code == 400
    assert response.json() == {"error": "Report ID and data are required"}
    assert fake_queue.calls == []


def test_submit_analysis_unknown_report(client, fake_queue, db_session):
    response = client.post("/api/fal/analysis/submit", json={"reportId": "nope", "data": [{"a": 1}]})

    assert response.status_code == 404
    assert response.json() == {"error": "Report not found"}
    assert fake_queue.calls == []
    assert db_session.query(ProcessingJob).count() == 0


@pytest.mark.parametrize("endpoint", ["/api/fal/pdf/submit", "/api/fal/analysis/submit"])
def test_submit_without_body_is_client_error(client, fake_queue, endpoint):
    response = client.post(endpoint)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Report ID")
    assert fake_queue.calls == []


def test_submit_analysis_tracks_task(client, fake_queue, db_session):
    make_record(db_session, summary=None)

    response = client.post(
        "/api/fal/analysis/submit",
        json={"reportId": "r1", "data": [{"month": "Jan", "revenue": 10}], "userContext": {"industry": "retail"}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["estimatedTime"] == 300
    sent = fake_queue.requests[body["taskId"]]["payload"]
    assert sent["userContext"] == {"industry": "retail", "role": None, "goals": []}
    assert sent["options"]["detailLevel"] == "intermediate"
    record = fetch_record("r1")
    assert record.analysis_task_id == body["taskId"]
    assert record.analysis_status == "queued"


def test_pdf_round_trip_through_queue(client, fake_queue, db_session):
    make_record(db_session)

    submitted = client.post("/api/fal/pdf/submit", json={"reportId": "r1"}).json()
    task_id = submitted["taskId"]
    assert submitted["status"] == "queued"

    statuses = []
    fake_queue.start(task_id)
    statuses.append(client.get("/api/fal/status", params={"taskId": task_id, "type": "pdf"}).json()["status"])
    fake_queue.complete(task_id, {"pdf_url": "https://cdn.test/r1.pdf"})
    statuses.append(client.get("/api/fal/status", params={"taskId": task_id, "type": "pdf"}).json()["status"])
    assert statuses == ["processing", "completed"]

    result = client.get("/api/fal/result", params={"taskId": task_id, "type": "pdf"})
    assert result.status_code == 200
    assert result.json()["result"]["pdfUrl"] == "https://cdn.test/r1.pdf"

    record = fetch_record("r1")
    assert record.pdf_task_id == task_id
    assert record.pdf_status == "completed"
    assert record.pdf_url == "https://cdn.test/r1.pdf"
    assert fetch_job(task_id).status is JobStatus.COMPLETED

    # Fetching again changes nothing
    again = client.get("/api/fal/result", params={"taskId": task_id, "type": "pdf"})
    assert again.status_code == 200
    assert fetch_record("r1").pdf_url == "https://cdn.test/r1.pdf"
