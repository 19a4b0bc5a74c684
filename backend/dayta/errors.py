"""Domain exceptions.

Each carries the HTTP status it maps to so the single exception handler in
``dayta.main`` can turn it into a JSON body without per-route plumbing.
"""

from __future__ import annotations

from typing import Any, Optional


class DaytaError(Exception):
    """Domain-level base exception so we can map to JSON responses easily."""

    status_code: int = 500

    def __init__(self, detail: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.detail}


class ValidationError(DaytaError):
    """A required parameter is missing or invalid. Always client-caused."""

    status_code = 400


class NotFoundError(DaytaError):
    status_code = 404


class ExternalServiceError(DaytaError):
    """The worker queue is unreachable or answered with something unusable. Safe to retry."""

    status_code = 500

    def to_dict(self) -> dict[str, Any]:
        return {"error": "Task queue request failed", "details": self.detail}


class PersistenceError(DaytaError):
    """The database write failed after the result was fetched.

    The fetched result travels with the error so the caller can still use it.
    """

    status_code = 500

    def __init__(self, detail: str, *, task_id: str, result: Optional[dict] = None) -> None:
        super().__init__(detail)
        self.task_id = task_id
        self.result = result

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.detail, "taskId": self.task_id, "result": self.result}
        if self.__cause__ is not None:
            body["details"] = str(self.__cause__)
        return body
