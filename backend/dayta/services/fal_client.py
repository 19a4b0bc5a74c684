"""Thin async client for the fal.ai queue REST API.

Three calls are used, all relative to ``settings.FAL_QUEUE_URL``:

* ``POST /{app}``                             submit, returns ``request_id``
* ``GET  /{app}/requests/{request_id}/status`` current queue status
* ``GET  /{app}/requests/{request_id}``        final payload

Every transport problem, non-2xx answer or non-JSON body is raised as
:class:`~dayta.errors.ExternalServiceError`.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Mapping, Optional

import httpx

from dayta.config import settings
from dayta.errors import ExternalServiceError
from dayta.models.job import JobKind

logger = logging.getLogger(__name__)


class FalQueueClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        apps: Mapping[JobKind, str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Key {api_key}"
        self.apps = dict(apps)
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "FalQueueClient":
        if not settings.FAL_KEY:
            logger.warning("FAL_KEY is not configured; queue requests will be unauthenticated.")
        return cls(
            api_key=settings.FAL_KEY,
            base_url=settings.FAL_QUEUE_URL,
            apps={JobKind.PDF: settings.FAL_PDF_APP, JobKind.ANALYSIS: settings.FAL_ANALYSIS_APP},
            timeout=settings.FAL_TIMEOUT_SECONDS,
            transport=transport,
        )

    def app_for(self, kind: JobKind) -> str:
        return self.apps[kind]

    async def submit(self, kind: JobKind, payload: Dict[str, Any]) -> str:
        """Enqueue ``payload`` on the app serving ``kind`` and return the request id."""
        app = self.app_for(kind)
        data = await self._request("POST", f"/{app}", json=payload)
        request_id = data.get("request_id")
        if not request_id:
            raise ExternalServiceError(f"Queue response for {app} carried no request_id")
        logger.info("Submitted %s job to %s: request_id=%s", kind.value, app, request_id)
        return str(request_id)

    async def status(self, kind: JobKind, task_id: str) -> Dict[str, Any]:
        app = self.app_for(kind)
        return await self._request("GET", f"/{app}/requests/{task_id}/status")

    async def result(self, kind: JobKind, task_id: str) -> Dict[str, Any]:
        app = self.app_for(kind)
        return await self._request("GET", f"/{app}/requests/{task_id}")

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Queue API answered %s for %s %s: %s",
                exc.response.status_code,
                method,
                url,
                exc.response.text[:500],
            )
            raise ExternalServiceError(
                f"Queue API error {exc.response.status_code}: {exc.response.reason_phrase}"
            ) from exc
        except httpx.RequestError as exc:
            logger.error("Queue API unreachable for %s %s: %s", method, url, exc)
            raise ExternalServiceError(f"Queue API unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Queue API returned non-JSON body for %s %s", method, url)
            raise ExternalServiceError("Queue API returned a malformed response") from exc
        if not isinstance(data, dict):
            raise ExternalServiceError("Queue API returned a malformed response")
        return data


async def get_fal_client() -> AsyncIterator[FalQueueClient]:
    """FastAPI dependency: one client per request, closed afterwards."""
    client = FalQueueClient.from_settings()
    try:
        yield client
    finally:
        await client.aclose()
