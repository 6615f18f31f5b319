"""Async client for the slide-deck generator's HTTP API.

Every JSON response is an envelope ``{"success": ..., "data": ..., "error": ...}``.
Network failures, throttling and 5xx responses surface as
``TransientFetchError`` so a poller can retry them on its next tick. Every
other rejection is a ``DeckApiError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from slidewatch.config import Settings
from slidewatch.errors import DeckApiError, TransientFetchError
from slidewatch.models.contracts import (
    ApiEnvelope,
    CreateProjectRequest,
    CreateProjectResponse,
    DownloadedFile,
    ExportResult,
    GenerateDescriptionsRequest,
    GenerateImagesRequest,
    HealthStatus,
    ProjectList,
    ProjectState,
    StatusSnapshot,
    TaskAccepted,
    TaskState,
)

logger = structlog.get_logger()

PPTX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

API_PREFIX = "/api/projects"


def _is_transient_status(status_code: int) -> bool:
    # 429 is throttling; other 4xx are client errors the next tick won't fix
    return status_code == 429 or status_code >= 500


class DeckClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the deck API.

    Use as an async context manager, or pass an existing ``httpx.AsyncClient``
    (for example one built on ``httpx.ASGITransport`` in tests). A client
    passed in is not closed by ``aclose``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> DeckClient:
        return cls(settings.base_url, timeout=settings.request_timeout)

    async def __aenter__(self) -> DeckClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientFetchError(f"Timeout calling {method} {url}") from exc
        except httpx.RequestError as exc:
            raise TransientFetchError(
                f"Network error calling {method} {url}: {type(exc).__name__}"
            ) from exc

        if response.status_code >= 400:
            message = _error_message(response)
            if _is_transient_status(response.status_code):
                raise TransientFetchError(
                    f"HTTP {response.status_code} from {method} {url}: {message}",
                    status_code=response.status_code,
                )
            raise DeckApiError(
                message,
                status_code=response.status_code,
                retryable=False,
            )
        return response

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and unwrap the response envelope's ``data``."""
        response = await self._send(method, url, **kwargs)
        try:
            envelope = ApiEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise DeckApiError(
                f"Malformed response from {method} {url}",
                status_code=response.status_code,
            ) from exc
        if not envelope.success:
            raise DeckApiError(
                envelope.error or envelope.message or f"{method} {url} was not successful",
                status_code=response.status_code,
            )
        return envelope.data or {}

    @staticmethod
    def _parse(model: type, data: dict[str, Any], what: str) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise DeckApiError(f"Unexpected {what} payload: {exc.error_count()} errors") from exc

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def health(self) -> HealthStatus:
        response = await self._send("GET", "/health")
        try:
            return HealthStatus.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise DeckApiError("Malformed health response") from exc

    async def create_project(self, request: CreateProjectRequest) -> str:
        data = await self._request(
            "POST", API_PREFIX, json=request.model_dump(exclude_none=True)
        )
        created = self._parse(CreateProjectResponse, data, "create project")
        logger.info("project_created", project_id=created.project_id)
        return created.project_id

    async def get_project(self, project_id: str) -> ProjectState:
        data = await self._request("GET", f"{API_PREFIX}/{project_id}")
        data.setdefault("project_id", project_id)
        return self._parse(ProjectState, data, "project")

    async def list_projects(self) -> ProjectList:
        data = await self._request("GET", API_PREFIX)
        return self._parse(ProjectList, data, "project list")

    async def delete_project(self, project_id: str) -> None:
        await self._request("DELETE", f"{API_PREFIX}/{project_id}")
        logger.info("project_deleted", project_id=project_id)

    async def get_task(self, project_id: str, task_id: str) -> TaskState:
        data = await self._request("GET", f"{API_PREFIX}/{project_id}/tasks/{task_id}")
        data.setdefault("task_id", task_id)
        return self._parse(TaskState, data, "task")

    async def generate_descriptions(self, project_id: str, outline: dict[str, Any]) -> str:
        body = GenerateDescriptionsRequest(outline=outline)
        data = await self._request(
            "POST",
            f"{API_PREFIX}/{project_id}/generate/descriptions",
            json=body.model_dump(),
        )
        task = self._parse(TaskAccepted, data, "generate descriptions")
        logger.info("descriptions_requested", project_id=project_id, task_id=task.task_id)
        return task.task_id

    async def generate_images(self, project_id: str, request: GenerateImagesRequest) -> str:
        data = await self._request(
            "POST",
            f"{API_PREFIX}/{project_id}/generate/images",
            json=request.model_dump(),
        )
        task = self._parse(TaskAccepted, data, "generate images")
        logger.info("images_requested", project_id=project_id, task_id=task.task_id)
        return task.task_id

    async def upload_template(self, project_id: str, template_path: Path) -> None:
        content_type = "image/png" if template_path.suffix.lower() == ".png" else "image/jpeg"
        await self._request(
            "POST",
            f"{API_PREFIX}/{project_id}/template",
            files={"template_image": (template_path.name, template_path.read_bytes(), content_type)},
        )
        logger.info("template_uploaded", project_id=project_id, template=template_path.name)

    async def export_pptx(self, project_id: str, filename: str) -> ExportResult:
        data = await self._request(
            "GET",
            f"{API_PREFIX}/{project_id}/export/pptx",
            params={"filename": filename},
        )
        return self._parse(ExportResult, data, "export")

    async def download(self, url: str) -> DownloadedFile:
        """Fetch a file from a download URL (absolute or relative to base_url)."""
        response = await self._send("GET", url)
        return DownloadedFile(
            content_type=response.headers.get("content-type", ""),
            content=response.content,
        )

    # ------------------------------------------------------------------
    # Status accessors for the poller
    # ------------------------------------------------------------------

    async def project_status(self, project_id: str) -> StatusSnapshot:
        project = await self.get_project(project_id)
        return StatusSnapshot(status=project.status, message=project.error_message)

    async def task_status(self, project_id: str, task_id: str) -> StatusSnapshot:
        task = await self.get_task(project_id, task_id)
        return StatusSnapshot(status=task.status, message=task.error_message)


def _error_message(response: httpx.Response) -> str:
    """Best-effort human-readable error from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        return str(error or body.get("message") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"
