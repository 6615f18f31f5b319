"""slidewatch contract models.

Two groups live here: the provider-agnostic polling types (StatusSnapshot,
PollOutcome) and the deck API request/response shapes the client
speaks. Deck response models ignore unknown fields so backend additions
do not break the client.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# === Status vocabularies ===


class ProjectStatus(str, Enum):
    DRAFT = "DRAFT"
    GENERATING_OUTLINE = "GENERATING_OUTLINE"
    OUTLINE_GENERATED = "OUTLINE_GENERATED"
    GENERATING_DESCRIPTIONS = "GENERATING_DESCRIPTIONS"
    DESCRIPTIONS_GENERATED = "DESCRIPTIONS_GENERATED"
    GENERATING_IMAGES = "GENERATING_IMAGES"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# === Polling ===


class StatusSnapshot(BaseModel):
    """One observation of a resource's status, with the provider's diagnostic."""

    model_config = ConfigDict(frozen=True)

    status: Any
    message: str | None = None


PollOutcomeKind = Literal["succeeded", "failed", "timed_out", "cancelled"]


class PollOutcome(BaseModel):
    """Terminal result of one poll operation. Produced exactly once."""

    model_config = ConfigDict(frozen=True)

    kind: PollOutcomeKind
    target_id: str
    last_status: Any = None
    message: str | None = None
    attempts: int = Field(ge=0, default=0)
    elapsed: float = Field(ge=0, default=0.0)

    @property
    def succeeded(self) -> bool:
        return self.kind == "succeeded"

    def raise_for_outcome(self) -> PollOutcome:
        """Return self on success, else raise the error type for this outcome."""
        from slidewatch.errors import PollCancelledError, PollFailedError, PollTimeoutError

        if self.kind == "failed":
            raise PollFailedError(self)
        if self.kind == "timed_out":
            raise PollTimeoutError(self)
        if self.kind == "cancelled":
            raise PollCancelledError(self)
        return self


# === Deck API shapes ===


class _DeckModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ApiEnvelope(_DeckModel):
    """Every deck API JSON response is wrapped in this envelope."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    message: str | None = None


class HealthStatus(_DeckModel):
    status: str


class CreateProjectRequest(BaseModel):
    creation_type: Literal["idea", "outline", "descriptions"] = "idea"
    idea_prompt: str | None = None
    outline_text: str | None = None
    description_text: str | None = None


class CreateProjectResponse(_DeckModel):
    project_id: str


class PageState(_DeckModel):
    page_id: str | None = None
    order_index: int = 0
    status: str | None = None
    outline_content: dict[str, Any] | None = None
    description_content: dict[str, Any] | None = None
    generated_image_path: str | None = None


class ProjectState(_DeckModel):
    project_id: str
    status: str
    idea_prompt: str | None = None
    outline_content: dict[str, Any] | None = None
    pages: list[PageState] = []
    error_message: str | None = None

    @property
    def outline_pages(self) -> list[Any]:
        """Outline entries; older backends nest them under ``outline``."""
        if not self.outline_content:
            return []
        return list(self.outline_content.get("pages") or self.outline_content.get("outline") or [])


class ProjectList(_DeckModel):
    projects: list[ProjectState] = []


class TaskAccepted(_DeckModel):
    task_id: str


class TaskState(_DeckModel):
    task_id: str
    status: str
    task_type: str | None = None
    progress: dict[str, Any] | None = None
    error_message: str | None = None


class GenerateDescriptionsRequest(BaseModel):
    outline: dict[str, Any]


class GenerateImagesRequest(BaseModel):
    use_template: bool = False
    aspect_ratio: str = "16:9"
    resolution: str = "1080p"


class ExportResult(_DeckModel):
    download_url: str


class DownloadedFile(BaseModel):
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


# === Flow reports ===


class FlowReport(BaseModel):
    project_id: str
    page_count: int
    download_url: str
    file_size: int
    stage_seconds: dict[str, float] = {}


class QuickFlowReport(BaseModel):
    project_id: str
    project_count: int
    deleted: bool
