"""Drive a deck project from idea to downloaded pptx.

The deck API advances a project through
``OUTLINE_GENERATED -> DESCRIPTIONS_GENERATED -> COMPLETED`` asynchronously.
Description and image generation run as tasks with their own status. Each
wait below goes through the poller, so a FAILED status ends the flow at once
with the provider's message. A missed deadline ends it with the last status
observed.

Projects are created inside ``scoped_project`` and deleted on every exit path.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog

from slidewatch.client import PPTX_CONTENT_TYPE, DeckClient
from slidewatch.config import Settings
from slidewatch.errors import FlowVerificationError
from slidewatch.logging import project_context
from slidewatch.models.contracts import (
    CreateProjectRequest,
    FlowReport,
    GenerateImagesRequest,
    PollOutcome,
    ProjectState,
    ProjectStatus,
    QuickFlowReport,
    TaskStatus,
)
from slidewatch.polling import wait_for_status

logger = structlog.get_logger()

MIN_PPTX_BYTES = 1000


@asynccontextmanager
async def scoped_project(
    client: DeckClient,
    request: CreateProjectRequest,
    *,
    cleanup: bool = True,
) -> AsyncIterator[str]:
    """Create a project and delete it when the block exits, however it exits.

    A failed delete is logged, not raised, so it never masks the error that
    ended the block.
    """
    project_id = await client.create_project(request)
    with project_context(project_id):
        try:
            yield project_id
        finally:
            if cleanup:
                await _delete_quietly(client, project_id)
            else:
                logger.debug("project_cleanup_skipped", project_id=project_id)


async def _delete_quietly(client: DeckClient, project_id: str) -> None:
    try:
        await client.delete_project(project_id)
    except Exception as exc:
        logger.warning(
            "project_cleanup_failed",
            project_id=project_id,
            error=str(exc),
            error_type=type(exc).__name__,
        )


async def wait_for_project_status(
    client: DeckClient,
    project_id: str,
    expected: ProjectStatus,
    *,
    interval: float,
    timeout: float,
    cancel_event: asyncio.Event | None = None,
) -> PollOutcome:
    """Block until the project reaches ``expected``; fail fast on FAILED."""
    return await wait_for_status(
        lambda: client.project_status(project_id),
        success=expected,
        failure=ProjectStatus.FAILED,
        interval=interval,
        timeout=timeout,
        target_id=f"project {project_id} -> {expected.value}",
        cancel_event=cancel_event,
    )


async def wait_for_task(
    client: DeckClient,
    project_id: str,
    task_id: str,
    *,
    interval: float,
    timeout: float,
    cancel_event: asyncio.Event | None = None,
) -> PollOutcome:
    """Block until the task completes; FAILED carries the task's error_message."""
    return await wait_for_status(
        lambda: client.task_status(project_id, task_id),
        success=TaskStatus.COMPLETED,
        failure=TaskStatus.FAILED,
        interval=interval,
        timeout=timeout,
        target_id=f"task {task_id}",
        cancel_event=cancel_event,
    )


def verify_outline(project: ProjectState) -> int:
    pages = project.outline_pages
    if not pages:
        raise FlowVerificationError(f"Project {project.project_id} has no outline pages")
    return len(pages)


def verify_pages_rendered(project: ProjectState) -> int:
    if not project.pages:
        raise FlowVerificationError(f"Project {project.project_id} has no pages")
    for page in project.pages:
        if not page.generated_image_path:
            raise FlowVerificationError(f"Page {page.order_index + 1} has no generated image")
        if page.status != TaskStatus.COMPLETED.value:
            raise FlowVerificationError(
                f"Page {page.order_index + 1} status is {page.status}, expected COMPLETED"
            )
    return len(project.pages)


class _StageTimer:
    def __init__(self) -> None:
        self.seconds: dict[str, float] = {}

    @asynccontextmanager
    async def stage(self, name: str) -> AsyncIterator[None]:
        started = time.monotonic()
        logger.info("stage_started", stage=name)
        yield
        self.seconds[name] = round(time.monotonic() - started, 3)
        logger.info("stage_finished", stage=name, duration_s=self.seconds[name])


async def run_full_flow(
    client: DeckClient,
    settings: Settings,
    *,
    idea_prompt: str | None = None,
    template_path: Path | None = None,
    cancel_event: asyncio.Event | None = None,
) -> FlowReport:
    """Create a project from an idea and walk it through to a verified pptx download."""
    interval = settings.poll_interval
    timer = _StageTimer()
    request = CreateProjectRequest(
        creation_type="idea",
        idea_prompt=idea_prompt or settings.idea_prompt,
    )

    async with scoped_project(client, request, cleanup=settings.cleanup_projects) as pid:
        if template_path is not None:
            await client.upload_template(pid, template_path)

        async with timer.stage("outline"):
            await wait_for_project_status(
                client,
                pid,
                ProjectStatus.OUTLINE_GENERATED,
                interval=interval,
                timeout=settings.outline_timeout,
                cancel_event=cancel_event,
            )
            project = await client.get_project(pid)
            outline_pages = verify_outline(project)
            logger.info("outline_verified", page_count=outline_pages)

        async with timer.stage("descriptions"):
            task_id = await client.generate_descriptions(pid, project.outline_content or {})
            await wait_for_task(
                client,
                pid,
                task_id,
                interval=interval,
                timeout=settings.descriptions_timeout,
                cancel_event=cancel_event,
            )
            await wait_for_project_status(
                client,
                pid,
                ProjectStatus.DESCRIPTIONS_GENERATED,
                interval=interval,
                timeout=settings.settle_timeout,
                cancel_event=cancel_event,
            )

        async with timer.stage("images"):
            task_id = await client.generate_images(
                pid,
                GenerateImagesRequest(
                    use_template=template_path is not None,
                    aspect_ratio=settings.aspect_ratio,
                    resolution=settings.resolution,
                ),
            )
            await wait_for_task(
                client,
                pid,
                task_id,
                interval=interval,
                timeout=settings.images_timeout,
                cancel_event=cancel_event,
            )
            await wait_for_project_status(
                client,
                pid,
                ProjectStatus.COMPLETED,
                interval=interval,
                timeout=settings.settle_timeout,
                cancel_event=cancel_event,
            )
            page_count = verify_pages_rendered(await client.get_project(pid))

        async with timer.stage("export"):
            exported = await client.export_pptx(pid, settings.export_filename)
            if ".pptx" not in exported.download_url:
                raise FlowVerificationError(
                    f"Export URL does not point at a pptx: {exported.download_url}"
                )
            downloaded = await client.download(exported.download_url)
            if PPTX_CONTENT_TYPE not in downloaded.content_type:
                raise FlowVerificationError(
                    f"Unexpected content type for export: {downloaded.content_type!r}"
                )
            if downloaded.size <= MIN_PPTX_BYTES:
                raise FlowVerificationError(
                    f"Exported pptx is only {downloaded.size} bytes"
                )

        report = FlowReport(
            project_id=pid,
            page_count=page_count,
            download_url=exported.download_url,
            file_size=downloaded.size,
            stage_seconds=timer.seconds,
        )
    logger.info("full_flow_passed", **report.model_dump(exclude={"stage_seconds"}))
    return report


async def run_quick_flow(client: DeckClient, idea_prompt: str = "slidewatch quick check") -> QuickFlowReport:
    """Exercise project CRUD without waiting on any AI generation."""
    request = CreateProjectRequest(creation_type="idea", idea_prompt=idea_prompt)
    # Deleting is part of what this flow checks, so cleanup only runs on failure.
    async with scoped_project(client, request, cleanup=False) as project_id:
        deleted = False
        try:
            await client.get_project(project_id)
            listing = await client.list_projects()
            if not any(p.project_id == project_id for p in listing.projects):
                raise FlowVerificationError(f"Project {project_id} missing from project list")
            await client.delete_project(project_id)
            deleted = True
        finally:
            if not deleted:
                await _delete_quietly(client, project_id)
    return QuickFlowReport(
        project_id=project_id,
        project_count=len(listing.projects),
        deleted=True,
    )
