"""Shared fixtures: a fake deck API and a DeckClient wired to it in-process."""

from __future__ import annotations

import httpx
import pytest

from slidewatch.client import DeckClient
from slidewatch.config import Settings
from tests.fake_provider import FakeDeckProvider


@pytest.fixture
def provider() -> FakeDeckProvider:
    return FakeDeckProvider()


@pytest.fixture
async def deck_client(provider: FakeDeckProvider):
    """DeckClient talking to the fake provider through ASGITransport."""
    transport = httpx.ASGITransport(app=provider.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://deck.test") as http:
        yield DeckClient(http_client=http)


@pytest.fixture
def fast_settings() -> Settings:
    """Settings scaled down from seconds to tens of milliseconds."""
    return Settings(
        base_url="http://deck.test",
        poll_interval=0.01,
        outline_timeout=1.0,
        descriptions_timeout=1.0,
        images_timeout=1.0,
        settle_timeout=0.5,
        export_filename="e2e-test.pptx",
        cleanup_projects=True,
    )
