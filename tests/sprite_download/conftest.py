"""Shared fixtures for the sprite pipeline tests."""

from __future__ import annotations

from typing import List

import httpx
import pytest
from sprite_fakes import FakeApi, RecordingSleep, make_png

from Pokedex.SpriteDownload.backoff import BackoffScheduler
from Pokedex.SpriteDownload.networking import BoundedFetcher


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def make_fetcher(fake_api: FakeApi, recording_sleep: RecordingSleep):
    """Factory building a :class:`BoundedFetcher` over ``fake_api``."""

    created: List[BoundedFetcher] = []

    def _factory(*, concurrency: int = 4, max_retries: int = 6, handler=None) -> BoundedFetcher:
        transport = httpx.MockTransport(handler) if handler is not None else fake_api.transport()
        fetcher = BoundedFetcher(
            httpx.Client(transport=transport),
            concurrency=concurrency,
            scheduler=BackoffScheduler(max_retries=max_retries),
            sleep=recording_sleep,
            owns_client=True,
        )
        created.append(fetcher)
        return fetcher

    yield _factory
    for fetcher in created:
        fetcher.close()
