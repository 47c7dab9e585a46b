"""Shared fakes for the pipeline collaborators."""

from __future__ import annotations

from urllib.parse import urlsplit

import pytest

from linepush.connectors.realtime import RealtimeBus
from linepush.connectors.store import InMemoryMessageStore
from linepush.types import OUTBOUND_EVENT


class FakeCompositor:
    """Records compose calls and returns a fixed derived URL."""

    def __init__(self, composed_url: str = "https://res.cloudinary.com/demo/image/upload/v1/composed.png") -> None:
        self.composed_url = composed_url
        self.calls: list[tuple] = []

    def is_supported_origin(self, image_url: str) -> bool:
        hostname = urlsplit(image_url).hostname or ""
        return hostname == "cloudinary.com" or hostname.endswith(".cloudinary.com")

    async def compose(self, image_url, areas, width, height) -> str:
        self.calls.append((image_url, list(areas), width, height))
        return self.composed_url


@pytest.fixture
def compositor() -> FakeCompositor:
    return FakeCompositor()


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def bus() -> RealtimeBus:
    return RealtimeBus()


@pytest.fixture
def events(bus: RealtimeBus) -> list[dict]:
    """Payloads of every outbound event emitted on ``bus``."""
    received: list[dict] = []

    async def listener(payload: dict) -> None:
        received.append(payload)

    bus.subscribe(OUTBOUND_EVENT, listener)
    return received
