"""In-process realtime event bus feeding dashboard subscribers."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from linepush.connectors.base import ServiceConnector, healthy

logger = logging.getLogger(__name__)

Listener = Callable[[dict[str, Any]], Awaitable[None]]


class RealtimeBus(ServiceConnector):
    """Fan-out of named events to async listeners.

    ``emit`` awaits every listener in subscription order; a listener that
    raises aborts the emit and the error reaches the caller.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self.emitted = 0

    def subscribe(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def unsubscribe(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            await listener(payload)
        self.emitted += 1
        logger.debug("Emitted %s to %d listener(s)", event, len(listeners))

    async def health_check(self) -> dict:
        return healthy(events=sorted(self._listeners), emitted=self.emitted)

    def name(self) -> str:
        return "realtime"
