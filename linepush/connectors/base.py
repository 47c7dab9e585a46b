"""Collaborator abstraction shared by the asset host, LINE, the store and the bus."""

from __future__ import annotations

import abc


class ServiceConnector(abc.ABC):
    @abc.abstractmethod
    async def health_check(self) -> dict:
        """Return health status."""

    @abc.abstractmethod
    def name(self) -> str:
        """Connector identifier."""

    async def connect(self) -> None:
        """Establish connection (optional override)."""

    async def disconnect(self) -> None:
        """Teardown (optional override)."""

    async def __aenter__(self) -> ServiceConnector:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()


def healthy(**details) -> dict:
    return {"status": "healthy", **details}


def unhealthy(error: str | BaseException) -> dict:
    return {"status": "unhealthy", "error": str(error)}
