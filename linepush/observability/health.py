"""Aggregated health check across all collaborators."""

from __future__ import annotations

from linepush.connectors.base import ServiceConnector

# Without these nothing can be sent or recorded
CRITICAL_CONNECTORS = ("line", "store")


async def aggregate_health(connectors: dict[str, ServiceConnector]) -> dict:
    """``healthy``, ``degraded`` (an optional collaborator is down) or ``unhealthy``."""
    results = {}
    failing: list[str] = []
    for name, connector in connectors.items():
        health = await connector.health_check()
        results[name] = health
        if health.get("status") not in ("healthy", "disabled"):
            failing.append(name)

    if any(name in CRITICAL_CONNECTORS for name in failing):
        status = "unhealthy"
    elif failing:
        status = "degraded"
    else:
        status = "healthy"
    return {"status": status, "connectors": results}
