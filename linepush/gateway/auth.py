"""API key authentication for the HTTP gateway."""

from __future__ import annotations

import hmac


def validate_api_key(provided: str | None, expected: str) -> bool:
    """Constant-time API key comparison; an unset expected key rejects everything."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())
