"""Error taxonomy for the outbound pipeline.

Every error names the offending field (or batch index) so the HTTP layer
can build a per-field report without inspecting message content.
"""

from __future__ import annotations

from typing import Sequence


class PipelineError(Exception):
    """Base class for caller-facing pipeline failures."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        data: dict = {"error": self.message}
        if self.field:
            data["field"] = self.field
        return data


class ValidationError(PipelineError):
    """Malformed request shape or out-of-bounds tap-area geometry."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: Sequence[str] = (),
    ) -> None:
        super().__init__(message, field)
        self.errors = list(errors)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.errors:
            data["issues"] = list(self.errors)
        return data


class UnsupportedOriginError(ValidationError):
    """Image is not hosted on the supported asset host."""


class ConversionError(PipelineError):
    """Asset identifier could not be extracted from an image URL."""


class PersistenceFailure(PipelineError):
    """Store, event bus or transform host unreachable.

    ``index`` is the failing position inside a batch and ``committed`` the
    number of messages before it that were written and published.
    """

    def __init__(
        self,
        message: str,
        index: int | None = None,
        committed: int = 0,
        field: str | None = None,
    ) -> None:
        super().__init__(message, field)
        self.index = index
        self.committed = committed

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.index is not None:
            data["index"] = self.index
            data["committed"] = self.committed
        return data


class DeliveryError(PipelineError):
    """The messaging platform rejected or did not answer a push."""
