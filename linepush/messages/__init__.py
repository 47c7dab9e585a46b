"""Outbound message pipeline.

Request shape → canonical LINE messages (with tap-area imagemaps composed on
the asset host) → push → durable record + realtime event.
"""

from linepush.messages.geometry import validate_image_areas
from linepush.messages.imagemap import convert_areas_to_imagemap, strip_extension
from linepush.messages.models import (
    CanonicalMessage,
    NormalizedPayload,
    OutboundRequest,
    PersistedMessage,
    TapArea,
    parse_request,
)

__all__ = [
    "CanonicalMessage",
    "NormalizedPayload",
    "OutboundRequest",
    "PersistedMessage",
    "TapArea",
    "convert_areas_to_imagemap",
    "parse_request",
    "strip_extension",
    "validate_image_areas",
]
