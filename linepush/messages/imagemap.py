"""Tap areas + a composed image → LINE imagemap message."""

from __future__ import annotations

import re
from typing import Sequence, assert_never
from urllib.parse import urlsplit, urlunsplit

from linepush.errors import ValidationError
from linepush.messages.geometry import MAX_AREAS
from linepush.messages.models import (
    MAX_ALT_TEXT,
    MAX_IMAGE_SIDE,
    BaseSize,
    CardAction,
    ImagemapAction,
    ImagemapArea,
    ImagemapMessage,
    ImagemapMessageAction,
    ImagemapPostbackAction,
    ImagemapUriAction,
    MessageCardAction,
    PostbackCardAction,
    TapArea,
    UriCardAction,
)

DEFAULT_ALT_TEXT = "Imagemap message"

_EXTENSION = re.compile(r"\.[^/.]+$")


def strip_extension(url: str) -> str:
    """Drop the trailing file extension from the path of ``url``.

    LINE fetches ``{baseUrl}/{size}``, so the base URL must end in a bare
    path segment. Query string and fragment are kept as they are.

    >>> strip_extension("https://host/a/b/img.jpg?x=1#y")
    'https://host/a/b/img?x=1#y'
    """
    parts = urlsplit(url)
    path = _EXTENSION.sub("", parts.path.rstrip("/"))
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def convert_areas_to_imagemap(
    areas: Sequence[TapArea],
    composed_image_url: str,
    image_width: int,
    image_height: int,
    alt_text: str | None = None,
) -> ImagemapMessage:
    """Build the imagemap message; one action per area, in input order."""
    if not areas:
        raise ValidationError("At least one image area is required", field="imageAreas")
    if len(areas) > MAX_AREAS:
        raise ValidationError(f"Maximum {MAX_AREAS} image areas allowed", field="imageAreas")
    if not (1 <= image_width <= MAX_IMAGE_SIDE and 1 <= image_height <= MAX_IMAGE_SIDE):
        raise ValidationError(
            f"Image dimensions must be between 1x1 and {MAX_IMAGE_SIDE}x{MAX_IMAGE_SIDE} pixels",
            field="imageWidth" if not 1 <= image_width <= MAX_IMAGE_SIDE else "imageHeight",
        )

    text = (alt_text or DEFAULT_ALT_TEXT)[:MAX_ALT_TEXT]

    return ImagemapMessage(
        base_url=strip_extension(composed_image_url),
        alt_text=text,
        base_size=BaseSize(width=image_width, height=image_height),
        actions=[_convert_action(area.action, _area_of(area)) for area in areas],
    )


def _area_of(area: TapArea) -> ImagemapArea:
    return ImagemapArea(x=area.x, y=area.y, width=area.width, height=area.height)


def _convert_action(action: CardAction, area: ImagemapArea) -> ImagemapAction:
    if isinstance(action, UriCardAction):
        return ImagemapUriAction(link_uri=action.uri, area=area)
    if isinstance(action, MessageCardAction):
        return ImagemapMessageAction(text=action.text, area=area)
    if isinstance(action, PostbackCardAction):
        return ImagemapPostbackAction(data=action.data, display_text=action.display_text, area=area)
    assert_never(action)
