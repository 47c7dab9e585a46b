"""Tap-area validation against the bounds of the base image."""

from __future__ import annotations

from typing import Sequence

from linepush.messages.models import (
    MessageCardAction,
    PostbackCardAction,
    TapArea,
    UriCardAction,
)

MAX_AREAS = 50
MAX_LABEL_LENGTH = 20


def validate_image_areas(areas: Sequence[TapArea], image_width: int, image_height: int) -> list[str]:
    """Return every problem found in ``areas``; an empty list means valid.

    Each area must satisfy ``x >= 0``, ``y >= 0``, ``width > 0``,
    ``height > 0``, ``x + width <= image_width`` and
    ``y + height <= image_height``. All areas are checked in one pass and
    messages are prefixed with the 1-based area number.
    """
    errors: list[str] = []

    if not areas:
        errors.append("At least one image area is required")
        return errors

    if len(areas) > MAX_AREAS:
        errors.append(f"Maximum {MAX_AREAS} image areas allowed")

    for number, area in enumerate(areas, start=1):
        errors.extend(f"Area {number}: {problem}" for problem in _area_problems(area, image_width, image_height))

    return errors


def _area_problems(area: TapArea, image_width: int, image_height: int) -> list[str]:
    problems: list[str] = []

    if len(area.label) > MAX_LABEL_LENGTH:
        problems.append(f"Label must be {MAX_LABEL_LENGTH} characters or less")

    if area.x < 0:
        problems.append("X coordinate out of bounds")
    if area.y < 0:
        problems.append("Y coordinate out of bounds")
    if area.width < 1 or area.x + area.width > image_width:
        problems.append("Width out of bounds")
    if area.height < 1 or area.y + area.height > image_height:
        problems.append("Height out of bounds")

    action = area.action
    if isinstance(action, UriCardAction):
        if not action.uri.startswith("https://"):
            problems.append("URI must start with https://")
    elif isinstance(action, MessageCardAction):
        if not action.text.strip():
            problems.append("Message text is required")
    elif isinstance(action, PostbackCardAction):
        if not action.data.strip():
            problems.append("Postback data is required")

    return problems
