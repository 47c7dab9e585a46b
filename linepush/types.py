"""Shared enums and type aliases."""

from enum import Enum


class MessageType(str, Enum):
    """Canonical wire message kinds accepted by the LINE Messaging API."""

    TEXT = "text"
    STICKER = "sticker"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    LOCATION = "location"
    COUPON = "coupon"
    IMAGEMAP = "imagemap"
    TEMPLATE = "template"


class ActionType(str, Enum):
    URI = "uri"
    MESSAGE = "message"
    POSTBACK = "postback"


class MessageItemType(str, Enum):
    """Dashboard-authored items that reuse a standard wire type."""

    RICH_MESSAGE = "richMessage"
    CARD_TYPE = "cardType"


class RecordType(str, Enum):
    TEXT = "TEXT"
    STICKER = "STICKER"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    LOCATION = "LOCATION"
    COUPON = "COUPON"
    IMAGEMAP = "IMAGEMAP"
    TEMPLATE = "TEMPLATE"
    RICH_MESSAGE = "RICH_MESSAGE"
    CARD_TYPE = "CARD_TYPE"


class Direction(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


OUTBOUND_EVENT = "message:outbound"
