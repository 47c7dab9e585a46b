"""Wire message models, tap areas and the accepted request shapes.

Attributes are snake_case; the LINE wire format and the HTTP request bodies
are camelCase, so every model aliases with ``to_camel`` and accepts both.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from linepush.errors import ValidationError
from linepush.types import DeliveryStatus, Direction, MessageItemType, RecordType

MAX_ALT_TEXT = 400
MAX_IMAGE_SIDE = 2500
MAX_AUDIO_DURATION_MS = 60000
TEMPLATE_KINDS = ("buttons", "confirm", "carousel", "image_carousel")


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    def to_wire(self) -> dict[str, Any]:
        """Dump with wire (camelCase) keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class LenientModel(WireModel):
    """Dashboard-authored input; unknown keys are ignored rather than rejected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Imagemap building blocks
# ---------------------------------------------------------------------------


class ImagemapArea(WireModel):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(ge=1)
    height: int = Field(ge=1)


class BaseSize(WireModel):
    width: int = Field(ge=1, le=MAX_IMAGE_SIDE)
    height: int = Field(ge=1, le=MAX_IMAGE_SIDE)


class ImagemapUriAction(WireModel):
    type: Literal["uri"] = "uri"
    link_uri: str = Field(min_length=1)
    area: ImagemapArea


class ImagemapMessageAction(WireModel):
    type: Literal["message"] = "message"
    text: str = Field(min_length=1)
    area: ImagemapArea


class ImagemapPostbackAction(WireModel):
    type: Literal["postback"] = "postback"
    data: str = Field(min_length=1)
    display_text: str | None = None
    area: ImagemapArea


ImagemapAction = Annotated[
    Union[ImagemapUriAction, ImagemapMessageAction, ImagemapPostbackAction],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Canonical messages
# ---------------------------------------------------------------------------


class TextMessage(WireModel):
    type: Literal["text"] = "text"
    text: str = Field(min_length=1)


class StickerMessage(WireModel):
    type: Literal["sticker"] = "sticker"
    package_id: str = Field(min_length=1)
    sticker_id: str = Field(min_length=1)


class ImageMessage(WireModel):
    type: Literal["image"] = "image"
    original_content_url: str
    preview_image_url: str | None = None


class VideoMessage(WireModel):
    type: Literal["video"] = "video"
    original_content_url: str
    preview_image_url: str


class AudioMessage(WireModel):
    type: Literal["audio"] = "audio"
    original_content_url: str
    duration: int = Field(ge=1, le=MAX_AUDIO_DURATION_MS)


class LocationMessage(WireModel):
    type: Literal["location"] = "location"
    title: str = Field(min_length=1, max_length=100)
    address: str = Field(min_length=1, max_length=100)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class CouponMessage(WireModel):
    type: Literal["coupon"] = "coupon"
    coupon_id: str = Field(min_length=1)


class ImagemapMessage(WireModel):
    type: Literal["imagemap"] = "imagemap"
    base_url: str = Field(min_length=1)
    alt_text: str = Field(min_length=1, max_length=MAX_ALT_TEXT)
    base_size: BaseSize
    actions: list[ImagemapAction] = Field(min_length=1)


class TemplateMessage(WireModel):
    type: Literal["template"] = "template"
    alt_text: str = Field(min_length=1, max_length=MAX_ALT_TEXT)
    template: dict[str, Any]


CanonicalMessage = Annotated[
    Union[
        TextMessage,
        StickerMessage,
        ImageMessage,
        VideoMessage,
        AudioMessage,
        LocationMessage,
        CouponMessage,
        ImagemapMessage,
        TemplateMessage,
    ],
    Field(discriminator="type"),
]


class TemplateData(WireModel):
    alt_text: str
    template: dict[str, Any]

    def to_message(self) -> TemplateMessage:
        return TemplateMessage(alt_text=self.alt_text, template=self.template)


# ---------------------------------------------------------------------------
# Tap areas (card-layout authoring)
# ---------------------------------------------------------------------------


class UriCardAction(LenientModel):
    type: Literal["uri"] = "uri"
    label: str = ""
    uri: str = ""


class MessageCardAction(LenientModel):
    type: Literal["message"] = "message"
    label: str = ""
    text: str = ""


class PostbackCardAction(LenientModel):
    type: Literal["postback"] = "postback"
    label: str = ""
    data: str = ""
    display_text: str | None = None


CardAction = Annotated[
    Union[UriCardAction, MessageCardAction, PostbackCardAction],
    Field(discriminator="type"),
]


class TapArea(LenientModel):
    """A device-pixel rectangle (top-left origin) bound to an action.

    Bounds are checked by
    :func:`linepush.messages.geometry.validate_image_areas`, which reports
    every violation at once.
    """

    id: str
    x: int
    y: int
    width: int
    height: int
    label: str = ""
    action: CardAction

    @field_validator("x", "y", "width", "height", mode="before")
    @classmethod
    def round_pixels(cls, value: Any) -> Any:
        # Canvas editors report fractional pixels
        if isinstance(value, float):
            return math.floor(value + 0.5)
        return value


# ---------------------------------------------------------------------------
# Request shapes
# ---------------------------------------------------------------------------


def _check_template(template: dict[str, Any]) -> dict[str, Any]:
    if template.get("type") not in TEMPLATE_KINDS:
        raise ValueError(f"template.type must be one of {', '.join(TEMPLATE_KINDS)}")
    return template


class _Request(LenientModel):
    to: str = Field(min_length=1)


class LegacyTextRequest(_Request):
    type: Literal["text"] | None = None
    message: str = Field(min_length=1)


class TextRequest(_Request):
    type: Literal["text"] | None = None
    text: str = Field(min_length=1)


class BatchRequest(_Request):
    messages: list[CanonicalMessage] = Field(min_length=1)


class StickerRequest(_Request):
    type: Literal["sticker"]
    package_id: str = Field(min_length=1)
    sticker_id: str = Field(min_length=1)


class VideoRequest(_Request):
    type: Literal["video"]
    video_url: str
    preview_url: str

    @field_validator("video_url")
    @classmethod
    def check_video_url(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("Video URL must use HTTPS")
        if not value.lower().endswith(".mp4"):
            raise ValueError("Video URL must end with .mp4")
        return value

    @field_validator("preview_url")
    @classmethod
    def check_preview_url(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("Preview URL must use HTTPS")
        if not value.lower().endswith((".jpg", ".jpeg")):
            raise ValueError("Preview URL must end with .jpg or .jpeg")
        return value


class AudioRequest(_Request):
    type: Literal["audio"]
    audio_url: str = Field(min_length=1)
    duration: int = Field(ge=1, le=MAX_AUDIO_DURATION_MS)


class LocationRequest(_Request):
    type: Literal["location"]
    title: str = Field(min_length=1, max_length=100)
    address: str = Field(min_length=1, max_length=100)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class _ImagemapFields(_Request):
    base_url: str = Field(min_length=1)
    alt_text: str = Field(min_length=1, max_length=MAX_ALT_TEXT)
    base_size: BaseSize
    actions: list[ImagemapAction] = Field(min_length=1)


class ImagemapRequest(_ImagemapFields):
    type: Literal["imagemap"]


class RichMessageRequest(_ImagemapFields):
    type: Literal["richMessage"]


class TemplateRequest(_Request):
    type: Literal["template"]
    alt_text: str = Field(min_length=1, max_length=MAX_ALT_TEXT)
    template: dict[str, Any]

    @field_validator("template")
    @classmethod
    def check_template(cls, value: dict[str, Any]) -> dict[str, Any]:
        return _check_template(value)


class CardTypeRequest(_Request):
    type: Literal["cardType"]
    alt_text: str = Field(min_length=1, max_length=MAX_ALT_TEXT)
    template: dict[str, Any]
    image_areas: list[TapArea] | None = None
    image_url: str | None = None
    image_width: int | None = Field(default=None, ge=1, le=MAX_IMAGE_SIDE)
    image_height: int | None = Field(default=None, ge=1, le=MAX_IMAGE_SIDE)

    @field_validator("template")
    @classmethod
    def check_template(cls, value: dict[str, Any]) -> dict[str, Any]:
        return _check_template(value)

    @property
    def has_tap_areas(self) -> bool:
        return bool(self.image_areas)


OutboundRequest = Union[
    LegacyTextRequest,
    TextRequest,
    BatchRequest,
    StickerRequest,
    VideoRequest,
    AudioRequest,
    LocationRequest,
    ImagemapRequest,
    RichMessageRequest,
    CardTypeRequest,
    TemplateRequest,
]

_TYPED_REQUESTS: dict[str, type[_Request]] = {
    "template": TemplateRequest,
    "sticker": StickerRequest,
    "video": VideoRequest,
    "audio": AudioRequest,
    "location": LocationRequest,
    "imagemap": ImagemapRequest,
    "richMessage": RichMessageRequest,
    "cardType": CardTypeRequest,
}


def parse_request(data: Any) -> OutboundRequest:
    """Pick the request shape for a raw JSON body and validate it.

    Typed shapes are selected by ``type``; the untyped legacy shapes by which
    of ``messages``, ``text`` or ``message`` is present, in that order.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    kind = data.get("type")
    model: type[_Request]
    if kind in _TYPED_REQUESTS:
        model = _TYPED_REQUESTS[kind]
    elif "messages" in data and kind is None:
        model = BatchRequest
    elif "text" in data and kind in (None, "text"):
        model = TextRequest
    elif "message" in data and kind in (None, "text"):
        model = LegacyTextRequest
    else:
        raise ValidationError(f"Unrecognized request shape (type={kind!r})", field="type")

    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise _from_pydantic(exc) from exc


def _from_pydantic(exc: PydanticValidationError) -> ValidationError:
    issues = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        issues.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    first_loc = exc.errors()[0]["loc"] if exc.errors() else ()
    field = ".".join(str(part) for part in first_loc) or None
    return ValidationError("Invalid request body", field=field, errors=issues)


# ---------------------------------------------------------------------------
# Normalized output
# ---------------------------------------------------------------------------


class NormalizedPayload(BaseModel):
    """Either a non-empty canonical message list or a template descriptor."""

    to: str
    messages: list[CanonicalMessage] = Field(default_factory=list)
    is_template: bool = False
    template_data: TemplateData | None = None
    message_item_type: MessageItemType | None = None

    @model_validator(mode="after")
    def _messages_xor_template(self) -> NormalizedPayload:
        if self.is_template:
            if self.template_data is None or self.messages:
                raise ValueError("template output must carry template_data and no messages")
        elif not self.messages or self.template_data is not None:
            raise ValueError("message output must carry at least one message and no template_data")
        return self

    def wire_messages(self) -> list[dict[str, Any]]:
        """The list handed to the push endpoint."""
        if self.is_template:
            return [self.template_data.to_message().to_wire()]
        return [m.to_wire() for m in self.messages]


# ---------------------------------------------------------------------------
# Persisted record
# ---------------------------------------------------------------------------


class PersistedMessage(BaseModel):
    """Append-only record owned by the message store; never mutated."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    type: RecordType
    content: dict[str, Any]
    direction: Direction = Direction.OUTBOUND
    user_id: str
    delivery_status: DeliveryStatus = DeliveryStatus.SENT
    created_at: datetime
