"""Payload normalization: every accepted request shape → canonical messages.

Dispatch order, most specific first:

    template           ─── templateData short-circuit
    messages[]         ─── passed through unchanged
    typed single shape ─── one canonical message
    cardType + areas   ─── compose labels → imagemap
    cardType           ─── templateData (carousel)
    text / message     ─── text message
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence, assert_never

from linepush.errors import UnsupportedOriginError, ValidationError
from linepush.messages.geometry import validate_image_areas
from linepush.messages.imagemap import convert_areas_to_imagemap
from linepush.messages.models import (
    AudioMessage,
    AudioRequest,
    BatchRequest,
    CardTypeRequest,
    ImagemapMessage,
    ImagemapRequest,
    LegacyTextRequest,
    LocationMessage,
    LocationRequest,
    NormalizedPayload,
    OutboundRequest,
    RichMessageRequest,
    StickerMessage,
    StickerRequest,
    TapArea,
    TemplateData,
    TemplateRequest,
    TextMessage,
    TextRequest,
    VideoMessage,
    VideoRequest,
    parse_request,
)
from linepush.types import MessageItemType

logger = logging.getLogger(__name__)


class ImageCompositor(Protocol):
    def is_supported_origin(self, image_url: str) -> bool: ...

    async def compose(self, image_url: str, areas: Sequence[TapArea], width: int, height: int) -> str: ...


class PayloadNormalizer:
    def __init__(self, compositor: ImageCompositor | None = None) -> None:
        self._compositor = compositor

    async def normalize(self, request: OutboundRequest | dict[str, Any]) -> NormalizedPayload:
        """Map a request (model or raw JSON dict) onto the canonical output."""
        if isinstance(request, dict):
            request = parse_request(request)

        result = await self._dispatch(request)
        logger.debug(
            "Normalized %s into %s",
            type(request).__name__,
            "template" if result.is_template else f"{len(result.messages)} message(s)",
        )
        return result

    async def _dispatch(self, request: OutboundRequest) -> NormalizedPayload:
        to = request.to

        if isinstance(request, TemplateRequest):
            return NormalizedPayload(
                to=to,
                is_template=True,
                template_data=TemplateData(alt_text=request.alt_text, template=request.template),
            )

        if isinstance(request, BatchRequest):
            return NormalizedPayload(to=to, messages=list(request.messages))

        if isinstance(request, StickerRequest):
            message = StickerMessage(package_id=request.package_id, sticker_id=request.sticker_id)
            return NormalizedPayload(to=to, messages=[message])

        if isinstance(request, VideoRequest):
            message = VideoMessage(
                original_content_url=request.video_url,
                preview_image_url=request.preview_url,
            )
            return NormalizedPayload(to=to, messages=[message])

        if isinstance(request, AudioRequest):
            message = AudioMessage(original_content_url=request.audio_url, duration=request.duration)
            return NormalizedPayload(to=to, messages=[message])

        if isinstance(request, LocationRequest):
            message = LocationMessage(
                title=request.title,
                address=request.address,
                latitude=request.latitude,
                longitude=request.longitude,
            )
            return NormalizedPayload(to=to, messages=[message])

        if isinstance(request, (ImagemapRequest, RichMessageRequest)):
            message = ImagemapMessage(
                base_url=request.base_url,
                alt_text=request.alt_text,
                base_size=request.base_size,
                actions=request.actions,
            )
            item_type = MessageItemType.RICH_MESSAGE if isinstance(request, RichMessageRequest) else None
            return NormalizedPayload(to=to, messages=[message], message_item_type=item_type)

        if isinstance(request, CardTypeRequest):
            if request.has_tap_areas:
                return await self._card_to_imagemap(request)
            # Legacy carousel behaviour
            return NormalizedPayload(
                to=to,
                is_template=True,
                template_data=TemplateData(alt_text=request.alt_text, template=request.template),
                message_item_type=MessageItemType.CARD_TYPE,
            )

        if isinstance(request, TextRequest):
            return NormalizedPayload(to=to, messages=[TextMessage(text=request.text)])

        if isinstance(request, LegacyTextRequest):
            return NormalizedPayload(to=to, messages=[TextMessage(text=request.message)])

        assert_never(request)

    async def _card_to_imagemap(self, request: CardTypeRequest) -> NormalizedPayload:
        """Tap areas have no fallback path: every precondition failure raises."""
        if self._compositor is None:
            raise RuntimeError("PayloadNormalizer needs an image compositor for tap-area cards")

        areas = request.image_areas or []
        if not request.image_url or not request.image_url.strip():
            raise ValidationError("imageUrl is required when image areas are provided", field="imageUrl")
        if request.image_width is None:
            raise ValidationError("imageWidth is required when image areas are provided", field="imageWidth")
        if request.image_height is None:
            raise ValidationError("imageHeight is required when image areas are provided", field="imageHeight")
        if not self._compositor.is_supported_origin(request.image_url):
            raise UnsupportedOriginError(
                "Image areas require an image hosted on the supported asset host",
                field="imageUrl",
            )

        errors = validate_image_areas(areas, request.image_width, request.image_height)
        if errors:
            logger.info("Rejected %d image area(s): %d violation(s)", len(areas), len(errors))
            raise ValidationError("Invalid image areas", field="imageAreas", errors=errors)

        composed_url = await self._compositor.compose(
            request.image_url, areas, request.image_width, request.image_height
        )
        message = convert_areas_to_imagemap(
            areas,
            composed_url,
            request.image_width,
            request.image_height,
            alt_text=request.alt_text,
        )
        return NormalizedPayload(
            to=request.to,
            messages=[message],
            message_item_type=MessageItemType.CARD_TYPE,
        )
