"""Durable records + realtime notifications for outbound messages.

Batches are written strictly in order: the record for message k is created
and its event emitted before message k+1 is touched. When message k fails,
messages 0..k-1 are committed and notified, k+1.. were never attempted, and
the raised PersistenceFailure carries ``index=k``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence, assert_never

from linepush.errors import PersistenceFailure
from linepush.messages.models import (
    AudioMessage,
    CanonicalMessage,
    CouponMessage,
    ImagemapMessage,
    ImageMessage,
    LocationMessage,
    PersistedMessage,
    StickerMessage,
    TemplateData,
    TemplateMessage,
    TextMessage,
    VideoMessage,
)
from linepush.types import OUTBOUND_EVENT, RecordType

if TYPE_CHECKING:
    from linepush.connectors.realtime import RealtimeBus
    from linepush.connectors.store import MessageStore

logger = logging.getLogger(__name__)

# Kinds without a natural short form (sticker, image, video, audio) have no entry
_SUMMARY_FORMATS: dict[RecordType, str] = {
    RecordType.LOCATION: "📍 {title}",
    RecordType.COUPON: "🎫 Coupon ({couponId})",
    RecordType.TEMPLATE: "📋 {altText}",
    RecordType.IMAGEMAP: "🗺️ {altText}",
    RecordType.RICH_MESSAGE: "🎨 {altText}",
    RecordType.CARD_TYPE: "🎴 {altText}",
}


def record_for(message: CanonicalMessage) -> tuple[RecordType, dict[str, Any]]:
    """Record type and content payload for one canonical message."""
    if isinstance(message, TextMessage):
        return RecordType.TEXT, {"text": message.text}
    if isinstance(message, StickerMessage):
        return RecordType.STICKER, {"packageId": message.package_id, "stickerId": message.sticker_id}
    if isinstance(message, ImageMessage):
        content = {"originalContentUrl": message.original_content_url}
        if message.preview_image_url:
            content["previewImageUrl"] = message.preview_image_url
        return RecordType.IMAGE, content
    if isinstance(message, VideoMessage):
        return RecordType.VIDEO, {
            "videoUrl": message.original_content_url,
            "previewUrl": message.preview_image_url,
        }
    if isinstance(message, AudioMessage):
        return RecordType.AUDIO, {"audioUrl": message.original_content_url, "duration": message.duration}
    if isinstance(message, LocationMessage):
        return RecordType.LOCATION, {
            "title": message.title,
            "address": message.address,
            "latitude": message.latitude,
            "longitude": message.longitude,
        }
    if isinstance(message, CouponMessage):
        return RecordType.COUPON, {"couponId": message.coupon_id}
    if isinstance(message, ImagemapMessage):
        wire = message.to_wire()
        return RecordType.IMAGEMAP, {
            "baseUrl": wire["baseUrl"],
            "altText": wire["altText"],
            "baseSize": wire["baseSize"],
            "actions": wire["actions"],
        }
    if isinstance(message, TemplateMessage):
        return RecordType.TEMPLATE, {"altText": message.alt_text, "template": message.template}
    assert_never(message)


def summary_for(record_type: RecordType, content: dict[str, Any]) -> str | None:
    """Short human-readable line for the dashboard, or None."""
    if record_type is RecordType.TEXT:
        return content["text"]
    fmt = _SUMMARY_FORMATS.get(record_type)
    return fmt.format(**content) if fmt else None


class MessagePersister:
    def __init__(self, store: MessageStore, bus: RealtimeBus) -> None:
        self._store = store
        self._bus = bus

    async def persist(
        self,
        user_id: str,
        message: CanonicalMessage,
        record_type: RecordType | None = None,
    ) -> PersistedMessage:
        """Write one record, then emit its event.

        ``record_type`` overrides the derived type, e.g. an imagemap that was
        authored as a rich message is stored as RICH_MESSAGE.
        """
        derived_type, content = record_for(message)
        return await self._write_and_publish(user_id, record_type or derived_type, content)

    async def persist_template(
        self,
        user_id: str,
        template_data: TemplateData,
        record_type: RecordType = RecordType.TEMPLATE,
    ) -> PersistedMessage:
        content = {"altText": template_data.alt_text, "template": template_data.template}
        return await self._write_and_publish(user_id, record_type, content)

    async def persist_batch(
        self,
        user_id: str,
        messages: Sequence[CanonicalMessage],
        record_type: RecordType | None = None,
    ) -> list[PersistedMessage]:
        records: list[PersistedMessage] = []
        for index, message in enumerate(messages):
            try:
                records.append(await self.persist(user_id, message, record_type))
            except PersistenceFailure as e:
                logger.error(
                    "Batch persistence stopped at index %d of %d (%d committed)",
                    index, len(messages), len(records),
                )
                raise PersistenceFailure(
                    f"Failed to persist message at index {index}",
                    index=index,
                    committed=len(records),
                ) from e
        return records

    async def _write_and_publish(
        self,
        user_id: str,
        record_type: RecordType,
        content: dict[str, Any],
    ) -> PersistedMessage:
        try:
            record = await self._store.create(user_id=user_id, type=record_type, content=content)
        except Exception as e:
            logger.error("Store write failed for %s record: %s", record_type.value, type(e).__name__)
            raise PersistenceFailure("Message store unreachable") from e

        payload: dict[str, Any] = {"userId": user_id}
        text = summary_for(record_type, content)
        if text is not None:
            payload["text"] = text
        payload["createdAt"] = record.created_at.isoformat()

        try:
            await self._bus.emit(OUTBOUND_EVENT, payload)
        except Exception as e:
            logger.error("Event publish failed for %s record: %s", record_type.value, type(e).__name__)
            raise PersistenceFailure("Realtime bus unreachable") from e

        logger.debug("Persisted %s record %s", record_type.value, record.id)
        return record
