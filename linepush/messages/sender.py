"""End-to-end send: normalize → ensure user → push to LINE → persist + notify."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from linepush.errors import PersistenceFailure, PipelineError
from linepush.messages.models import NormalizedPayload, OutboundRequest, PersistedMessage
from linepush.types import MessageItemType, MessageType, RecordType

if TYPE_CHECKING:
    from linepush.connectors.line import LineClient
    from linepush.connectors.store import MessageStore
    from linepush.messages.normalizer import PayloadNormalizer
    from linepush.messages.persister import MessagePersister
    from linepush.observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    to: str
    user_id: str
    records: list[PersistedMessage] = field(default_factory=list)


class OutboundSender:
    """Runs one request through the whole pipeline.

    Delivery happens before persistence, so a DeliveryError leaves no
    records behind. Persistence failures keep the committed prefix.
    """

    def __init__(
        self,
        normalizer: PayloadNormalizer,
        line: LineClient,
        store: MessageStore,
        persister: MessagePersister,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._normalizer = normalizer
        self._line = line
        self._store = store
        self._persister = persister
        self._metrics = metrics

    async def send(self, request: OutboundRequest | dict[str, Any]) -> SendResult:
        start = time.monotonic()
        try:
            normalized = await self._normalizer.normalize(request)
            result = await self._deliver(normalized)
        except PipelineError as e:
            if self._metrics:
                committed = e.committed if isinstance(e, PersistenceFailure) else 0
                self._metrics.record_failure(type(e).__name__, committed)
            raise

        if self._metrics:
            kinds = [MessageType.TEMPLATE.value] if normalized.is_template else [m.type for m in normalized.messages]
            self._metrics.record_send(kinds, int((time.monotonic() - start) * 1000))
        return result

    async def _deliver(self, normalized: NormalizedPayload) -> SendResult:
        try:
            user_id = await self._store.ensure_user(normalized.to)
        except Exception as e:
            logger.error("User upsert failed: %s", type(e).__name__)
            raise PersistenceFailure("Message store unreachable") from e

        await self._line.push(normalized.to, normalized.wire_messages())

        if normalized.is_template:
            record_type = (
                RecordType.CARD_TYPE
                if normalized.message_item_type is MessageItemType.CARD_TYPE
                else RecordType.TEMPLATE
            )
            record = await self._persister.persist_template(user_id, normalized.template_data, record_type)
            return SendResult(to=normalized.to, user_id=user_id, records=[record])

        if normalized.message_item_type is MessageItemType.RICH_MESSAGE:
            # Sent as imagemap, recorded as a rich message item
            records = await self._persister.persist_batch(
                user_id, normalized.messages, record_type=RecordType.RICH_MESSAGE
            )
        else:
            records = await self._persister.persist_batch(user_id, normalized.messages)

        logger.info("Sent and recorded %d message(s)", len(records))
        return SendResult(to=normalized.to, user_id=user_id, records=records)
