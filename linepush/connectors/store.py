"""Durable message store: PostgreSQL in production, in-memory for dev and tests.

Both stores only ever insert: every outbound message becomes a new row keyed
by a fresh id, so concurrent requests never contend on the same record.
"""

from __future__ import annotations

import abc
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import asyncpg

from linepush.connectors.base import ServiceConnector, healthy, unhealthy
from linepush.messages.models import PersistedMessage
from linepush.types import DeliveryStatus, Direction, RecordType

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    line_user_id  TEXT UNIQUE NOT NULL,
    display_name  TEXT NOT NULL DEFAULT '',
    is_following  BOOLEAN NOT NULL DEFAULT TRUE,
    created_at    TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS messages (
    id               TEXT PRIMARY KEY,
    type             TEXT NOT NULL,
    content          JSONB NOT NULL,
    direction        TEXT NOT NULL,
    user_id          TEXT NOT NULL REFERENCES users(id),
    delivery_status  TEXT NOT NULL,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS messages_user_created_idx ON messages (user_id, created_at);
"""


def _new_id() -> str:
    return uuid.uuid4().hex


class MessageStore(ServiceConnector):
    @abc.abstractmethod
    async def ensure_user(self, line_user_id: str) -> str:
        """Upsert the LINE user and return the internal user id."""

    @abc.abstractmethod
    async def create(
        self,
        *,
        user_id: str,
        type: RecordType,
        content: dict[str, Any],
        direction: Direction = Direction.OUTBOUND,
        delivery_status: DeliveryStatus = DeliveryStatus.SENT,
    ) -> PersistedMessage:
        """Insert one message record and return it with its id and timestamp."""


class InMemoryMessageStore(MessageStore):
    def __init__(self) -> None:
        self.users: dict[str, str] = {}
        self.records: list[PersistedMessage] = []

    async def ensure_user(self, line_user_id: str) -> str:
        if line_user_id not in self.users:
            self.users[line_user_id] = _new_id()
        return self.users[line_user_id]

    async def create(
        self,
        *,
        user_id: str,
        type: RecordType,
        content: dict[str, Any],
        direction: Direction = Direction.OUTBOUND,
        delivery_status: DeliveryStatus = DeliveryStatus.SENT,
    ) -> PersistedMessage:
        record = PersistedMessage(
            id=_new_id(),
            type=type,
            content=content,
            direction=direction,
            user_id=user_id,
            delivery_status=delivery_status,
            created_at=datetime.now(timezone.utc),
        )
        self.records.append(record)
        return record

    async def health_check(self) -> dict:
        return healthy(backend="memory", records=len(self.records))

    def name(self) -> str:
        return "store"


class PostgresMessageStore(MessageStore):
    """asyncpg-backed store with ``users`` and ``messages`` tables."""

    def __init__(self, postgres_url: str, max_size: int = 5) -> None:
        self._url = postgres_url
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        self._pool = await asyncpg.create_pool(self._url, min_size=1, max_size=self._max_size)
        async with self._pool.acquire() as conn:
            await conn.execute(SCHEMA)
        logger.info("PostgresMessageStore connected to %s", self._url.split("@")[-1])

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    def _get_pool(self) -> asyncpg.Pool:
        if not self._pool:
            raise RuntimeError("PostgresMessageStore is not connected")
        return self._pool

    async def ensure_user(self, line_user_id: str) -> str:
        pool = self._get_pool()
        return await pool.fetchval(
            """
            INSERT INTO users (id, line_user_id)
            VALUES ($1, $2)
            ON CONFLICT (line_user_id) DO UPDATE SET line_user_id = EXCLUDED.line_user_id
            RETURNING id
            """,
            _new_id(),
            line_user_id,
        )

    async def create(
        self,
        *,
        user_id: str,
        type: RecordType,
        content: dict[str, Any],
        direction: Direction = Direction.OUTBOUND,
        delivery_status: DeliveryStatus = DeliveryStatus.SENT,
    ) -> PersistedMessage:
        pool = self._get_pool()
        record_id = _new_id()
        created_at = await pool.fetchval(
            """
            INSERT INTO messages (id, type, content, direction, user_id, delivery_status)
            VALUES ($1, $2, $3::jsonb, $4, $5, $6)
            RETURNING created_at
            """,
            record_id,
            type.value,
            json.dumps(content, ensure_ascii=False),
            direction.value,
            user_id,
            delivery_status.value,
        )
        return PersistedMessage(
            id=record_id,
            type=type,
            content=content,
            direction=direction,
            user_id=user_id,
            delivery_status=delivery_status,
            created_at=created_at,
        )

    async def health_check(self) -> dict:
        if not self._pool:
            return unhealthy("not connected")
        try:
            count = await self._pool.fetchval("SELECT count(*) FROM messages")
            return healthy(backend="postgres", records=count)
        except Exception as e:
            return unhealthy(e)

    def name(self) -> str:
        return "store"
