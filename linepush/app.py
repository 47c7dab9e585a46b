"""FastAPI application factory: wires everything together."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from linepush import __version__
from linepush.config import LinePushConfig
from linepush.connectors.base import ServiceConnector
from linepush.connectors.cloudinary import CloudinaryCompositor
from linepush.connectors.line import LineClient
from linepush.connectors.realtime import RealtimeBus
from linepush.connectors.store import InMemoryMessageStore, MessageStore, PostgresMessageStore
from linepush.gateway.http_api import router as api_router, set_sender
from linepush.gateway.imagemap_proxy import router as imagemap_router, set_compositor
from linepush.messages.normalizer import PayloadNormalizer
from linepush.messages.persister import MessagePersister
from linepush.messages.sender import OutboundSender
from linepush.observability.health import aggregate_health
from linepush.observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


def create_app(
    config: LinePushConfig | None = None,
    store: MessageStore | None = None,
    bus: RealtimeBus | None = None,
    line: LineClient | None = None,
    compositor: CloudinaryCompositor | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Collaborators may be passed in directly; anything omitted is built from
    ``config``.
    """
    if config is None:
        config = LinePushConfig.from_yaml()

    # -- Collaborators --
    if store is None:
        if config.database_url:
            store = PostgresMessageStore(config.database_url, max_size=config.database_pool_max)
        else:
            logger.warning("No database_url configured; messages are kept in memory only")
            store = InMemoryMessageStore()
    if bus is None:
        bus = RealtimeBus()
    if line is None:
        line = LineClient(
            config.line_channel_access_token,
            url=config.line_api_url,
            timeout=config.line_timeout_seconds,
        )
    if compositor is None:
        compositor = CloudinaryCompositor(
            asset_domain=config.asset_domain,
            delivery_host=config.asset_delivery_host,
            font_family=config.overlay_font_family,
            prefetch=config.compose_prefetch,
            timeout=config.compose_timeout_seconds,
            cloud_name=config.cloudinary_cloud_name,
            proxy_base_url=config.imagemap_proxy_base_url,
        )

    connectors: dict[str, ServiceConnector] = {
        "line": line,
        "store": store,
        "realtime": bus,
        "cloudinary": compositor,
    }

    # -- Pipeline --
    metrics = MetricsCollector()
    sender = OutboundSender(
        normalizer=PayloadNormalizer(compositor),
        line=line,
        store=store,
        persister=MessagePersister(store, bus),
        metrics=metrics,
    )

    # -- Lifecycle --
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for conn in connectors.values():
            try:
                await conn.connect()
            except Exception:
                logger.exception("Failed to connect %s", conn.name())
        logger.info("linepush %s started on %s:%d", __version__, config.host, config.port)
        logger.info("Connectors: %s", ", ".join(connectors.keys()))
        yield
        for conn in connectors.values():
            await conn.disconnect()

    app = FastAPI(title="linepush", version=__version__, docs_url="/docs", lifespan=lifespan)

    # -- Wire HTTP API --
    set_sender(sender, api_key=config.linepush_api_key, require_auth=config.http_api_require_auth)
    app.include_router(api_router)
    set_compositor(compositor)
    app.include_router(imagemap_router)

    @app.get("/health")
    async def health():
        return await aggregate_health(connectors)

    @app.get("/metrics")
    async def get_metrics():
        return metrics.summary()

    @app.get("/")
    async def root():
        return {
            "name": "linepush",
            "version": __version__,
            "connectors": list(connectors.keys()),
        }

    # Store references for testing
    app.state.config = config
    app.state.sender = sender
    app.state.store = store
    app.state.bus = bus
    app.state.metrics = metrics

    return app
