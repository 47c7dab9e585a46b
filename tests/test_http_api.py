"""Test the HTTP gateway, health aggregation and metrics endpoints."""

import httpx
import pytest
from fastapi.testclient import TestClient

from linepush.app import create_app
from linepush.config import LinePushConfig
from linepush.connectors.base import ServiceConnector, healthy, unhealthy
from linepush.connectors.cloudinary import CloudinaryCompositor
from linepush.connectors.line import LineClient
from linepush.connectors.store import InMemoryMessageStore
from linepush.observability.health import aggregate_health
from linepush.types import RecordType

USER = "U1234567890abcdef"
KEY = {"X-API-Key": "secret"}


def _line_api(push_status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/bot/info":
            return httpx.Response(200, json={"userId": "Ubot"})
        return httpx.Response(push_status, json={})

    return handler


def _client(push_status: int = 200, store=None, cloud_name: str = "demo") -> TestClient:
    config = LinePushConfig(
        line_channel_access_token="token",
        linepush_api_key="secret",
        http_api_require_auth=True,
    )
    app = create_app(
        config,
        store=store or InMemoryMessageStore(),
        line=LineClient("token", transport=httpx.MockTransport(_line_api(push_status))),
        compositor=CloudinaryCompositor(prefetch=False, cloud_name=cloud_name),
    )
    return TestClient(app)


def test_send_requires_api_key():
    with _client() as client:
        resp = client.post("/api/v1/send", json={"to": USER, "text": "hi"})
        assert resp.status_code == 401
        resp = client.post("/api/v1/send", json={"to": USER, "text": "hi"}, headers={"X-API-Key": "wrong"})
        assert resp.status_code == 401


def test_send_text():
    store = InMemoryMessageStore()
    with _client(store=store) as client:
        resp = client.post("/api/v1/send", json={"to": USER, "text": "hi"}, headers=KEY)
    assert resp.status_code == 200
    assert resp.json() == {"status": "sent", "records": 1}
    assert [r.type for r in store.records] == [RecordType.TEXT]


def test_send_reports_invalid_field():
    with _client() as client:
        resp = client.post(
            "/api/v1/send",
            json={"to": USER, "type": "location", "title": "x", "address": "y", "latitude": 95, "longitude": 0},
            headers=KEY,
        )
    assert resp.status_code == 400
    body = resp.json()
    assert body["field"] == "latitude"
    assert body["issues"]


def test_send_reports_tap_area_issues():
    with _client() as client:
        resp = client.post(
            "/api/v1/send",
            json={
                "to": USER,
                "type": "cardType",
                "altText": "Cards",
                "template": {"type": "carousel", "columns": []},
                "imageUrl": "https://res.cloudinary.com/demo/image/upload/sample.jpg",
                "imageWidth": 1024,
                "imageHeight": 1024,
                "imageAreas": [
                    {
                        "id": "a", "x": -5, "y": 0, "width": 100, "height": 100,
                        "action": {"type": "uri", "uri": "https://example.com"},
                    },
                ],
            },
            headers=KEY,
        )
    assert resp.status_code == 400
    assert resp.json() == {
        "error": "Invalid image areas",
        "field": "imageAreas",
        "issues": ["Area 1: X coordinate out of bounds"],
    }


def test_send_upstream_rejection():
    store = InMemoryMessageStore()
    with _client(push_status=500, store=store) as client:
        resp = client.post("/api/v1/send", json={"to": USER, "text": "hi"}, headers=KEY)
    assert resp.status_code == 502
    assert store.records == []


def test_partial_batch_reports_index():
    class StickerlessStore(InMemoryMessageStore):
        async def create(self, *, user_id, type, content, **kwargs):
            if type is RecordType.STICKER:
                raise ConnectionError("db down")
            return await super().create(user_id=user_id, type=type, content=content, **kwargs)

    with _client(store=StickerlessStore()) as client:
        resp = client.post(
            "/api/v1/send",
            json={
                "to": USER,
                "messages": [
                    {"type": "text", "text": "one"},
                    {"type": "sticker", "packageId": "1", "stickerId": "2"},
                ],
            },
            headers=KEY,
        )
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to send message", "index": 1, "committed": 1}


def test_health_and_metrics():
    with _client() as client:
        client.post("/api/v1/send", json={"to": USER, "text": "hi"}, headers=KEY)
        health = client.get("/health").json()
        metrics = client.get("/metrics").json()
        root = client.get("/").json()

    assert health["status"] == "healthy"
    assert set(health["connectors"]) == {"line", "store", "realtime", "cloudinary"}
    assert metrics["total_sends"] == 1
    assert metrics["message_types"] == {"text": 1}
    assert root["name"] == "linepush"


class _Stub(ServiceConnector):
    def __init__(self, name: str, ok: bool) -> None:
        self._name = name
        self._ok = ok

    async def health_check(self) -> dict:
        return healthy() if self._ok else unhealthy("down")

    def name(self) -> str:
        return self._name


@pytest.mark.asyncio
async def test_optional_connector_down_is_degraded():
    result = await aggregate_health({"line": _Stub("line", True), "cloudinary": _Stub("cloudinary", False)})
    assert result["status"] == "degraded"


@pytest.mark.asyncio
async def test_store_down_is_unhealthy():
    result = await aggregate_health({"line": _Stub("line", True), "store": _Stub("store", False)})
    assert result["status"] == "unhealthy"


@pytest.mark.parametrize("suffix,width", [("1040", 1040), ("700", 700), ("460", 460), ("300", 300)])
def test_imagemap_size_suffix_redirects(suffix, width):
    with _client() as client:
        resp = client.get(f"/api/v1/imagemap/sample/{suffix}", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == f"https://res.cloudinary.com/demo/image/upload/c_scale,w_{width}/sample"


def test_imagemap_without_suffix_uses_full_width():
    with _client() as client:
        resp = client.get("/api/v1/imagemap/sample", follow_redirects=False)
    assert resp.headers["location"] == "https://res.cloudinary.com/demo/image/upload/c_scale,w_1040/sample"


def test_imagemap_composed_path_keeps_layer_encoding():
    path = "c_fill,h_1024,q_auto:good,w_1024/l_text:Noto%20Sans%20JP_40_bold_center:A%252CB,x_5,y_5/v3/promo.summer"
    with _client() as client:
        resp = client.get(f"/api/v1/imagemap/{path}/460", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == (
        "https://res.cloudinary.com/demo/image/upload/"
        "c_fill,h_1024,q_auto:good,w_1024/l_text:Noto%20Sans%20JP_40_bold_center:A%252CB,x_5,y_5/"
        "c_scale,w_460/v3/promo.summer"
    )


def test_imagemap_missing_identifier():
    with _client() as client:
        resp = client.get("/api/v1/imagemap/700", follow_redirects=False)
    assert resp.status_code == 400


def test_imagemap_needs_cloud_name():
    with _client(cloud_name="") as client:
        resp = client.get("/api/v1/imagemap/sample/700", follow_redirects=False)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Cloudinary not configured"}
