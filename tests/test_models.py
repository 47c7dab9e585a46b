"""Test request parsing and wire serialization."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from linepush.errors import ValidationError
from linepush.messages.models import (
    BatchRequest,
    CardTypeRequest,
    LegacyTextRequest,
    NormalizedPayload,
    RichMessageRequest,
    StickerMessage,
    TemplateData,
    TextMessage,
    TextRequest,
    VideoRequest,
    parse_request,
)

USER = "U1234567890abcdef"


def test_text_shape():
    request = parse_request({"to": USER, "text": "hi"})
    assert isinstance(request, TextRequest)
    assert request.text == "hi"


def test_legacy_message_shape():
    request = parse_request({"to": USER, "message": "hi"})
    assert isinstance(request, LegacyTextRequest)


def test_explicit_text_type():
    assert isinstance(parse_request({"to": USER, "type": "text", "text": "hi"}), TextRequest)


def test_batch_shape():
    request = parse_request({
        "to": USER,
        "messages": [
            {"type": "text", "text": "one"},
            {"type": "sticker", "packageId": "446", "stickerId": "1988"},
        ],
    })
    assert isinstance(request, BatchRequest)
    assert [m.type for m in request.messages] == ["text", "sticker"]


def test_rich_message_shape():
    request = parse_request({
        "to": USER,
        "type": "richMessage",
        "baseUrl": "https://cdn.example.com/rich",
        "altText": "Rich",
        "baseSize": {"width": 1040, "height": 1040},
        "actions": [
            {"type": "uri", "linkUri": "https://example.com", "area": {"x": 0, "y": 0, "width": 520, "height": 1040}},
        ],
    })
    assert isinstance(request, RichMessageRequest)
    assert request.base_size.width == 1040


def test_card_type_without_areas():
    request = parse_request({
        "to": USER,
        "type": "cardType",
        "altText": "Cards",
        "template": {"type": "carousel", "columns": []},
    })
    assert isinstance(request, CardTypeRequest)
    assert not request.has_tap_areas


def test_unknown_shape_names_type_field():
    with pytest.raises(ValidationError) as exc:
        parse_request({"to": USER, "type": "hologram"})
    assert exc.value.field == "type"


def test_body_must_be_object():
    with pytest.raises(ValidationError):
        parse_request(["not", "an", "object"])


def test_missing_recipient():
    with pytest.raises(ValidationError) as exc:
        parse_request({"text": "hi"})
    assert exc.value.field == "to"


def test_video_requires_https_mp4():
    with pytest.raises(ValidationError) as exc:
        parse_request({
            "to": USER,
            "type": "video",
            "videoUrl": "http://cdn.example.com/clip.mp4",
            "previewUrl": "https://cdn.example.com/clip.jpg",
        })
    assert exc.value.field == "videoUrl"
    assert any("HTTPS" in issue for issue in exc.value.errors)


def test_video_accepts_jpeg_preview():
    request = parse_request({
        "to": USER,
        "type": "video",
        "videoUrl": "https://cdn.example.com/clip.MP4",
        "previewUrl": "https://cdn.example.com/clip.jpeg",
    })
    assert isinstance(request, VideoRequest)


def test_location_latitude_bounds():
    with pytest.raises(ValidationError) as exc:
        parse_request({
            "to": USER, "type": "location", "title": "Office", "address": "Tokyo",
            "latitude": 91, "longitude": 139.7,
        })
    assert exc.value.field == "latitude"


def test_template_kind_checked():
    with pytest.raises(ValidationError) as exc:
        parse_request({"to": USER, "type": "template", "altText": "x", "template": {"type": "flex"}})
    assert exc.value.field == "template"


def test_error_dict_lists_issues():
    with pytest.raises(ValidationError) as exc:
        parse_request({"to": USER, "type": "audio", "audioUrl": "https://a/b.m4a", "duration": 0})
    report = exc.value.to_dict()
    assert report["field"] == "duration"
    assert report["issues"]


def test_wire_uses_camel_case():
    assert StickerMessage(package_id="446", sticker_id="1988").to_wire() == {
        "type": "sticker",
        "packageId": "446",
        "stickerId": "1988",
    }


def test_payload_needs_messages_or_template():
    with pytest.raises(PydanticValidationError):
        NormalizedPayload(to=USER)


def test_payload_rejects_both_messages_and_template():
    with pytest.raises(PydanticValidationError):
        NormalizedPayload(
            to=USER,
            messages=[TextMessage(text="hi")],
            is_template=True,
            template_data=TemplateData(alt_text="x", template={"type": "buttons"}),
        )


def test_template_payload_wire_messages():
    payload = NormalizedPayload(
        to=USER,
        is_template=True,
        template_data=TemplateData(alt_text="Menu", template={"type": "buttons", "text": "Pick"}),
    )
    assert payload.wire_messages() == [
        {"type": "template", "altText": "Menu", "template": {"type": "buttons", "text": "Pick"}},
    ]
