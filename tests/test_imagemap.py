"""Test imagemap conversion and base URL handling."""

import pytest

from linepush.errors import ValidationError
from linepush.messages.imagemap import DEFAULT_ALT_TEXT, convert_areas_to_imagemap, strip_extension
from linepush.messages.models import TapArea

COMPOSED = "https://res.cloudinary.com/demo/image/upload/v1/composed.png"


def _area(action: dict, x=0, y=0, width=512, height=512, id="a") -> TapArea:
    return TapArea(id=id, x=x, y=y, width=width, height=height, label="Tap", action=action)


def _areas() -> list[TapArea]:
    return [
        _area({"type": "uri", "label": "Shop", "uri": "https://example.com"}, id="a1"),
        _area({"type": "message", "label": "Hi", "text": "Hello from area 2"}, x=512, id="a2"),
    ]


def test_strip_extension_keeps_query_and_fragment():
    assert strip_extension("https://host/a/b/img.jpg?x=1#y") == "https://host/a/b/img?x=1#y"


def test_strip_extension_is_idempotent():
    once = strip_extension("https://host/a/b/img.jpg?x=1#y")
    assert strip_extension(once) == once


def test_strip_extension_drops_trailing_slash():
    assert strip_extension("https://host/a/b/img/") == "https://host/a/b/img"


def test_strip_extension_leaves_dotted_directories_alone():
    assert strip_extension("https://host/v1.2/img") == "https://host/v1.2/img"


def test_convert_builds_imagemap():
    result = convert_areas_to_imagemap(_areas(), COMPOSED, 1024, 1024, alt_text="Product Card")
    wire = result.to_wire()
    assert wire["type"] == "imagemap"
    assert wire["baseUrl"] == "https://res.cloudinary.com/demo/image/upload/v1/composed"
    assert wire["altText"] == "Product Card"
    assert wire["baseSize"] == {"width": 1024, "height": 1024}
    assert wire["actions"] == [
        {"type": "uri", "linkUri": "https://example.com", "area": {"x": 0, "y": 0, "width": 512, "height": 512}},
        {"type": "message", "text": "Hello from area 2", "area": {"x": 512, "y": 0, "width": 512, "height": 512}},
    ]


def test_postback_keeps_its_discriminant():
    action = {"type": "postback", "label": "Buy", "data": "action=buy&item_id=123", "displayText": "Purchased!"}
    result = convert_areas_to_imagemap([_area(action)], COMPOSED, 1024, 1024)
    assert result.actions[0].to_wire() == {
        "type": "postback",
        "data": "action=buy&item_id=123",
        "displayText": "Purchased!",
        "area": {"x": 0, "y": 0, "width": 512, "height": 512},
    }


def test_alt_text_truncated_to_400():
    result = convert_areas_to_imagemap(_areas(), COMPOSED, 1024, 1024, alt_text="x" * 500)
    assert result.alt_text == "x" * 400


def test_alt_text_default():
    result = convert_areas_to_imagemap(_areas(), COMPOSED, 1024, 1024)
    assert result.alt_text == DEFAULT_ALT_TEXT


def test_empty_areas_rejected():
    with pytest.raises(ValidationError) as exc:
        convert_areas_to_imagemap([], COMPOSED, 1024, 1024)
    assert exc.value.field == "imageAreas"


def test_too_many_areas_rejected():
    areas = [_area({"type": "message", "text": "t"}, width=10, height=10, id=str(i)) for i in range(51)]
    with pytest.raises(ValidationError, match="Maximum 50"):
        convert_areas_to_imagemap(areas, COMPOSED, 1024, 1024)


@pytest.mark.parametrize("width,height", [(0, 1024), (3000, 1024), (1024, 2501)])
def test_image_dimensions_rejected(width, height):
    with pytest.raises(ValidationError, match="Image dimensions"):
        convert_areas_to_imagemap(_areas(), COMPOSED, width, height)
