"""Cloudinary connector: burns tap-area labels into an image via URL transformations.

Nothing is rasterized here. The derived URL describes a canvas resize plus
one text layer per labelled area; Cloudinary renders it on first fetch.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Sequence, Union
from urllib.parse import urlsplit

import httpx
from cloudinary.utils import cloudinary_url

from linepush.connectors.base import ServiceConnector, healthy
from linepush.errors import ConversionError, PersistenceFailure, UnsupportedOriginError, ValidationError
from linepush.messages.models import TapArea

logger = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = "Noto Sans JP"
MIN_FONT_SIZE = 16
MAX_FONT_SIZE = 64
FONT_SCALE = 0.4

# Imagemap widths LINE requests as ``{baseUrl}/{size}``
IMAGEMAP_SIZES = (1040, 700, 460, 300)
PROXY_PATH = "/api/v1/imagemap/"

# /<cloud>/image/upload/[v<version>/]<public_id>.<ext>
_UPLOAD_PATH = re.compile(r"^/(?P<cloud>[^/]+)/image/upload/(?:v(?P<version>\d+)/)?(?P<asset>.+)$")
_FORMAT = re.compile(r"\.(?P<format>[^/.]+)$")
_VERSION_SEGMENT = re.compile(r"^v(?P<version>\d+)$")


def font_size_for(height: int) -> int:
    """40% of the area height, clamped to 16..64 px."""
    return max(MIN_FONT_SIZE, min(MAX_FONT_SIZE, math.floor(height * FONT_SCALE)))


def label_anchor(area: TapArea) -> tuple[int, int]:
    """Geometric center of the area."""
    return area.x + area.width // 2, area.y + area.height // 2


@dataclass(frozen=True)
class CanvasTransform:
    width: int
    height: int

    def to_options(self) -> dict[str, Any]:
        return {"width": self.width, "height": self.height, "crop": "fill", "quality": "auto:good"}


@dataclass(frozen=True)
class TextOverlayTransform:
    text: str
    font_size: int
    x: int
    y: int
    font_family: str = DEFAULT_FONT_FAMILY

    def to_options(self) -> dict[str, Any]:
        return {
            "overlay": {
                "font_family": self.font_family,
                "font_size": self.font_size,
                "font_weight": "bold",
                "text": self.text,
                "text_align": "center",
            },
            "color": "#FFFFFF",
            "background": "rgb:00000099",
            "border": "8px_solid_rgb:000000A0",
            "gravity": "north_west",
            "x": self.x,
            "y": self.y,
            "flags": "text_no_trim",
        }


Transformation = Union[CanvasTransform, TextOverlayTransform]


@dataclass(frozen=True)
class AssetRef:
    cloud_name: str
    public_id: str
    version: str | None = None
    format: str | None = None


def build_transformations(
    areas: Sequence[TapArea],
    width: int,
    height: int,
    font_family: str = DEFAULT_FONT_FAMILY,
) -> list[Transformation]:
    """Canvas resize first, then one text layer per labelled area in input order."""
    transformations: list[Transformation] = [CanvasTransform(width=width, height=height)]
    for area in areas:
        if not area.label or not area.label.strip():
            continue
        x, y = label_anchor(area)
        transformations.append(
            TextOverlayTransform(
                text=area.label,
                font_size=font_size_for(area.height),
                x=x,
                y=y,
                font_family=font_family,
            )
        )
    return transformations


class CloudinaryCompositor(ServiceConnector):
    """Builds derived-asset URLs on the Cloudinary delivery host.

    With ``proxy_base_url`` set, composed images are addressed through this
    service's imagemap route so LINE's ``{baseUrl}/{size}`` requests resolve.
    """

    def __init__(
        self,
        asset_domain: str = "cloudinary.com",
        delivery_host: str = "res.cloudinary.com",
        font_family: str = DEFAULT_FONT_FAMILY,
        prefetch: bool = True,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
        cloud_name: str = "",
        proxy_base_url: str = "",
    ) -> None:
        self._asset_domain = asset_domain.lower()
        self._delivery_host = delivery_host
        self._font_family = font_family
        self._prefetch_enabled = prefetch
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.cloud_name = cloud_name
        self._proxy_base_url = proxy_base_url.rstrip("/")

    async def connect(self) -> None:
        if self._prefetch_enabled and not self._client:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
            self._owns_client = True

    async def disconnect(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if not self._client:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
            self._owns_client = True
        return self._client

    def is_supported_origin(self, image_url: str) -> bool:
        try:
            hostname = (urlsplit(image_url).hostname or "").lower()
        except ValueError:
            return False
        return hostname == self._asset_domain or hostname.endswith("." + self._asset_domain)

    def extract_asset(self, image_url: str) -> AssetRef:
        """Split an upload URL into cloud, public id, version and format.

        ``https://res.cloudinary.com/demo/image/upload/v1234/folder/sample.jpg``
        → ``AssetRef("demo", "folder/sample", "1234", "jpg")``
        """
        if not self.is_supported_origin(image_url):
            raise UnsupportedOriginError(
                "Only Cloudinary-hosted images are supported for tap-area composition",
                field="imageUrl",
            )
        match = _UPLOAD_PATH.match(urlsplit(image_url).path)
        if not match:
            raise ConversionError("Image URL has no Cloudinary upload path", field="imageUrl")

        asset = match.group("asset").rstrip("/")
        fmt = _FORMAT.search(asset)
        public_id = asset[: fmt.start()] if fmt else asset
        if not public_id:
            raise ConversionError("Image URL has an empty asset identifier", field="imageUrl")
        return AssetRef(
            cloud_name=match.group("cloud"),
            public_id=public_id,
            version=match.group("version"),
            format=fmt.group("format") if fmt else None,
        )

    def _url(self, public_id: str, cloud_name: str, transformation: list[dict], **options: Any) -> str:
        url, _ = cloudinary_url(
            public_id,
            cloud_name=cloud_name,
            secure=True,
            secure_distribution=self._delivery_host,
            type="upload",
            resource_type="image",
            transformation=transformation,
            **options,
        )
        # Layer fonts are emitted verbatim; LINE rejects a base URL containing spaces
        return url.replace(" ", "%20")

    def build_url(self, asset: AssetRef, transformations: Sequence[Transformation]) -> str:
        """Derived URL ending in ``v<version>/<public_id>.<format>``."""
        return self._url(
            asset.public_id,
            asset.cloud_name,
            [t.to_options() for t in transformations],
            version=asset.version or "1",
            format=asset.format,
        )

    def proxied(self, delivery_url: str) -> str:
        """Re-address a delivery URL through the imagemap route."""
        path = urlsplit(delivery_url).path
        _, marker, rest = path.partition("/image/upload/")
        if not marker or not rest:
            raise ConversionError("Composed URL has no Cloudinary upload path", field="imageUrl")
        return f"{self._proxy_base_url}{PROXY_PATH}{rest}"

    def resized_url(self, asset_path: str, width: int) -> str:
        """Delivery URL for ``asset_path`` scaled to ``width``.

        ``asset_path`` is either a bare public id or the part of a derived URL
        after ``/image/upload/``; the resize is chained after any existing
        transformations.
        """
        if not self.cloud_name:
            raise RuntimeError("Cloudinary cloud name is not configured")

        segments = [s for s in asset_path.split("/") if s]
        transforms: list[str] = []
        version: str | None = None
        public = segments
        for index, segment in enumerate(segments):
            match = _VERSION_SEGMENT.match(segment)
            if match:
                transforms, version, public = segments[:index], match.group("version"), segments[index + 1:]
                break
        if not public:
            raise ConversionError("Missing image identifier")

        transformation: list[dict] = []
        if transforms:
            transformation.append({"raw_transformation": "/".join(transforms)})
        transformation.append({"width": width, "crop": "scale"})
        options = {"version": version} if version else {}
        return self._url("/".join(public), self.cloud_name, transformation, **options)

    async def compose(self, image_url: str, areas: Sequence[TapArea], width: int, height: int) -> str:
        """Return the URL of ``image_url`` with every area label burned in.

        With no areas the input URL is returned unchanged and the host is
        never contacted. The result keeps the source format as its extension.
        """
        if not image_url or not image_url.strip():
            raise ValidationError("Image URL is required", field="imageUrl")
        if not areas:
            return image_url

        asset = self.extract_asset(image_url)
        transformations = build_transformations(areas, width, height, self._font_family)
        url = self.build_url(asset, transformations)
        logger.info(
            "Composed %d text layer(s) for %d area(s) on a %dx%d canvas",
            len(transformations) - 1, len(areas), width, height,
        )

        if self._prefetch_enabled:
            await self._prefetch(url)
        return self.proxied(url) if self._proxy_base_url else url

    async def _prefetch(self, url: str) -> None:
        """Ask the host to render the derived asset now instead of on LINE's first fetch."""
        client = self._get_client()
        try:
            resp = await client.head(url)
        except httpx.HTTPError as e:
            logger.warning("Transform host unreachable: %s", type(e).__name__)
            raise PersistenceFailure("Image transformation host unreachable") from e
        if resp.status_code >= 400:
            logger.warning("Transform host rejected derived asset: HTTP %d", resp.status_code)
            raise PersistenceFailure(f"Image transformation failed with HTTP {resp.status_code}")

    async def health_check(self) -> dict:
        return healthy(
            asset_domain=self._asset_domain,
            prefetch=self._prefetch_enabled,
            proxy=bool(self._proxy_base_url),
        )

    def name(self) -> str:
        return "cloudinary"
