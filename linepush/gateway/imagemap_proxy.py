"""Imagemap image route: serves LINE's ``{baseUrl}/{size}`` fetches.

LINE appends one of 1040, 700, 460 or 300 to an imagemap's base URL. The
route strips that suffix and redirects to the Cloudinary asset scaled to the
requested width.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from linepush.connectors.cloudinary import IMAGEMAP_SIZES, PROXY_PATH, CloudinaryCompositor
from linepush.errors import ConversionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["imagemap"])

DEFAULT_SIZE = IMAGEMAP_SIZES[0]

_compositor: CloudinaryCompositor | None = None


def set_compositor(compositor: CloudinaryCompositor) -> None:
    global _compositor
    _compositor = compositor


def split_size(asset_path: str) -> tuple[str, int]:
    """``"folder/sample/700"`` → ``("folder/sample", 700)``; no suffix means 1040."""
    head, _, last = asset_path.rstrip("/").rpartition("/")
    if last.isdigit() and int(last) in IMAGEMAP_SIZES:
        return head, int(last)
    return asset_path.rstrip("/"), DEFAULT_SIZE


@router.get("/imagemap/{path:path}")
async def imagemap_image(path: str, request: Request):
    if not _compositor:
        raise HTTPException(503, "Gateway not initialized")
    if not _compositor.cloud_name:
        return JSONResponse(status_code=500, content={"error": "Cloudinary not configured"})

    # Layer text stays percent-encoded; the decoded ``path`` would lose that
    raw_path = request.scope.get("raw_path", b"").decode("latin-1")
    _, marker, asset_path = raw_path.partition(PROXY_PATH)
    if not marker:
        asset_path = path

    asset_path, size = split_size(asset_path)
    if not asset_path:
        return JSONResponse(status_code=400, content={"error": "Missing image identifier"})
    try:
        url = _compositor.resized_url(asset_path, size)
    except ConversionError as e:
        return JSONResponse(status_code=400, content=e.to_dict())

    logger.debug("Imagemap fetch at width %d redirected", size)
    return RedirectResponse(url, status_code=302)
