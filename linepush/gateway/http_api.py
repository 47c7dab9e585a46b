"""HTTP REST API: POST /api/v1/send accepts every supported request shape."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from linepush.errors import ConversionError, DeliveryError, PersistenceFailure, ValidationError
from linepush.gateway.auth import validate_api_key
from linepush.messages.sender import OutboundSender

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["api"])


class SendResponse(BaseModel):
    status: str = "sent"
    records: int = 0


# The sender and auth settings are injected at app startup
_sender: OutboundSender | None = None
_api_key: str = ""
_require_auth: bool = True


def set_sender(sender: OutboundSender, api_key: str = "", require_auth: bool = True) -> None:
    global _sender, _api_key, _require_auth
    _sender = sender
    _api_key = api_key
    _require_auth = require_auth


@router.post("/send", response_model=SendResponse)
async def send_message(
    body: Any = Body(...),
    x_api_key: str | None = Header(default=None),
):
    if not _sender:
        raise HTTPException(503, "Gateway not initialized")
    if _require_auth and not validate_api_key(x_api_key, _api_key):
        raise HTTPException(401, "Invalid API key")

    try:
        result = await _sender.send(body)
    except (ValidationError, ConversionError) as e:
        logger.info("Rejected send request: %s field=%s", type(e).__name__, e.field)
        return JSONResponse(status_code=400, content=e.to_dict())
    except DeliveryError as e:
        return JSONResponse(status_code=502, content=e.to_dict())
    except PersistenceFailure as e:
        logger.error("Send persisted partially: index=%s committed=%d", e.index, e.committed)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to send message", **{k: v for k, v in e.to_dict().items() if k != "error"}},
        )

    return SendResponse(records=len(result.records))
