"""Ack response envelope helpers."""
from __future__ import annotations

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .models import Ack


def _plain(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    return payload


def send(
    payload: Any,
    payload_type: str = "",
    location: str = "",
    status_code: int = 200,
) -> JSONResponse:
    """Wrap a successful result in an ack envelope."""
    ack = Ack(
        success=True,
        server_code=status_code,
        location=location,
        payload_type=payload_type,
        payload=_plain(payload),
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(ack, by_alias=True))


def error(
    status_code: int,
    error_code: str,
    message: str,
    payload: Any = None,
    payload_type: str = "ErrorMessage",
    location: str = "",
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Build an error ack. Never includes tracebacks."""
    ack = Ack(
        success=False,
        server_code=status_code,
        location=location,
        payload_type=payload_type,
        payload=payload,
        error_code=error_code,
        error_message=message,
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(ack, by_alias=True),
        headers=headers,
    )
