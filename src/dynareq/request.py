"""Request payload encoding and diagnostic rendering."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Union

from pydantic import BaseModel

# A structured descriptor (mapping or pydantic model) or an already serialized body.
RequestPayload = Union[Mapping[str, object], BaseModel, bytes, bytearray]


def encode_request(request: RequestPayload) -> bytes:
    """Serialize ``request`` into the JSON body sent on the wire.

    Raises ``TypeError`` or ``ValueError`` when the payload cannot be serialized.
    """
    if isinstance(request, (bytes, bytearray)):
        return bytes(request)
    if isinstance(request, BaseModel):
        return request.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    if isinstance(request, Mapping):
        return json.dumps(dict(request), separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    raise TypeError(f"Unsupported request payload type: {type(request)!r}")


def _compact_text(request: RequestPayload) -> str:
    if isinstance(request, (bytes, bytearray)):
        return bytes(request).decode("utf-8", errors="replace")
    return encode_request(request).decode("utf-8")


def render_for_diagnostics(request: RequestPayload, *, request_id: str = "") -> str:
    """Render ``request`` for an operator log line. Never raises.

    Tab-indented JSON when possible, the compact serialized text when it does
    not parse as JSON, and an identifier-only line when it cannot be
    serialized at all.
    """
    try:
        compact = _compact_text(request)
    except Exception:
        return f"(unserializable request) (reqid:{request_id})"

    try:
        return json.dumps(json.loads(compact), indent="\t", ensure_ascii=False)
    except (TypeError, ValueError):
        return compact
