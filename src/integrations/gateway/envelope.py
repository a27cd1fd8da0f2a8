"""Canonical JSON + base64 envelope codec."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from src.integrations.gateway.errors import EmptyGatewayResponseError, SerializationFault

M = TypeVar("M", bound=BaseModel)


def _payload(request: Union[BaseModel, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(request, BaseModel):
        return request.model_dump(mode="json", by_alias=True, exclude_none=True)
    return {k: v for k, v in dict(request).items() if v is not None}


def canonical_json(request: Union[BaseModel, Mapping[str, Any]]) -> str:
    """Compact, key-sorted JSON with ``None`` fields dropped."""
    try:
        return json.dumps(_payload(request), separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise SerializationFault(f"Request could not be serialized: {exc}") from exc


def encode(request: Union[BaseModel, Mapping[str, Any]]) -> str:
    """Return the base64 envelope for a request. The signature covers exactly this string."""
    return base64.b64encode(canonical_json(request).encode("utf-8")).decode("ascii")


def wrap(envelope: str) -> Dict[str, str]:
    return {"request": envelope}


def decode(raw_body: Union[str, bytes, None], shape: Type[M]) -> M:
    if raw_body is None:
        raise EmptyGatewayResponseError("Gateway returned an empty response")
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8", errors="replace")
    if not raw_body.strip():
        raise EmptyGatewayResponseError("Gateway returned an empty response")
    try:
        return shape.model_validate_json(raw_body)
    except ValidationError as exc:
        raise SerializationFault(f"Malformed gateway response: {exc.error_count()} error(s)") from exc


def decode_base64_json(body: str) -> Dict[str, Any]:
    """Decode a base64 body into a JSON object, as sent in callbacks."""
    try:
        text = base64.b64decode(body, validate=True).decode("utf-8")
        document = json.loads(text)
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as exc:
        raise SerializationFault("Malformed payload") from exc
    if not isinstance(document, dict):
        raise SerializationFault("Malformed payload: expected a JSON object")
    return document
