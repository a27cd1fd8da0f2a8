"""Fault taxonomy for gateway calls and a classifier that maps raw failures onto it."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from src.integrations.contracts.gateway import ResponseCode


_HTTP_STATUS_BY_CODE = {
    ResponseCode.BAD_REQUEST: 400,
    ResponseCode.DUPLICATE_TXN_REQUEST: 400,
    ResponseCode.INVALID_TRANSACTION_ID: 400,
    ResponseCode.EXCESS_REFUND_AMOUNT: 400,
    ResponseCode.SERIALIZATION_ERROR: 400,
    ResponseCode.UNAUTHORIZED: 401,
    ResponseCode.AUTHORIZATION_FAILED: 401,
    ResponseCode.INVALID_SIGNATURE: 401,
    ResponseCode.TRANSACTION_NOT_FOUND: 404,
}


class GatewayError(Exception):
    """Base class for every fault raised by the gateway integration."""

    default_code = ResponseCode.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ResponseCode] = None,
        instrument: Optional[str] = None,
        operation: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.instrument = instrument
        self.operation = operation
        self.payload = payload or {}

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS_BY_CODE.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "code": self.code.value, "message": self.message}


class SerializationFault(GatewayError):
    default_code = ResponseCode.SERIALIZATION_ERROR


class EmptyGatewayResponseError(SerializationFault):
    """The gateway answered 2xx with no body at all."""

    default_code = ResponseCode.EMPTY_GATEWAY_RESPONSE


class TransportFault(GatewayError):
    default_code = ResponseCode.SERVICE_UNAVAILABLE


class GatewayHTTPError(TransportFault):
    """Non-2xx HTTP response from the gateway."""

    def __init__(self, status_code: int, body: str, *, url: str = "", **kwargs: Any) -> None:
        super().__init__(f"Gateway API Error: HTTP {status_code} - {body}", **kwargs)
        self.status_code = status_code
        self.body = body or ""
        self.url = url


class RetryExhaustedError(TransportFault):
    def __init__(self, attempts: int, last_error: BaseException, **kwargs: Any) -> None:
        super().__init__(
            f"Max retry attempts ({attempts}) exceeded. Last error: {last_error}",
            **kwargs,
        )
        self.attempts = attempts
        self.last_error = last_error


class GatewayBusinessFault(GatewayError):
    """The gateway rejected the call on business grounds. Never retried."""


class PersistenceFault(GatewayError):
    default_code = ResponseCode.PERSISTENCE_ERROR


class SecurityFault(GatewayError):
    default_code = ResponseCode.INVALID_SIGNATURE


class SignatureError(GatewayError):
    """Signing could not be performed (bad configuration)."""


class TransactionIdCollisionError(GatewayError):
    """No free transaction id could be reserved within the configured attempts."""


# ------------------------------------------------------------------ #
# Classification
# ------------------------------------------------------------------ #

_BUSINESS_CODES = {
    ResponseCode.BAD_REQUEST,
    ResponseCode.UNAUTHORIZED,
    ResponseCode.AUTHORIZATION_FAILED,
    ResponseCode.TRANSACTION_NOT_FOUND,
    ResponseCode.DUPLICATE_TXN_REQUEST,
    ResponseCode.INVALID_TRANSACTION_ID,
    ResponseCode.PAYMENT_ALREADY_COMPLETED,
    ResponseCode.EXCESS_REFUND_AMOUNT,
    ResponseCode.WALLET_NOT_ACTIVATED,
}

_DEFAULT_MESSAGES = {
    ResponseCode.DUPLICATE_TXN_REQUEST: "Duplicate transaction request",
    ResponseCode.UNAUTHORIZED: "Unauthorized access to gateway",
    ResponseCode.AUTHORIZATION_FAILED: "Gateway rejected the request signature",
    ResponseCode.TRANSACTION_NOT_FOUND: "Transaction not found",
    ResponseCode.BAD_REQUEST: "Bad request",
}


def _body_fields(body: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(body)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _code_from_http_error(error: GatewayHTTPError) -> Optional[ResponseCode]:
    code = ResponseCode.parse(_body_fields(error.body).get("code"))
    if code in _BUSINESS_CODES:
        return code

    status = error.status_code
    if status == 400 and ResponseCode.DUPLICATE_TXN_REQUEST.value in error.body:
        return ResponseCode.DUPLICATE_TXN_REQUEST
    if status in (401, 403):
        return ResponseCode.UNAUTHORIZED
    if status == 404:
        return ResponseCode.TRANSACTION_NOT_FOUND
    if 400 <= status < 500:
        return ResponseCode.BAD_REQUEST
    return None


def _code_from_text(text: str) -> Optional[ResponseCode]:
    upper = text.upper()
    if ResponseCode.DUPLICATE_TXN_REQUEST.value in upper:
        return ResponseCode.DUPLICATE_TXN_REQUEST
    if ResponseCode.UNAUTHORIZED.value in upper:
        return ResponseCode.UNAUTHORIZED
    if "404" in upper or "NOT FOUND" in upper or "NOT_FOUND" in upper:
        return ResponseCode.TRANSACTION_NOT_FOUND
    if "400" in upper or "BAD REQUEST" in upper or "BAD_REQUEST" in upper:
        return ResponseCode.BAD_REQUEST
    return None


def classify_failure(
    exc: BaseException,
    *,
    instrument: Optional[str] = None,
    operation: Optional[str] = None,
) -> GatewayError:
    """Map a failure raised while calling the gateway onto the fault taxonomy.

    The gateway's structured ``code`` field is consulted first; the HTTP status
    and free-text matching are fallbacks. Transport faults that carry no business
    meaning are returned unchanged, with instrument context attached.
    """
    context = {"instrument": instrument, "operation": operation}

    if isinstance(exc, GatewayError) and not isinstance(exc, TransportFault):
        exc.instrument = exc.instrument or instrument
        exc.operation = exc.operation or operation
        return exc

    http_error: Optional[GatewayHTTPError] = None
    if isinstance(exc, GatewayHTTPError):
        http_error = exc
    elif isinstance(exc, RetryExhaustedError) and isinstance(exc.last_error, GatewayHTTPError):
        http_error = exc.last_error

    if http_error is not None:
        code = _code_from_http_error(http_error)
        if code is not None:
            message = _body_fields(http_error.body).get("message") or _DEFAULT_MESSAGES.get(code, str(http_error))
            return GatewayBusinessFault(
                str(message),
                code=code,
                payload={"status_code": http_error.status_code, "body": http_error.body},
                **context,
            )

    if isinstance(exc, TransportFault):
        exc.instrument = exc.instrument or instrument
        exc.operation = exc.operation or operation
        return exc

    code = _code_from_text(str(exc))
    if code is not None:
        return GatewayBusinessFault(_DEFAULT_MESSAGES[code], code=code, **context)

    return GatewayError(f"Unexpected error: {exc}", code=ResponseCode.INTERNAL_SERVER_ERROR, **context)
