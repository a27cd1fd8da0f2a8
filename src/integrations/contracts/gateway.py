"""
Gateway contracts.

Request/response shapes exchanged with the mobile-payment gateway, plus the
decoded callback payload. Field names are snake_case in Python and camelCase
on the wire (``merchant_id`` <-> ``merchantId``).

Caller-facing amounts are major units. The orchestrator converts them to minor
units before a request is encoded, and converts returned amounts back with
``to_major_units()`` before anything reaches the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Amount = Union[int, float]


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ResponseCode(str, Enum):
    SUCCESS = "SUCCESS"
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"      # incorrect X-VERIFY on our request
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    DUPLICATE_TXN_REQUEST = "DUPLICATE_TXN_REQUEST"
    INVALID_TRANSACTION_ID = "INVALID_TRANSACTION_ID"
    PAYMENT_ALREADY_COMPLETED = "PAYMENT_ALREADY_COMPLETED"
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
    PAYMENT_ERROR = "PAYMENT_ERROR"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_CANCELLED = "PAYMENT_CANCELLED"
    PAYMENT_DECLINED = "PAYMENT_DECLINED"
    TIMED_OUT = "TIMED_OUT"
    EXCESS_REFUND_AMOUNT = "EXCESS_REFUND_AMOUNT"
    WALLET_NOT_ACTIVATED = "WALLET_NOT_ACTIVATED"
    # Local codes, never sent by the gateway
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    EMPTY_GATEWAY_RESPONSE = "EMPTY_GATEWAY_RESPONSE"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"

    @classmethod
    def parse(cls, value: Any) -> Optional["ResponseCode"]:
        """Return the matching code, or None for anything unrecognised."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class TransactionState(str, Enum):
    NEW = "NEW"
    SENT = "SENT"
    SUCCEEDED = "SUCCEEDED"
    FAILED_RETRYABLE = "FAILED_RETRYABLE"
    FAILED_TERMINAL = "FAILED_TERMINAL"


# ---------------------------------------------------------------------------
# Base models
# ---------------------------------------------------------------------------

class GatewayModel(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True, extra="ignore")


class GatewayRequest(GatewayModel):
    """Fields shared by every caller request. ``provider`` travels as a header, not in the body."""

    merchant_id: str
    provider: str = Field(..., exclude=True)


# ---------------------------------------------------------------------------
# Caller requests (already validated upstream)
# ---------------------------------------------------------------------------

class DqrInitRequest(GatewayRequest):
    amount: Amount
    store_id: Optional[str] = None
    terminal_id: Optional[str] = None
    expires_in: Optional[int] = None
    transaction_id: Optional[str] = None
    merchant_order_id: Optional[str] = None


class EdcInitRequest(GatewayRequest):
    amount: Amount
    store_id: str
    terminal_id: str
    transaction_id: Optional[str] = None
    order_id: Optional[str] = None
    integration_mapping_type: Optional[str] = None
    payment_modes: Optional[List[str]] = None
    time_allowed_for_handover_to_terminal_seconds: Optional[int] = None


class PaymentLinkInitRequest(GatewayRequest):
    amount: Amount
    mobile_number: str
    message: Optional[str] = None
    expires_in: Optional[int] = None
    store_id: Optional[str] = None
    terminal_id: Optional[str] = None
    short_name: Optional[str] = None
    sub_merchant_id: Optional[str] = None
    transaction_id: Optional[str] = None
    merchant_order_id: Optional[str] = None


class CollectInitRequest(GatewayRequest):
    amount: Amount
    instrument_type: str
    instrument_reference: str
    message: Optional[str] = None
    email: Optional[str] = None
    expires_in: Optional[int] = None
    short_name: Optional[str] = None
    store_id: Optional[str] = None
    terminal_id: Optional[str] = None
    transaction_id: Optional[str] = None
    merchant_order_id: Optional[str] = None


class CancelRequest(GatewayRequest):
    transaction_id: str
    reason: Optional[str] = None


class StatusRequest(GatewayRequest):
    transaction_id: str


class RefundRequest(GatewayRequest):
    original_transaction_id: str
    amount: Amount
    message: Optional[str] = None
    transaction_id: Optional[str] = None
    merchant_order_id: Optional[str] = None


class StaticQrTransactionListRequest(GatewayRequest):
    size: int = 10
    store_id: Optional[str] = None
    amount: Optional[Amount] = None
    start_timestamp: Optional[int] = None


class StaticQrMetadataRequest(GatewayRequest):
    gateway_transaction_id: str = Field(..., alias="phonepeTransactionId")
    schema_version_number: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Gateway responses
# ---------------------------------------------------------------------------

class ResponseModel(GatewayModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True, extra="allow")


class PaymentModeBreakdown(ResponseModel):
    mode: Optional[str] = None
    type: Optional[str] = None
    amount: Optional[Amount] = None
    utr: Optional[str] = None

    def to_major_units(self, convert: Callable[[Amount], Amount]) -> "PaymentModeBreakdown":
        if self.amount is None:
            return self
        return self.model_copy(update={"amount": convert(self.amount)})


class TransactionData(ResponseModel):
    merchant_id: Optional[str] = None
    transaction_id: Optional[str] = None
    provider_reference_id: Optional[str] = None
    order_id: Optional[str] = None
    amount: Optional[Amount] = None
    payment_state: Optional[str] = None
    pay_response_code: Optional[str] = None
    payment_instrument: Optional[Dict[str, Any]] = None
    payment_modes: Optional[List[PaymentModeBreakdown]] = None
    transaction_context: Optional[Dict[str, Any]] = None
    transaction_date: Optional[str] = None
    qr_string: Optional[str] = None
    upi_intent: Optional[str] = None
    pay_link: Optional[str] = None
    mobile_number: Optional[str] = None
    store_id: Optional[str] = None
    terminal_id: Optional[str] = None

    def to_major_units(self, convert: Callable[[Amount], Amount]) -> "TransactionData":
        update: Dict[str, Any] = {}
        if self.amount is not None:
            update["amount"] = convert(self.amount)
        if self.payment_modes:
            update["payment_modes"] = [m.to_major_units(convert) for m in self.payment_modes]
        return self.model_copy(update=update) if update else self


class TransactionListData(ResponseModel):
    result_count: Optional[int] = None
    start_timestamp: Optional[int] = None
    end_timestamp: Optional[int] = None
    transactions: List[TransactionData] = Field(default_factory=list)

    def to_major_units(self, convert: Callable[[Amount], Amount]) -> "TransactionListData":
        return self.model_copy(update={"transactions": [t.to_major_units(convert) for t in self.transactions]})


class MetadataData(ResponseModel):
    merchant_id: Optional[str] = None
    gateway_transaction_id: Optional[str] = Field(default=None, alias="phonepeTransactionId")
    schema_version_number: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    result_count: Optional[int] = None


class GatewayResponse(ResponseModel):
    """Generic ``{success, code, message, data}`` wrapper returned by every gateway endpoint."""

    success: bool = False
    code: Optional[str] = None
    message: Optional[str] = None
    data: Optional[Any] = None

    def to_major_units(self, convert: Callable[[Amount], Amount]) -> "GatewayResponse":
        data = self.data
        if data is None or not hasattr(data, "to_major_units"):
            return self
        return self.model_copy(update={"data": data.to_major_units(convert)})

    @property
    def response_code(self) -> Optional[ResponseCode]:
        return ResponseCode.parse(self.code)


class TransactionResponse(GatewayResponse):
    data: Optional[TransactionData] = None


class TransactionListResponse(GatewayResponse):
    data: Optional[TransactionListData] = None


class MetadataResponse(GatewayResponse):
    data: Optional[MetadataData] = None


# ---------------------------------------------------------------------------
# Callbacks
# ---------------------------------------------------------------------------

class CallbackRequest(BaseModel):
    """Body the gateway POSTs to the webhook: a single base64 ``response`` field."""

    response: str


class CallbackPayload(BaseModel):
    """Sparse, trusted view of a verified callback body."""

    success: Optional[bool] = None
    code: Optional[str] = None
    message: Optional[str] = None
    transaction_id: Optional[str] = None
    merchant_id: Optional[str] = None
    provider_reference_id: Optional[str] = None
    amount: Optional[Amount] = None
    payment_state: Optional[str] = None
    pay_response_code: Optional[str] = None
    transaction_context: Dict[str, str] = Field(default_factory=dict)
    payment_modes: List[Dict[str, Any]] = Field(default_factory=list)
    raw_json: str = ""
