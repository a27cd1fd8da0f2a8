"""
Instrument and phase descriptors.

Each payment instrument (dynamic QR, static QR, card terminal, payment link,
collect) is a set of phases. A phase descriptor holds everything the
orchestrator needs to drive one call: verb, whether the body is enveloped,
which headers to send, where the generated transaction id goes, which request
fields are amounts, and the response shape. Path templates live in
configuration, keyed by instrument and phase name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple, Type

from pydantic import BaseModel

from src.integrations.contracts.gateway import (
    CancelRequest,
    CollectInitRequest,
    DqrInitRequest,
    EdcInitRequest,
    GatewayResponse,
    MetadataResponse,
    PaymentLinkInitRequest,
    RefundRequest,
    StaticQrMetadataRequest,
    StaticQrTransactionListRequest,
    StatusRequest,
    TransactionListResponse,
    TransactionResponse,
)


@dataclass(frozen=True)
class PhaseDescriptor:
    name: str
    request_model: Type[BaseModel]
    response_model: Type[GatewayResponse] = TransactionResponse
    method: str = "POST"
    enveloped: bool = True
    generates_transaction_id: bool = False
    # Request fields overwritten with the generated transaction id
    transaction_id_fields: Tuple[str, ...] = ()
    amount_fields: Tuple[str, ...] = ()
    # Fields filled from instrument configuration when the caller leaves them out
    config_fields: Tuple[str, ...] = ()
    constants: Mapping[str, Any] = field(default_factory=dict)
    send_callback_url: bool = False
    send_call_mode: bool = False
    send_merchant_id: bool = False

    @property
    def route(self) -> str:
        return self.name.replace("_", "/") if self.name.startswith("transaction_") else self.name


@dataclass(frozen=True)
class InstrumentDescriptor:
    name: str
    label: str
    phases: Dict[str, PhaseDescriptor]

    @property
    def route(self) -> str:
        return self.name.replace("_", "-")

    def phase(self, name: str) -> PhaseDescriptor:
        try:
            return self.phases[name]
        except KeyError:
            raise ValueError(f"Instrument '{self.name}' does not support phase '{name}'") from None


# ------------------------------------------------------------------ #
# Shared phase shapes
# ------------------------------------------------------------------ #

def _cancel() -> PhaseDescriptor:
    return PhaseDescriptor(
        name="cancel",
        request_model=CancelRequest,
        enveloped=False,
    )


def _refund() -> PhaseDescriptor:
    return PhaseDescriptor(
        name="refund",
        request_model=RefundRequest,
        generates_transaction_id=True,
        transaction_id_fields=("transaction_id", "merchant_order_id"),
        amount_fields=("amount",),
        send_callback_url=True,
    )


def _status() -> PhaseDescriptor:
    return PhaseDescriptor(
        name="status",
        request_model=StatusRequest,
        method="GET",
        enveloped=False,
        send_callback_url=True,
        send_merchant_id=True,
    )


INSTRUMENTS: Dict[str, InstrumentDescriptor] = {
    "dqr": InstrumentDescriptor(
        name="dqr",
        label="Dynamic QR",
        phases={
            "init": PhaseDescriptor(
                name="init",
                request_model=DqrInitRequest,
                generates_transaction_id=True,
                transaction_id_fields=("transaction_id", "merchant_order_id"),
                amount_fields=("amount",),
                config_fields=("expires_in",),
                send_callback_url=True,
                send_call_mode=True,
            ),
            "cancel": _cancel(),
            "refund": _refund(),
            "status": _status(),
        },
    ),
    "static_qr": InstrumentDescriptor(
        name="static_qr",
        label="Static QR",
        phases={
            "transaction_list": PhaseDescriptor(
                name="transaction_list",
                request_model=StaticQrTransactionListRequest,
                response_model=TransactionListResponse,
                amount_fields=("amount",),
                send_callback_url=True,
                send_call_mode=True,
            ),
            "metadata": PhaseDescriptor(
                name="metadata",
                request_model=StaticQrMetadataRequest,
                response_model=MetadataResponse,
            ),
        },
    ),
    "edc": InstrumentDescriptor(
        name="edc",
        label="Card terminal (EDC)",
        phases={
            "init": PhaseDescriptor(
                name="init",
                request_model=EdcInitRequest,
                generates_transaction_id=True,
                transaction_id_fields=("transaction_id", "order_id"),
                amount_fields=("amount",),
                constants={
                    "integration_mapping_type": "ONE_TO_ONE",
                    "payment_modes": ["CARD", "DQR"],
                    "time_allowed_for_handover_to_terminal_seconds": 60,
                },
                send_callback_url=True,
                send_call_mode=True,
            ),
            "status": _status(),
        },
    ),
    "payment_link": InstrumentDescriptor(
        name="payment_link",
        label="Payment link",
        phases={
            "init": PhaseDescriptor(
                name="init",
                request_model=PaymentLinkInitRequest,
                generates_transaction_id=True,
                transaction_id_fields=("transaction_id", "merchant_order_id"),
                amount_fields=("amount",),
                config_fields=("expires_in",),
                send_call_mode=True,
            ),
            "cancel": _cancel(),
            "refund": _refund(),
            "status": _status(),
        },
    ),
    "collect": InstrumentDescriptor(
        name="collect",
        label="Collect call",
        phases={
            "init": PhaseDescriptor(
                name="init",
                request_model=CollectInitRequest,
                generates_transaction_id=True,
                transaction_id_fields=("transaction_id", "merchant_order_id"),
                amount_fields=("amount",),
                config_fields=("expires_in",),
                send_callback_url=True,
                send_call_mode=True,
            ),
            "cancel": _cancel(),
            "refund": _refund(),
            "status": _status(),
        },
    ),
}
