"""
Integrations layer.
This package contains all code used to communicate with the mobile-payment gateway:
- contracts: request/response shapes (caller-facing, major units)
- gateway: signing, envelope codec, resilient transport, orchestrator, callbacks

Key rule:
- API routes MUST NOT call the gateway directly.
- Routes call the TransactionOrchestrator, which owns signing, retry, unit
  conversion and audit persistence.

Switching implementations:
- The selection of in-memory vs real persistence happens in ONE place (src/api/main.py).
"""

from .contracts.gateway import (
    CallbackPayload,
    GatewayResponse,
    ResponseCode,
    TransactionState,
)

__all__ = [
    "CallbackPayload", "GatewayResponse", "ResponseCode", "TransactionState",
]
