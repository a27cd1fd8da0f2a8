"""
Mobile-payment gateway client.

Pieces, bottom-up:
- signature: X-VERIFY signing/verification (hash(message + salt) + "###" + index)
- envelope: canonical JSON -> base64 request envelope, response decoding
- transport: one pooled httpx client with bounded exponential retry
- instruments: per instrument/phase descriptors (verb, headers, amount fields)
- orchestrator: generic workflow that drives any instrument/phase
- callbacks: inbound S2S callback verification and decoding

Selection of in-memory vs real persistence happens in ONE place (src/api/main.py).
"""

from .callbacks import CallbackVerifier
from .errors import (
    EmptyGatewayResponseError,
    GatewayBusinessFault,
    GatewayError,
    GatewayHTTPError,
    PersistenceFault,
    RetryExhaustedError,
    SecurityFault,
    SerializationFault,
    SignatureError,
    TransportFault,
    classify_failure,
)
from .instruments import INSTRUMENTS, InstrumentDescriptor, PhaseDescriptor
from .orchestrator import TransactionOrchestrator
from .signature import SigningContext, sign, verify
from .transaction_id import TransactionIdGenerator, generate_transaction_id
from .transport import OutboundCall, ResilientTransport, RetryPolicy

__all__ = [
    "CallbackVerifier",
    "EmptyGatewayResponseError", "GatewayBusinessFault", "GatewayError", "GatewayHTTPError",
    "PersistenceFault", "RetryExhaustedError", "SecurityFault", "SerializationFault",
    "SignatureError", "TransportFault", "classify_failure",
    "INSTRUMENTS", "InstrumentDescriptor", "PhaseDescriptor",
    "TransactionOrchestrator",
    "SigningContext", "sign", "verify",
    "TransactionIdGenerator", "generate_transaction_id",
    "OutboundCall", "ResilientTransport", "RetryPolicy",
]
