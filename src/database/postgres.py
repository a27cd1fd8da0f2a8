"""
Lightweight in-memory AuditStore for local development and tests.

Provides the same interface as src.database.postgres_real so the gateway
can run without a real database. It is NOT intended for production use.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TransactionRecord:
    id: str
    transaction_id: str
    instrument: str
    phase: str
    merchant_id: Optional[str]
    merchant_order_id: Optional[str]
    request_payload: Dict[str, Any]
    state: str = "NEW"
    response_payload: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    attempts: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class CallbackAttempt:
    id: str
    body: str
    signature_header: Optional[str]
    signature_valid: bool
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class CallbackEvent:
    id: str
    success: Optional[bool] = None
    code: Optional[str] = None
    message: Optional[str] = None
    transaction_id: Optional[str] = None
    merchant_id: Optional[str] = None
    provider_reference_id: Optional[str] = None
    amount: Optional[float] = None
    payment_state: Optional[str] = None
    pay_response_code: Optional[str] = None
    transaction_context: Dict[str, Any] = field(default_factory=dict)
    payment_modes: List[Dict[str, Any]] = field(default_factory=list)
    raw_json: str = ""
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class ExceptionTrack:
    id: str
    message: Optional[str]
    exception: Optional[str]
    created_at: datetime = field(default_factory=_utcnow)


class AuditStore:
    """
    In-memory stand-in for the Postgres-backed audit store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._transactions: Dict[str, TransactionRecord] = {}
        self._by_transaction_id: Dict[str, List[str]] = {}
        self.callback_attempts: List[CallbackAttempt] = []
        self.callback_events: List[CallbackEvent] = []
        self.exceptions: List[ExceptionTrack] = []

    def create_tables(self) -> None:
        return None

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def create_transaction(
        self,
        *,
        transaction_id: str,
        instrument: str,
        phase: str,
        merchant_id: Optional[str],
        merchant_order_id: Optional[str] = None,
        request_payload: Optional[Dict[str, Any]] = None,
    ) -> TransactionRecord:
        record = TransactionRecord(
            id=str(uuid.uuid4()),
            transaction_id=transaction_id,
            instrument=instrument,
            phase=phase,
            merchant_id=merchant_id,
            merchant_order_id=merchant_order_id,
            request_payload=dict(request_payload or {}),
        )
        with self._lock:
            self._transactions[record.id] = record
            self._by_transaction_id.setdefault(transaction_id, []).append(record.id)
        return record

    def update_transaction(
        self,
        record_id: str,
        *,
        state: str,
        response_payload: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> None:
        with self._lock:
            record = self._transactions.get(record_id)
            if record is None:
                return
            record.state = state
            if response_payload is not None:
                record.response_payload = dict(response_payload)
            if error_code is not None:
                record.error_code = error_code
            if error_message is not None:
                record.error_message = error_message
            if attempts is not None:
                record.attempts = attempts
            record.updated_at = _utcnow()

    def list_transactions(self, transaction_id: str) -> List[TransactionRecord]:
        with self._lock:
            return [self._transactions[i] for i in self._by_transaction_id.get(transaction_id, [])]

    def get_latest_transaction(
        self,
        transaction_id: str,
        *,
        instrument: Optional[str] = None,
        phase: Optional[str] = None,
    ) -> Optional[TransactionRecord]:
        matches = [
            r
            for r in self.list_transactions(transaction_id)
            if (instrument is None or r.instrument == instrument) and (phase is None or r.phase == phase)
        ]
        return matches[-1] if matches else None

    # ------------------------------------------------------------------ #
    # Callbacks
    # ------------------------------------------------------------------ #
    def save_callback_attempt(
        self,
        *,
        body: str,
        signature_header: Optional[str],
        signature_valid: bool,
        error_message: Optional[str] = None,
    ) -> CallbackAttempt:
        attempt = CallbackAttempt(
            id=str(uuid.uuid4()),
            body=body,
            signature_header=signature_header,
            signature_valid=signature_valid,
            error_message=error_message,
        )
        with self._lock:
            self.callback_attempts.append(attempt)
        return attempt

    def save_callback_event(self, payload: Dict[str, Any]) -> CallbackEvent:
        event = CallbackEvent(id=str(uuid.uuid4()), **payload)
        with self._lock:
            self.callback_events.append(event)
        return event

    # ------------------------------------------------------------------ #
    # Exception tracking
    # ------------------------------------------------------------------ #
    def record_exception(self, message: str, exception: str) -> None:
        with self._lock:
            self.exceptions.append(ExceptionTrack(id=str(uuid.uuid4()), message=message, exception=exception))
