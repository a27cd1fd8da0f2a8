"""
Real Postgres-backed audit store for production when USE_POSTGRES_AUDIT and DATABASE_URL are set.
Implements the same interface as src.database.postgres (in-memory stub).
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from src.database.models import (
    Base,
    CallbackAttempt,
    CallbackEvent,
    ExceptionTrack,
    TransactionRecord,
)


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    return s


class AuditStore:
    """
    Postgres audit store using SQLAlchemy. Use when DATABASE_URL is set and
    USE_POSTGRES_AUDIT=true.
    """

    def __init__(self, connection_string: str) -> None:
        connection_string = _normalize_connection_string(connection_string)
        self.engine = create_engine(connection_string, pool_pre_ping=True, pool_size=5, max_overflow=10)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def _session(self) -> Session:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

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
        with self._session() as s:
            record = TransactionRecord(
                id=str(uuid4()),
                transaction_id=transaction_id,
                instrument=instrument,
                phase=phase,
                merchant_id=merchant_id,
                merchant_order_id=merchant_order_id,
                state="NEW",
                request_payload=request_payload or {},
                attempts=0,
            )
            s.add(record)
            s.flush()
            s.refresh(record)
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
        with self._session() as s:
            record = s.get(TransactionRecord, record_id)
            if record is None:
                return
            record.state = state
            if response_payload is not None:
                record.response_payload = response_payload
            if error_code is not None:
                record.error_code = error_code
            if error_message is not None:
                record.error_message = error_message
            if attempts is not None:
                record.attempts = attempts
            record.updated_at = datetime.now(timezone.utc)

    def list_transactions(self, transaction_id: str) -> List[TransactionRecord]:
        with self._session() as s:
            stmt = (
                select(TransactionRecord)
                .where(TransactionRecord.transaction_id == transaction_id)
                .order_by(TransactionRecord.created_at)
            )
            return list(s.execute(stmt).scalars().all())

    def get_latest_transaction(
        self,
        transaction_id: str,
        *,
        instrument: Optional[str] = None,
        phase: Optional[str] = None,
    ) -> Optional[TransactionRecord]:
        with self._session() as s:
            stmt = select(TransactionRecord).where(TransactionRecord.transaction_id == transaction_id)
            if instrument is not None:
                stmt = stmt.where(TransactionRecord.instrument == instrument)
            if phase is not None:
                stmt = stmt.where(TransactionRecord.phase == phase)
            stmt = stmt.order_by(TransactionRecord.created_at.desc()).limit(1)
            return s.execute(stmt).scalar_one_or_none()

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
        with self._session() as s:
            attempt = CallbackAttempt(
                id=str(uuid4()),
                body=body,
                signature_header=signature_header,
                signature_valid=signature_valid,
                error_message=error_message,
            )
            s.add(attempt)
            s.flush()
            s.refresh(attempt)
            return attempt

    def save_callback_event(self, payload: Dict[str, Any]) -> CallbackEvent:
        with self._session() as s:
            event = CallbackEvent(id=str(uuid4()), **payload)
            s.add(event)
            s.flush()
            s.refresh(event)
            return event

    # ------------------------------------------------------------------ #
    # Exception tracking
    # ------------------------------------------------------------------ #
    def record_exception(self, message: str, exception: str) -> None:
        with self._session() as s:
            s.add(ExceptionTrack(id=str(uuid4()), message=message, exception=exception))
