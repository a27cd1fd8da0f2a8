"""
SQLAlchemy models for gateway transactions, callbacks and exception tracking.
Used by postgres_real when USE_POSTGRES_AUDIT and DATABASE_URL are set.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4
from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TransactionRecord(Base):
    """One gateway call: request/response pair plus its lifecycle state."""

    __tablename__ = "gateway_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    instrument: Mapped[str] = mapped_column(String(32), nullable=False)
    phase: Mapped[str] = mapped_column(String(32), nullable=False)
    merchant_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    merchant_order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    state: Mapped[str] = mapped_column(String(32), nullable=False, default="NEW", index=True)
    request_payload: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    response_payload: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    error_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class CallbackAttempt(Base):
    """Raw inbound callback, stored before (and regardless of) signature validation."""

    __tablename__ = "gateway_callback_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    signature_header: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    signature_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class CallbackEvent(Base):
    __tablename__ = "gateway_callback_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    success: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    merchant_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    provider_reference_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    payment_state: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    pay_response_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    transaction_context: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    payment_modes: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    raw_json: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ExceptionTrack(Base):
    __tablename__ = "exception_track"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    exception: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
