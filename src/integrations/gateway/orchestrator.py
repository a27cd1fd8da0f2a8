"""
Transaction orchestrator.

Drives one gateway call for any instrument/phase pair:

    reserve id -> build request -> minor units -> encode + sign -> NEW row
    -> SENT -> transport (retry) -> decode -> major units -> SUCCEEDED

Failures are classified into the fault taxonomy and the audit row is closed as
FAILED_RETRYABLE (transient, the gateway did not commit) or FAILED_TERMINAL.
Audit writes are best-effort: they never mask the gateway's outcome.
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from src.integrations.contracts.gateway import GatewayResponse, ResponseCode, TransactionState
from src.integrations.gateway import envelope
from src.integrations.gateway.amounts import to_major, to_minor
from src.integrations.gateway.errors import (
    GatewayBusinessFault,
    GatewayError,
    PersistenceFault,
    SerializationFault,
    TransportFault,
    classify_failure,
)
from src.integrations.gateway.instruments import INSTRUMENTS, InstrumentDescriptor, PhaseDescriptor
from src.integrations.gateway.signature import SigningContext, sign_with
from src.integrations.gateway.transaction_id import TransactionIdGenerator
from src.integrations.gateway.transport import OutboundCall, ResilientTransport
from src.utils.config_loader import GatewayConfig, InstrumentConfig

logger = logging.getLogger(__name__)


class TransactionOrchestrator:
    def __init__(
        self,
        transport: ResilientTransport,
        store: Any,
        id_generator: TransactionIdGenerator,
        config: GatewayConfig,
        *,
        instruments: Optional[Dict[str, InstrumentDescriptor]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.transport = transport
        self.store = store
        self.id_generator = id_generator
        self.config = config
        self.instruments = instruments or INSTRUMENTS
        self.clock = clock
        self.persistence_failures = 0

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def execute(
        self,
        instrument: str,
        phase: str,
        request: BaseModel,
        *,
        transaction_id: Optional[str] = None,
    ) -> GatewayResponse:
        """Run ``phase`` of ``instrument`` for a validated caller request.

        ``transaction_id`` resends a phase that generates ids under a previously
        used id. If that id already succeeded, the stored response is replayed
        without calling the gateway.
        """
        descriptor = self._descriptor(instrument)
        phase_desc = self._phase(descriptor, phase)
        settings = self.config.instrument(instrument)

        if transaction_id and phase_desc.generates_transaction_id:
            replayed = self._replay(instrument, phase_desc, transaction_id)
            if replayed is not None:
                return replayed

        wire_request, txn_id = self._prepare_request(phase_desc, settings, request, transaction_id)
        call = self._build_call(phase_desc, settings, wire_request, txn_id)

        record_id = self._begin(instrument, phase_desc, wire_request, txn_id, call)
        self._transition(record_id, TransactionState.SENT)

        try:
            raw_body = await self.transport.execute(call)
            response = envelope.decode(raw_body, phase_desc.response_model)
        except Exception as exc:
            fault = classify_failure(exc, instrument=instrument, operation=phase_desc.name)
            state = (
                TransactionState.FAILED_RETRYABLE
                if isinstance(fault, TransportFault)
                else TransactionState.FAILED_TERMINAL
            )
            self._transition(
                record_id,
                state,
                error_code=fault.code.value,
                error_message=fault.message,
                attempts=call.attempts,
            )
            self._track_exception(fault, exc)
            logger.error(
                "%s %s failed for %s: %s (%s)",
                descriptor.label, phase_desc.name, txn_id, fault.code.value, fault.message,
            )
            raise fault from exc

        response = response.to_major_units(to_major)
        self._transition(
            record_id,
            TransactionState.SUCCEEDED,
            response_payload=response.model_dump(mode="json", by_alias=True, exclude_none=True),
            attempts=call.attempts,
        )
        logger.info(
            "%s %s completed for %s: success=%s code=%s",
            descriptor.label, phase_desc.name, txn_id, response.success, response.code,
        )
        return response

    # ------------------------------------------------------------------ #
    # Request building
    # ------------------------------------------------------------------ #

    def _descriptor(self, instrument: str) -> InstrumentDescriptor:
        if instrument not in self.instruments:
            raise GatewayBusinessFault(
                f"Unknown instrument type '{instrument}'", code=ResponseCode.BAD_REQUEST, instrument=instrument
            )
        return self.instruments[instrument]

    @staticmethod
    def _phase(descriptor: InstrumentDescriptor, phase: str) -> PhaseDescriptor:
        try:
            return descriptor.phase(phase)
        except ValueError as exc:
            raise GatewayBusinessFault(
                str(exc), code=ResponseCode.BAD_REQUEST, instrument=descriptor.name, operation=phase
            ) from exc

    def _prepare_request(
        self,
        phase: PhaseDescriptor,
        settings: InstrumentConfig,
        request: BaseModel,
        transaction_id: Optional[str],
    ) -> Tuple[BaseModel, str]:
        updates: Dict[str, Any] = dict(phase.constants)

        for name in phase.config_fields:
            if getattr(request, name, None) is None and getattr(settings, name, None) is not None:
                updates[name] = getattr(settings, name)

        if phase.generates_transaction_id:
            txn_id = transaction_id or self.id_generator.next_id()
            for name in phase.transaction_id_fields:
                updates[name] = txn_id
        else:
            txn_id = getattr(request, "transaction_id", None) or getattr(request, "gateway_transaction_id", None) or ""

        for name in phase.amount_fields:
            amount = getattr(request, name, None)
            if amount is None:
                continue
            try:
                updates[name] = to_minor(amount)
            except ValueError as exc:
                raise SerializationFault(str(exc), code=ResponseCode.BAD_REQUEST, operation=phase.name) from exc

        return request.model_copy(update=updates), txn_id

    def _build_call(
        self,
        phase: PhaseDescriptor,
        settings: InstrumentConfig,
        wire_request: BaseModel,
        txn_id: str,
    ) -> OutboundCall:
        merchant_id = getattr(wire_request, "merchant_id", "")
        url_path = settings.path_for(phase.name, merchant_id=merchant_id, transaction_id=txn_id)

        headers = {"Content-Type": "application/json"}
        if phase.send_callback_url and self.config.callback_url:
            headers["X-CALLBACK-URL"] = self.config.callback_url
        provider = getattr(wire_request, "provider", None)
        if provider:
            headers["X-PROVIDER-ID"] = provider
        if phase.send_call_mode:
            headers["X-CALL-MODE"] = "POST"
        if phase.send_merchant_id:
            headers["X-MERCHANT-ID"] = merchant_id

        signing = SigningContext(secret=settings.salt_key, version=settings.salt_index)
        if phase.enveloped:
            encoded = envelope.encode(wire_request)
            signature = sign_with(signing, encoded + url_path)
        else:
            encoded = None
            signature = sign_with(signing, url_path)

        return OutboundCall(
            method=phase.method,
            url_path=url_path,
            headers=headers,
            envelope=encoded,
            signature=signature,
        )

    # ------------------------------------------------------------------ #
    # Replay
    # ------------------------------------------------------------------ #

    def _replay(self, instrument: str, phase: PhaseDescriptor, transaction_id: str) -> Optional[GatewayResponse]:
        try:
            record = self.store.get_latest_transaction(transaction_id, instrument=instrument, phase=phase.name)
        except Exception as exc:
            self._persistence_failed("lookup", transaction_id, exc)
            return None
        if record is None:
            return None

        state = TransactionState(record.state)
        if state == TransactionState.SUCCEEDED and record.response_payload is not None:
            logger.info("Replaying stored %s %s response for %s", instrument, phase.name, transaction_id)
            return phase.response_model.model_validate(record.response_payload)
        if state in (TransactionState.NEW, TransactionState.SENT):
            if self._is_stale(record):
                logger.warning(
                    "Transaction %s stuck in %s since %s; allowing resend",
                    transaction_id, state.value, record.updated_at,
                )
                self._transition(
                    record.id,
                    TransactionState.FAILED_RETRYABLE,
                    error_message="Abandoned while in flight",
                )
                return None
            raise GatewayBusinessFault(
                f"Transaction {transaction_id} is already in flight",
                code=ResponseCode.DUPLICATE_TXN_REQUEST,
                instrument=instrument,
                operation=phase.name,
            )
        if state == TransactionState.FAILED_TERMINAL:
            raise GatewayBusinessFault(
                f"Transaction {transaction_id} was rejected by the gateway and cannot be resent",
                code=ResponseCode.DUPLICATE_TXN_REQUEST,
                instrument=instrument,
                operation=phase.name,
            )
        return None

    def _is_stale(self, record: Any) -> bool:
        updated_at = getattr(record, "updated_at", None)
        if updated_at is None:
            return False
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        age = self.clock() - updated_at
        return age > timedelta(seconds=self.config.transaction_id.in_flight_timeout_seconds)

    # ------------------------------------------------------------------ #
    # Audit (best-effort)
    # ------------------------------------------------------------------ #

    def _begin(
        self,
        instrument: str,
        phase: PhaseDescriptor,
        wire_request: BaseModel,
        txn_id: str,
        call: OutboundCall,
    ) -> Optional[str]:
        payload = wire_request.model_dump(mode="json", by_alias=True, exclude_none=True)
        payload["urlPath"] = call.url_path
        try:
            record = self.store.create_transaction(
                transaction_id=txn_id,
                instrument=instrument,
                phase=phase.name,
                merchant_id=getattr(wire_request, "merchant_id", None),
                merchant_order_id=getattr(wire_request, "merchant_order_id", None)
                or getattr(wire_request, "order_id", None),
                request_payload=payload,
            )
        except Exception as exc:
            self._persistence_failed("create", txn_id, exc)
            return None
        return record.id

    def _transition(self, record_id: Optional[str], state: TransactionState, **fields: Any) -> None:
        if record_id is None:
            return
        try:
            self.store.update_transaction(record_id, state=state.value, **fields)
        except Exception as exc:
            self._persistence_failed(f"update to {state.value}", record_id, exc)

    def _persistence_failed(self, action: str, key: str, exc: Exception) -> None:
        self.persistence_failures += 1
        fault = PersistenceFault(f"Audit {action} failed for {key}: {exc}")
        logger.error("%s", fault.message)
        self._track_exception(fault, exc)

    def _track_exception(self, fault: GatewayError, exc: BaseException) -> None:
        try:
            self.store.record_exception(
                fault.message,
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            )
        except Exception as track_exc:
            logger.error("Failed to record exception: %s", track_exc)
