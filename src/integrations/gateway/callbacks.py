"""
Inbound S2S callback verification.

The gateway POSTs ``{"response": <base64 json>}`` with an X-VERIFY header
computed over the base64 body alone. Every attempt is persisted with its
validity flag before anything else happens; only verified bodies are decoded.
"""

from __future__ import annotations

import json
import logging
import traceback
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from src.integrations.contracts.gateway import CallbackPayload, CallbackRequest
from src.integrations.gateway.amounts import to_major
from src.integrations.gateway.envelope import decode_base64_json
from src.integrations.gateway.errors import SecurityFault, SerializationFault
from src.integrations.gateway.signature import SigningContext, verify_with

logger = logging.getLogger(__name__)

INVALID_SIGNATURE_MESSAGE = "X-VERIFY validation failed"
MALFORMED_REQUEST_MESSAGE = 'Callback body is not {"response": <base64>}'


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    if value is None:
        return ""
    return str(value).lower() if isinstance(value, bool) else str(value)


def _payment_modes(raw: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    modes = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        mode = dict(item)
        if mode.get("amount") is not None:
            mode["amount"] = to_major(mode["amount"])
        modes.append(mode)
    return modes


def extract_payload(document: Dict[str, Any], raw_json: str = "") -> CallbackPayload:
    """Pull the sparse, known field set out of a decoded callback document."""
    fields: Dict[str, Any] = {
        "success": document.get("success"),
        "code": document.get("code"),
        "message": document.get("message"),
        "raw_json": raw_json,
    }
    data = document.get("data")
    if isinstance(data, dict):
        amount = data.get("amount")
        fields.update(
            transaction_id=data.get("transactionId"),
            merchant_id=data.get("merchantId"),
            provider_reference_id=data.get("providerReferenceId"),
            amount=to_major(amount) if amount is not None else None,
            payment_state=data.get("paymentState"),
            pay_response_code=data.get("payResponseCode"),
        )
        context = data.get("transactionContext")
        if isinstance(context, dict):
            fields["transaction_context"] = {k: _stringify(v) for k, v in context.items()}
        fields["payment_modes"] = _payment_modes(data.get("paymentModes"))
    return CallbackPayload(**fields)


class CallbackVerifier:
    def __init__(self, signing: SigningContext, store: Any, *, instrument: str = "static_qr") -> None:
        self.signing = signing
        self.store = store
        self.instrument = instrument
        if not signing.secret:
            logger.error("No salt key configured for %s; every callback will be rejected", instrument)

    def verify(self, raw_body: Optional[str], signature_header: Optional[str]) -> bool:
        if not self.signing.secret:
            return False
        if not raw_body or not signature_header:
            return False
        return verify_with(self.signing, raw_body, signature_header)

    def process_request(self, raw_request: Union[bytes, str], signature_header: Optional[str]) -> CallbackPayload:
        """Handle the raw HTTP body; attempts whose shape is wrong are recorded too."""
        text = raw_request.decode("utf-8", errors="replace") if isinstance(raw_request, bytes) else raw_request
        try:
            body = CallbackRequest.model_validate_json(text)
        except ValidationError as exc:
            self._record_attempt(text, signature_header, False, error_message=MALFORMED_REQUEST_MESSAGE)
            logger.warning("Rejected callback with malformed request body")
            raise SerializationFault("Malformed payload", instrument=self.instrument, operation="callback") from exc
        return self.process(body.response, signature_header)

    def process(self, raw_body: Optional[str], signature_header: Optional[str]) -> CallbackPayload:
        valid = self.verify(raw_body, signature_header)
        self._record_attempt(raw_body or "", signature_header, valid)

        if not valid:
            logger.warning("Rejected callback with invalid X-VERIFY header")
            raise SecurityFault("Invalid X-VERIFY", instrument=self.instrument, operation="callback")

        document = decode_base64_json(raw_body)
        try:
            payload = extract_payload(document, json.dumps(document, separators=(",", ":")))
        except (ValidationError, ValueError, TypeError) as exc:
            raise SerializationFault("Malformed payload", instrument=self.instrument, operation="callback") from exc

        self._record_event(payload)
        logger.info(
            "Callback accepted for %s: state=%s code=%s",
            payload.transaction_id, payload.payment_state, payload.code,
        )
        return payload

    # ------------------------------------------------------------------ #
    # Audit (best-effort)
    # ------------------------------------------------------------------ #

    def _record_attempt(
        self,
        raw_body: str,
        signature_header: Optional[str],
        valid: bool,
        *,
        error_message: Optional[str] = None,
    ) -> None:
        try:
            self.store.save_callback_attempt(
                body=raw_body,
                signature_header=signature_header,
                signature_valid=valid,
                error_message=None if valid else (error_message or INVALID_SIGNATURE_MESSAGE),
            )
        except Exception as exc:
            self._persistence_failed("attempt", exc)

    def _record_event(self, payload: CallbackPayload) -> None:
        try:
            self.store.save_callback_event(payload.model_dump())
        except Exception as exc:
            self._persistence_failed("event", exc)

    def _persistence_failed(self, what: str, exc: Exception) -> None:
        logger.error("Failed to persist callback %s: %s", what, exc)
        try:
            self.store.record_exception(
                f"Callback {what} persistence failed: {exc}",
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            )
        except Exception as track_exc:
            logger.error("Failed to record exception: %s", track_exc)
