import json

from src.error_handler import ErrorHandler
from src.integrations.contracts.gateway import ResponseCode
from src.integrations.gateway.errors import (
    GatewayBusinessFault,
    GatewayError,
    GatewayHTTPError,
    RetryExhaustedError,
    SecurityFault,
    classify_failure,
)


def test_handle_exception_returns_generic_payload():
    eh = ErrorHandler()
    status, out = eh.handle_exception(Exception("boom"), context={"k": "v"})
    assert status == 500
    assert out["success"] is False
    assert "internal error" in out["message"].lower()
    assert "boom" not in out["message"]


def test_handle_gateway_error_uses_fault_status():
    eh = ErrorHandler()
    status, out = eh.handle_gateway_error(SecurityFault("Invalid X-VERIFY"))
    assert status == 401
    assert out == {"success": False, "code": "INVALID_SIGNATURE", "message": "Invalid X-VERIFY"}


def test_classify_prefers_structured_code_over_status():
    err = GatewayHTTPError(400, json.dumps({"code": "EXCESS_REFUND_AMOUNT", "message": "Refund exceeds"}))
    fault = classify_failure(err, instrument="dqr", operation="refund")
    assert isinstance(fault, GatewayBusinessFault)
    assert fault.code == ResponseCode.EXCESS_REFUND_AMOUNT
    assert fault.message == "Refund exceeds"
    assert fault.instrument == "dqr"


def test_classify_duplicate_token_in_400_body():
    fault = classify_failure(GatewayHTTPError(400, "DUPLICATE_TXN_REQUEST: already exists"))
    assert fault.code == ResponseCode.DUPLICATE_TXN_REQUEST


def test_classify_digits_in_5xx_body_are_not_not_found():
    exhausted = RetryExhaustedError(3, GatewayHTTPError(503, "txn TX4041234 unavailable"))
    fault = classify_failure(exhausted)
    assert fault is exhausted
    assert fault.http_status == 500


def test_classify_text_fallback_for_non_http_errors():
    assert classify_failure(RuntimeError("401 UNAUTHORIZED")).code == ResponseCode.UNAUTHORIZED
    assert classify_failure(RuntimeError("resource not found")).code == ResponseCode.TRANSACTION_NOT_FOUND


def test_classify_unknown_failure_is_internal():
    fault = classify_failure(RuntimeError("kaboom"), instrument="edc")
    assert type(fault) is GatewayError
    assert fault.code == ResponseCode.INTERNAL_SERVER_ERROR
    assert fault.message == "Unexpected error: kaboom"
    assert fault.http_status == 500
