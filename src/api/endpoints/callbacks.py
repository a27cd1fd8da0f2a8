from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Request

from src.api.dependencies import get_callback_verifier
from src.integrations.contracts.gateway import ResponseCode
from src.integrations.gateway.callbacks import CallbackVerifier


router = APIRouter()


@router.post("/callback", tags=["Payments"])
async def gateway_callback(
    request: Request,
    x_verify: Optional[str] = Header(default=None, alias="X-VERIFY"),
    verifier: CallbackVerifier = Depends(get_callback_verifier),
) -> Dict[str, Any]:
    """
    Server-to-server payment notification from the gateway.

    The raw body is handed to the verifier so that every attempt is recorded,
    including ones that are not ``{"response": <base64>}``.
    401 when X-VERIFY does not match, 400 when the body cannot be decoded,
    500 on anything else (see src/error_handler.py).
    """
    payload = verifier.process_request(await request.body(), x_verify)
    return {
        "success": True,
        "code": ResponseCode.SUCCESS.value,
        "message": "Callback processed successfully",
        "data": {
            "transactionId": payload.transaction_id,
            "paymentState": payload.payment_state,
        },
    }
