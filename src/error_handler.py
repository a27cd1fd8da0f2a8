"""Error handling helpers for the payment gateway API."""
from typing import Any, Dict, Tuple
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.integrations.contracts.gateway import ResponseCode
from src.integrations.gateway.errors import GatewayError

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_gateway_error(self, exc: GatewayError, context: Dict[str, Any] = None) -> Tuple[int, Dict[str, Any]]:
        status = exc.http_status
        if status >= 500:
            logger.error(
                "Gateway failure [%s/%s] %s: %s",
                exc.instrument, exc.operation, exc.code.value, exc.message,
            )
        else:
            logger.warning(
                "Gateway rejected request [%s/%s] %s: %s",
                exc.instrument, exc.operation, exc.code.value, exc.message,
            )
        return status, exc.to_dict()

    def handle_validation_error(self, exc: RequestValidationError, context: Dict[str, Any] = None) -> Tuple[int, Dict[str, Any]]:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
        return 400, {"success": False, "code": ResponseCode.BAD_REQUEST.value, "message": detail}

    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Tuple[int, Dict[str, Any]]:
        logger.error("Unhandled exception in payment gateway API: %s", exc, exc_info=True)
        return 500, {
            "success": False,
            "code": ResponseCode.INTERNAL_SERVER_ERROR.value,
            "message": "An internal error occurred while processing your request. Please try again later.",
        }


def register_exception_handlers(app: FastAPI, handler: ErrorHandler = None) -> None:
    handler = handler or ErrorHandler()

    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        status, body = handler.handle_gateway_error(exc, context={"path": request.url.path})
        return JSONResponse(status_code=status, content=body)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        status, body = handler.handle_validation_error(exc, context={"path": request.url.path})
        return JSONResponse(status_code=status, content=body)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        status, body = handler.handle_exception(exc, context={"path": request.url.path})
        return JSONResponse(status_code=status, content=body)
