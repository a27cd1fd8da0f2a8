"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.api.dependencies import api_key_protection
from src.api.endpoints.callbacks import router as callbacks_router
from src.api.endpoints.payments import payments_api
from src.error_handler import register_exception_handlers
from src.integrations.gateway.callbacks import CallbackVerifier
from src.integrations.gateway.orchestrator import TransactionOrchestrator
from src.integrations.gateway.signature import SigningContext
from src.integrations.gateway.transaction_id import TransactionIdGenerator
from src.integrations.gateway.transport import ResilientTransport
from src.utils.config_loader import GatewayConfig, load_gateway_config

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def _build_audit_store() -> Any:
    """Real Postgres when env is set, else the in-memory stub."""
    if os.getenv("DATABASE_URL") and os.getenv("USE_POSTGRES_AUDIT", "").lower() in ("1", "true", "yes"):
        from src.database.postgres_real import AuditStore

        return AuditStore(connection_string=os.environ["DATABASE_URL"])

    from src.database.postgres import AuditStore

    return AuditStore()


def _build_id_registry() -> Any:
    if os.getenv("REDIS_URL"):
        from src.database.redis_real import TransactionIdRegistry

        return TransactionIdRegistry(url=os.environ["REDIS_URL"])

    from src.database.redis import TransactionIdRegistry

    return TransactionIdRegistry()


@dataclass
class GatewayServices:
    config: GatewayConfig
    transport: ResilientTransport
    store: Any
    registry: Any
    orchestrator: TransactionOrchestrator
    callback_verifier: CallbackVerifier


def build_services(
    config: Optional[GatewayConfig] = None,
    *,
    store: Any = None,
    registry: Any = None,
    transport: Optional[ResilientTransport] = None,
) -> GatewayServices:
    config = config or load_gateway_config()
    store = store if store is not None else _build_audit_store()
    registry = registry if registry is not None else _build_id_registry()
    transport = transport or ResilientTransport.from_config(config.base_url, config.transport)

    ids = config.transaction_id
    id_generator = TransactionIdGenerator(
        registry,
        prefix=ids.prefix,
        length=ids.length,
        alphabet=ids.alphabet,
        max_attempts=ids.reservation_attempts,
        ttl_seconds=ids.reservation_ttl_seconds,
    )
    orchestrator = TransactionOrchestrator(transport, store, id_generator, config)

    callback_settings = config.instrument(config.callback_instrument)
    verifier = CallbackVerifier(
        SigningContext(secret=callback_settings.salt_key, version=callback_settings.salt_index),
        store,
        instrument=config.callback_instrument,
    )
    return GatewayServices(
        config=config,
        transport=transport,
        store=store,
        registry=registry,
        orchestrator=orchestrator,
        callback_verifier=verifier,
    )


def create_app(services: Optional[GatewayServices] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = services or build_services()
        svc.store.create_tables()
        app.state.services = svc
        app.state.orchestrator = svc.orchestrator
        app.state.callback_verifier = svc.callback_verifier
        logger.info("Gateway middleware started against %s", svc.config.base_url)
        try:
            yield
        finally:
            await svc.transport.aclose()
            logger.info("Gateway transport closed")

    app = FastAPI(
        title="Mobile Payment Gateway Middleware",
        description="Signed, retrying integration with the mobile-payment gateway",
        version="1.0.0",
        dependencies=[Depends(api_key_protection)],  # protect everything by default
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register payments API routers
    app.include_router(payments_api, prefix="/api/v1/payments", tags=["Payments"])
    app.include_router(callbacks_router, prefix="/api/v1/payments", tags=["Payments"])

    @app.get("/health")
    async def health(request: Request):
        registry_ok = request.app.state.services.registry.ping()
        return {"status": "ok" if registry_ok else "degraded", "idRegistry": registry_ok}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.api.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)
