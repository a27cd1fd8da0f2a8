"""Pytest fixtures for the gateway middleware tests."""

import json
from typing import Callable, List

import httpx
import pytest

from src.database.postgres import AuditStore
from src.database.redis import TransactionIdRegistry
from src.integrations.gateway.orchestrator import TransactionOrchestrator
from src.integrations.gateway.transaction_id import TransactionIdGenerator
from src.integrations.gateway.transport import ResilientTransport
from src.utils.config_loader import GatewayConfig, InstrumentConfig, TransportConfig

BASE_URL = "https://gateway.test"
CALLBACK_URL = "https://merchant.test/api/v1/payments/callback"

STATUS_PATH = "/v3/transaction/{merchant_id}/{transaction_id}/status"
CANCEL_PATH = "/v3/merchant/{merchant_id}/{transaction_id}/cancel"


def gateway_response(data=None, *, success=True, code="SUCCESS", message="Your request has been successfully completed."):
    return json.dumps({"success": success, "code": code, "message": message, "data": data or {}})


@pytest.fixture
def store():
    """In-memory AuditStore stub for tests."""
    return AuditStore()


@pytest.fixture
def registry():
    return TransactionIdRegistry()


@pytest.fixture
def gateway_config():
    return GatewayConfig(
        base_url=BASE_URL,
        callback_url=CALLBACK_URL,
        callback_instrument="static_qr",
        transport=TransportConfig(max_attempts=3, initial_backoff=1.0, max_backoff=16.0),
        instruments={
            "dqr": InstrumentConfig(
                salt_key="dqr-salt",
                salt_index="1",
                expires_in=1800,
                paths={
                    "init": "/v3/qr/init",
                    "cancel": CANCEL_PATH,
                    "refund": "/v3/credit/backToSource",
                    "status": STATUS_PATH,
                },
            ),
            "static_qr": InstrumentConfig(
                salt_key="static-salt",
                salt_index="2",
                paths={
                    "transaction_list": "/v3/qrcode/transaction/list",
                    "metadata": "/v3/qrcode/transaction/metadata",
                },
            ),
            "edc": InstrumentConfig(
                salt_key="edc-salt",
                salt_index="1",
                paths={"init": "/v1/edc/transaction/init", "status": STATUS_PATH},
            ),
            "payment_link": InstrumentConfig(
                salt_key="link-salt",
                salt_index="1",
                expires_in=86400,
                paths={
                    "init": "/v3/payLink/init",
                    "cancel": CANCEL_PATH,
                    "refund": "/v3/credit/backToSource",
                    "status": STATUS_PATH,
                },
            ),
            "collect": InstrumentConfig(
                salt_key="collect-salt",
                salt_index="1",
                expires_in=180,
                paths={
                    "init": "/v3/charge",
                    "cancel": CANCEL_PATH,
                    "refund": "/v3/credit/backToSource",
                    "status": STATUS_PATH,
                },
            ),
        },
    )


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def make_transport(gateway_config, sleeper) -> Callable[..., ResilientTransport]:
    def _make(handler, *, max_attempts: int = 3) -> ResilientTransport:
        config = gateway_config.transport.model_copy(update={"max_attempts": max_attempts})
        return ResilientTransport.from_config(
            BASE_URL,
            config,
            transport=httpx.MockTransport(handler),
            sleep=sleeper,
        )

    return _make


@pytest.fixture
def make_orchestrator(make_transport, store, registry, gateway_config):
    def _make(handler, *, max_attempts: int = 3, audit_store=None) -> TransactionOrchestrator:
        return TransactionOrchestrator(
            make_transport(handler, max_attempts=max_attempts),
            audit_store if audit_store is not None else store,
            TransactionIdGenerator(registry),
            gateway_config,
        )

    return _make
