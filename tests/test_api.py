import base64
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import BASE_URL, gateway_response
from src.api.main import build_services, create_app
from src.database.redis import TransactionIdRegistry
from src.integrations.gateway.signature import sign
from src.integrations.gateway.transport import ResilientTransport

API_KEY = "test-key"
HEADERS = {"X-API-KEY": API_KEY}


def _gateway(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/status"):
        if "TXMISSING" in request.url.path:
            return httpx.Response(404, text=json.dumps({"success": False, "code": "TRANSACTION_NOT_FOUND", "message": "Not found"}))
        return httpx.Response(200, text=gateway_response({"transactionId": "TX1", "amount": 4200, "paymentState": "PENDING"}))
    sent = json.loads(base64.b64decode(json.loads(request.read())["request"]))
    return httpx.Response(200, text=gateway_response({"transactionId": sent["transactionId"], "amount": sent["amount"]}))


@pytest.fixture
def client(monkeypatch, gateway_config, store, sleeper):
    monkeypatch.setenv("API_KEYS", API_KEY)
    transport = ResilientTransport.from_config(
        BASE_URL, gateway_config.transport, transport=httpx.MockTransport(_gateway), sleep=sleeper
    )
    services = build_services(gateway_config, store=store, registry=TransactionIdRegistry(), transport=transport)
    with TestClient(create_app(services), raise_server_exceptions=False) as test_client:
        yield test_client


def test_health_is_open(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "idRegistry": True}


def test_health_reports_unreachable_registry(monkeypatch, gateway_config, store):
    registry = TransactionIdRegistry()
    monkeypatch.setattr(registry, "ping", lambda: False)
    services = build_services(gateway_config, store=store, registry=registry)
    with TestClient(create_app(services)) as test_client:
        response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "degraded", "idRegistry": False}


def test_payment_routes_require_api_key(client):
    response = client.post("/api/v1/payments/dqr/init", json={"merchantId": "M1", "provider": "P1", "amount": 10})
    assert response.status_code == 401


def test_dqr_init_returns_major_units(client):
    response = client.post(
        "/api/v1/payments/dqr/init",
        json={"merchantId": "M1", "provider": "P1", "amount": 100, "storeId": "S1"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["amount"] == 100
    assert body["data"]["transactionId"].startswith("TX")


def test_status_not_found_maps_to_404(client):
    response = client.post(
        "/api/v1/payments/payment-link/status",
        json={"merchantId": "M1", "provider": "P1", "transactionId": "TXMISSING"},
        headers=HEADERS,
    )
    assert response.status_code == 404
    assert response.json() == {"success": False, "code": "TRANSACTION_NOT_FOUND", "message": "Not found"}


def test_invalid_request_body_is_bad_request(client):
    response = client.post("/api/v1/payments/collect/init", json={"merchantId": "M1"}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["code"] == "BAD_REQUEST"


def test_static_qr_routes_are_registered(client):
    response = client.get("/api/v1/payments/instruments", headers=HEADERS)
    routes = {route for item in response.json() for route in item["routes"]}
    assert "/api/v1/payments/static-qr/transaction/list" in routes
    assert "/api/v1/payments/edc/init" in routes
    assert "/api/v1/payments/edc/refund" not in routes


def _callback_body():
    document = {"success": True, "code": "PAYMENT_SUCCESS", "data": {"transactionId": "TX77", "amount": 500, "paymentState": "COMPLETED"}}
    return base64.b64encode(json.dumps(document).encode()).decode()


def test_callback_accepts_valid_signature_without_api_key(client, store):
    body = _callback_body()
    response = client.post(
        "/api/v1/payments/callback",
        json={"response": body},
        headers={"X-VERIFY": sign(body, "static-salt", "2")},
    )
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert store.callback_events[0].amount == 5


def test_callback_rejects_bad_signature(client, store):
    body = _callback_body()
    response = client.post("/api/v1/payments/callback", json={"response": body}, headers={"X-VERIFY": "nope###2"})
    assert response.status_code == 401
    assert response.json()["success"] is False
    assert store.callback_attempts[-1].signature_valid is False


def test_callback_rejects_missing_header(client):
    response = client.post("/api/v1/payments/callback", json={"response": _callback_body()})
    assert response.status_code == 401


def test_callback_malformed_payload_is_400(client):
    response = client.post("/api/v1/payments/callback", json={"unexpected": "shape"})
    assert response.status_code == 400

    body = base64.b64encode(b"{broken").decode()
    response = client.post("/api/v1/payments/callback", json={"response": body}, headers={"X-VERIFY": sign(body, "static-salt", "2")})
    assert response.status_code == 400


def test_callback_with_wrong_shape_is_recorded(client, store):
    response = client.post("/api/v1/payments/callback", json={"payload": "abc"}, headers={"X-VERIFY": "x###1"})
    assert response.status_code == 400
    assert len(store.callback_attempts) == 1
    assert store.callback_attempts[0].signature_valid is False
    assert store.callback_attempts[0].signature_header == "x###1"


def test_callback_with_non_json_body_is_recorded(client, store):
    response = client.post(
        "/api/v1/payments/callback",
        content=b"response=abc",
        headers={"X-VERIFY": "x###1", "Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 400
    assert store.callback_attempts[-1].body == "response=abc"
