import httpx
import pytest

from src.integrations.gateway.errors import GatewayHTTPError, RetryExhaustedError, TransportFault
from src.integrations.gateway.transport import OutboundCall, RetryPolicy


def _call():
    return OutboundCall(
        method="POST",
        url_path="/v3/qr/init",
        headers={"Content-Type": "application/json", "X-PROVIDER-ID": "P1"},
        envelope="eyJhIjoxfQ==",
        signature="abc###1",
    )


def _flaky(statuses):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status = statuses[min(len(calls) - 1, len(statuses) - 1)]
        return httpx.Response(status, text='{"success": true}' if status == 200 else "upstream error")

    return handler, calls


@pytest.mark.asyncio
async def test_sends_wrapped_envelope_and_signature_header(make_transport):
    handler, calls = _flaky([200])
    transport = make_transport(handler)
    body = await transport.execute(_call())
    await transport.aclose()

    assert body == '{"success": true}'
    request = calls[0]
    assert request.url == "https://gateway.test/v3/qr/init"
    assert request.headers["X-VERIFY"] == "abc###1"
    assert request.headers["X-PROVIDER-ID"] == "P1"
    assert request.read() in (b'{"request":"eyJhIjoxfQ=="}', b'{"request": "eyJhIjoxfQ=="}')


@pytest.mark.asyncio
async def test_recovers_after_transient_5xx_with_exponential_delays(make_transport, sleeper):
    handler, calls = _flaky([503, 503, 200])
    transport = make_transport(handler, max_attempts=3)
    call = _call()
    body = await transport.execute(call)

    assert body == '{"success": true}'
    assert len(calls) == 3
    assert call.attempts == 3
    assert sleeper.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausts_after_max_attempts(make_transport, sleeper):
    handler, calls = _flaky([503, 503, 200])
    transport = make_transport(handler, max_attempts=2)

    with pytest.raises(RetryExhaustedError) as exc_info:
        await transport.execute(_call())

    assert len(calls) == 2
    assert exc_info.value.attempts == 2
    assert isinstance(exc_info.value.last_error, GatewayHTTPError)
    assert exc_info.value.__cause__ is exc_info.value.last_error
    assert sleeper.delays == [1.0]


@pytest.mark.asyncio
async def test_never_retries_4xx(make_transport, sleeper):
    handler, calls = _flaky([400])
    transport = make_transport(handler)

    with pytest.raises(GatewayHTTPError) as exc_info:
        await transport.execute(_call())

    assert len(calls) == 1
    assert exc_info.value.status_code == 400
    assert exc_info.value.body == "upstream error"
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_retries_connection_errors(make_transport, sleeper):
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("Connection refused", request=request)
        return httpx.Response(200, text="{}")

    transport = make_transport(handler)
    assert await transport.execute(_call()) == "{}"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_connection_errors_exhaust_into_transport_fault(make_transport):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    transport = make_transport(handler, max_attempts=3)
    with pytest.raises(RetryExhaustedError) as exc_info:
        await transport.execute(_call())
    assert isinstance(exc_info.value, TransportFault)
    assert isinstance(exc_info.value.last_error, httpx.ReadTimeout)


def test_backoff_is_capped():
    policy = RetryPolicy(max_attempts=10, initial_delay=1.0, max_delay=16.0)
    assert [policy.delay_for(n) for n in range(1, 8)] == [1, 2, 4, 8, 16, 16, 16]


@pytest.mark.parametrize("status,retryable", [(500, True), (502, True), (503, True), (504, True), (400, False), (404, False)])
def test_retry_predicate_on_status(status, retryable):
    assert RetryPolicy.is_retryable(GatewayHTTPError(status, "")) is retryable
