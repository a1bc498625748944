"""Status reporter retry and fallback tests."""

import httpx
import pytest

from orderflow import StatusReporter, UpdateRoute, WorkflowStatus
from orderflow.config import StorefrontConfig
from orderflow.reporter import route_for

PRIMARY = "/store/orders/ord_123/workflow-update"
LEGACY = "/demo"


def _reporter(recorder, sleeps):
    return StatusReporter("http://storefront", client=recorder.client(), sleep=sleeps)


@pytest.mark.parametrize(
    "status_code, expected",
    [
        (200, UpdateRoute.PRIMARY),
        (204, UpdateRoute.PRIMARY),
        (404, UpdateRoute.FALLBACK),
        (400, UpdateRoute.FAILED),
        (503, UpdateRoute.FAILED),
    ],
)
def test_route_for_status_codes(status_code, expected):
    assert route_for(httpx.Response(status_code)) is expected


@pytest.mark.asyncio
async def test_success_makes_single_primary_call(http_recorder, sleeps):
    recorder = http_recorder()
    reporter = _reporter(recorder, sleeps)

    route = await reporter.update_order(
        "ord_123", "payment_verified", "Payment verified successfully"
    )

    assert route is UpdateRoute.PRIMARY
    assert recorder.paths == [PRIMARY]
    assert recorder.payloads == [
        {"status": "payment_verified", "message": "Payment verified successfully"}
    ]
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_not_found_falls_back_to_legacy_once(http_recorder, sleeps):
    def responder(request):
        if request.url.path == PRIMARY:
            return httpx.Response(404, json={"error": "Not found"})
        return httpx.Response(200, json={"success": True})

    recorder = http_recorder(responder)
    reporter = _reporter(recorder, sleeps)

    route = await reporter.update_order("ord_123", "completed", "done")

    assert route is UpdateRoute.FALLBACK
    assert recorder.paths == [PRIMARY, LEGACY]
    assert recorder.payloads[1] == {
        "orderId": "ord_123",
        "status": "completed",
        "message": "done",
    }
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_raises_after_exhausting_retries(http_recorder, sleeps):
    recorder = http_recorder(lambda request: httpx.Response(503))
    reporter = _reporter(recorder, sleeps)

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        await reporter.update_order("ord_123", "payment_verified", "ok", retries=3)

    assert excinfo.value.response.status_code == 503
    assert recorder.paths == [PRIMARY] * 3
    assert sleeps.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_timeout_counts_as_failed_attempt(http_recorder, sleeps):
    def responder(request):
        if len(recorder.requests) == 1:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={"success": True})

    recorder = http_recorder(responder)
    reporter = _reporter(recorder, sleeps)

    route = await reporter.update_order("ord_123", "payment_verified", "ok")

    assert route is UpdateRoute.PRIMARY
    assert len(recorder.requests) == 2
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_connection_errors_reraise_original(http_recorder, sleeps):
    def responder(request):
        raise httpx.ConnectError("connection refused", request=request)

    recorder = http_recorder(responder)
    reporter = _reporter(recorder, sleeps)

    with pytest.raises(httpx.ConnectError):
        await reporter.update_order("ord_123", "payment_verified", "ok", retries=4)

    assert len(recorder.requests) == 4
    assert sleeps.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_legacy_failure_fails_the_attempt(http_recorder, sleeps):
    def responder(request):
        if request.url.path == PRIMARY:
            return httpx.Response(404)
        return httpx.Response(500)

    recorder = http_recorder(responder)
    reporter = _reporter(recorder, sleeps)

    with pytest.raises(httpx.HTTPStatusError):
        await reporter.update_order("ord_123", "completed", "done", retries=2)

    assert recorder.paths == [PRIMARY, LEGACY, PRIMARY, LEGACY]
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_enum_status_is_sent_as_value(http_recorder, sleeps):
    recorder = http_recorder()
    reporter = _reporter(recorder, sleeps)

    await reporter.update_order("ord_123", WorkflowStatus.INVENTORY_RESERVED, "x")

    assert recorder.payloads[0]["status"] == "inventory_reserved"


def test_urls_strip_trailing_slash():
    reporter = StatusReporter("http://shop:9000/")
    assert reporter.primary_url("o1") == "http://shop:9000/store/orders/o1/workflow-update"
    assert reporter.legacy_url == "http://shop:9000/demo"


def test_from_config_carries_retries_and_timeout():
    reporter = StatusReporter.from_config(
        StorefrontConfig(base_url="http://shop", retries=5, timeout=2.0)
    )
    assert reporter.retries == 5
    assert reporter.legacy_url == "http://shop/demo"
