"""Shared fixtures: recording HTTP stubs and zero-delay simulation."""

import json

import httpx
import pytest

from orderflow.config import SimulationConfig
from orderflow.engine import InMemoryEngine
from orderflow.notifier import SlackNotifier
from orderflow.reporter import StatusReporter
from orderflow.simulation import FulfilmentSimulator
from orderflow.workers import WorkerContext


def fast_simulation(**overrides) -> SimulationConfig:
    values = dict(
        payment_delay=0,
        inventory_check_delay=0,
        reservation_delay=0,
        inventory_processing_delay=0,
        notification_delay=0,
        inventory_pass_rate=1.0,
    )
    values.update(overrides)
    return SimulationConfig(**values)


class RecordingHTTP:
    """httpx.MockTransport handler that records every request."""

    def __init__(self, responder=None):
        self.requests = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._responder is not None:
            return self._responder(request)
        return httpx.Response(200, json={"success": True})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    @property
    def paths(self):
        return [request.url.path for request in self.requests]

    @property
    def payloads(self):
        return [json.loads(request.content) for request in self.requests]


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def storefront_http():
    return RecordingHTTP()


@pytest.fixture
def slack_http():
    return RecordingHTTP()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def engine():
    return InMemoryEngine(poll_interval=0.01)


@pytest.fixture
def make_context(storefront_http, slack_http, sleeps):
    def _make(simulation=None, **kwargs):
        reporter = StatusReporter(
            "http://storefront", client=storefront_http.client(), sleep=sleeps
        )
        notifier = SlackNotifier(
            "https://hooks.slack.test/T000/B000",
            admin_url="http://admin.test/app",
            client=slack_http.client(),
        )
        simulator = FulfilmentSimulator(simulation or fast_simulation())
        return WorkerContext(reporter, notifier, simulator, **kwargs)

    return _make


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep config loading away from the developer's environment."""
    monkeypatch.setenv("ORDERFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    for name in (
        "ORDERFLOW_ENGINE",
        "ZEEBE_ADDRESS",
        "ZEEBE_CLIENT_ID",
        "ZEEBE_CLIENT_SECRET",
        "ZEEBE_TOKEN_AUDIENCE",
        "CAMUNDA_OAUTH_URL",
        "MEDUSA_BACKEND_URL",
        "SLACK_WEBHOOK_URL",
        "SLACK_ADMIN_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fast_sim():
    return fast_simulation


@pytest.fixture
def http_recorder():
    return RecordingHTTP
