"""In-memory engine and engine factory tests."""

from types import SimpleNamespace

import pytest

from orderflow import JobFailure, TaskType
from orderflow.config import OrderflowConfig, ZeebeConfig
from orderflow.constants import ORDER_PROCESS_ID
from orderflow.engine import InMemoryEngine, get_engine
from orderflow.errors import EngineError


async def _next_job(engine, task_type, lifespan=1.0):
    async for job in engine.activate_jobs(task_type.value, lifespan=lifespan):
        return job
    return None


@pytest.mark.asyncio
async def test_create_instance_queues_first_task(engine):
    instance = await engine.create_process_instance(
        ORDER_PROCESS_ID, {"orderId": "ord_123"}
    )

    assert instance.process_instance_key == "pik_1"
    job = await _next_job(engine, TaskType.VERIFY_PAYMENT)
    assert job.type is TaskType.VERIFY_PAYMENT
    assert job.order_id == "ord_123"
    assert job.process_instance_key == "pik_1"


@pytest.mark.asyncio
async def test_complete_advances_and_threads_variables(engine):
    await engine.create_process_instance(ORDER_PROCESS_ID, {"orderId": "ord_1"})

    job = await _next_job(engine, TaskType.VERIFY_PAYMENT)
    await engine.complete_job(job, {"paymentVerified": True})
    job = await _next_job(engine, TaskType.RESERVE_INVENTORY)
    await engine.complete_job(job, {"warehouse": "Chennai"})
    job = await _next_job(engine, TaskType.SEND_NOTIFICATION)

    assert job.variables["warehouse"] == "Chennai"
    assert job.variables["paymentVerified"] is True

    await engine.complete_job(job, {"notificationSent": True})
    assert engine.instances["pik_1"].status == "completed"
    assert len(engine.completed) == 3


@pytest.mark.asyncio
async def test_fail_with_retries_waits_for_backoff(engine):
    await engine.create_process_instance(ORDER_PROCESS_ID, {"orderId": "ord_1"})
    job = await _next_job(engine, TaskType.VERIFY_PAYMENT)

    await engine.fail_job(job, JobFailure(error_message="boom"))

    assert engine.failures[0][1].retry_back_off == 5000
    assert await _next_job(engine, TaskType.VERIFY_PAYMENT, lifespan=0.1) is None


@pytest.mark.asyncio
async def test_fail_redelivers_after_backoff(engine):
    await engine.create_process_instance(ORDER_PROCESS_ID, {"orderId": "ord_1"})
    job = await _next_job(engine, TaskType.VERIFY_PAYMENT)

    await engine.fail_job(job, JobFailure(error_message="boom", retries=2, retry_back_off=0))

    retried = await _next_job(engine, TaskType.VERIFY_PAYMENT)
    assert retried.key == job.key
    assert retried.retries == 2


@pytest.mark.asyncio
async def test_fail_without_retries_raises_incident(engine):
    await engine.create_process_instance(ORDER_PROCESS_ID, {"orderId": "ord_1"})
    job = await _next_job(engine, TaskType.VERIFY_PAYMENT)

    await engine.fail_job(job, JobFailure(error_message="boom", retries=0))

    assert engine.instances["pik_1"].status == "incident"


@pytest.mark.asyncio
async def test_unknown_definition_and_job_are_rejected(engine):
    with pytest.raises(EngineError):
        await engine.create_process_instance("nope", {})

    await engine.create_process_instance(ORDER_PROCESS_ID, {"orderId": "ord_1"})
    job = await _next_job(engine, TaskType.VERIFY_PAYMENT)
    await engine.complete_job(job, {})
    with pytest.raises(EngineError):
        await engine.complete_job(job, {})


def test_failure_serializes_with_engine_names():
    failure = JobFailure(error_message="boom")
    assert failure.model_dump(by_alias=True) == {
        "errorMessage": "boom",
        "retries": 3,
        "retryBackOff": 5000,
    }


def test_get_engine_backends():
    assert isinstance(get_engine("inmemory", config=OrderflowConfig()), InMemoryEngine)
    with pytest.raises(ValueError):
        get_engine("carrier-pigeon", config=OrderflowConfig())


def test_zeebe_engine_from_config():
    pytest.importorskip("pyzeebe")
    from orderflow.engine.zeebe import ZeebeEngine

    config = OrderflowConfig()
    with pytest.raises(ValueError):
        get_engine("zeebe", config=config)

    config.engine.zeebe.address = "cluster.zeebe.example:443"
    engine = get_engine("zeebe", config=config)
    assert isinstance(engine, ZeebeEngine)
    assert engine.config.address == "cluster.zeebe.example:443"


def _raw_job(key=2251799813685249, task_type="verify-payment"):
    return SimpleNamespace(
        key=key,
        type=task_type,
        process_instance_key=2251799813685250,
        variables={"orderId": "ord_123"},
        retries=3,
    )


class FakeZeebeClient:
    def __init__(self):
        self.calls = []

    async def run_process(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(process_instance_key=2251799813685250)


class FakeZeebeAdapter:
    """Records gateway calls; each activation returns the next batch or raises it."""

    def __init__(self, batches=()):
        self.batches = list(batches)
        self.activations = []
        self.completed = []
        self.failed = []

    async def activate_jobs(self, **kwargs):
        self.activations.append(kwargs)
        batch = self.batches.pop(0) if self.batches else []
        if isinstance(batch, Exception):
            raise batch
        for raw in batch:
            yield raw

    async def complete_job(self, **kwargs):
        self.completed.append(kwargs)

    async def fail_job(self, **kwargs):
        self.failed.append(kwargs)


@pytest.fixture
def zeebe_engine(sleeps):
    pytest.importorskip("pyzeebe")
    from orderflow.engine.zeebe import ZeebeEngine

    engine = ZeebeEngine(
        ZeebeConfig(address="localhost:26500", insecure=True), sleep=sleeps
    )
    engine._client = FakeZeebeClient()
    engine._adapter = FakeZeebeAdapter()
    return engine


async def _first_job(engine, task_type="verify-payment"):
    async for job in engine.activate_jobs(task_type, lifespan=1.0):
        return job
    return None


@pytest.mark.asyncio
async def test_zeebe_run_process_passes_variables(zeebe_engine):
    instance = await zeebe_engine.create_process_instance(
        ORDER_PROCESS_ID, {"orderId": "ord_123"}
    )

    assert zeebe_engine._client.calls == [
        {"bpmn_process_id": ORDER_PROCESS_ID, "variables": {"orderId": "ord_123"}}
    ]
    assert instance.process_instance_key == "2251799813685250"


@pytest.mark.asyncio
async def test_zeebe_activated_job_becomes_task_job(zeebe_engine):
    zeebe_engine._adapter.batches = [[_raw_job()]]

    job = await _first_job(zeebe_engine)

    assert job.key == "2251799813685249"
    assert job.type is TaskType.VERIFY_PAYMENT
    assert job.process_instance_key == "2251799813685250"
    assert job.order_id == "ord_123"
    assert job.retries == 3

    request = zeebe_engine._adapter.activations[0]
    assert request["task_type"] == "verify-payment"
    assert request["worker"] == "orderflow-worker"
    assert request["timeout"] == 60_000
    assert request["max_jobs_to_activate"] == 32


@pytest.mark.asyncio
async def test_zeebe_complete_and_fail_use_numeric_keys(zeebe_engine):
    zeebe_engine._adapter.batches = [[_raw_job()]]
    job = await _first_job(zeebe_engine)

    await zeebe_engine.complete_job(job, {"paymentVerified": True})
    await zeebe_engine.fail_job(
        job, JobFailure(error_message="Inventory not available - items out of stock")
    )

    assert zeebe_engine._adapter.completed == [
        {"job_key": 2251799813685249, "variables": {"paymentVerified": True}}
    ]
    assert zeebe_engine._adapter.failed == [
        {
            "job_key": 2251799813685249,
            "retries": 3,
            "message": "Inventory not available - items out of stock",
            "retry_back_off_ms": 5000,
            "variables": {},
        }
    ]


@pytest.mark.asyncio
async def test_zeebe_activation_error_backs_off_and_repolls(zeebe_engine, sleeps):
    zeebe_engine._adapter.batches = [
        ConnectionError("gateway unavailable"),
        [_raw_job()],
    ]

    job = await _first_job(zeebe_engine)

    assert job.key == "2251799813685249"
    assert len(zeebe_engine._adapter.activations) == 2
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_zero_lifespan_stops_polling_at_once(engine):
    await engine.create_process_instance(ORDER_PROCESS_ID, {"orderId": "ord_1"})

    assert await _next_job(engine, TaskType.VERIFY_PAYMENT, lifespan=0) is None
