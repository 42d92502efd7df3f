import asyncio

import pytest
from prometheus_client import REGISTRY

from src.shared.telemetry import Telemetry, measure_time


class _Worker:
    def __init__(self):
        self.telemetry = Telemetry("Worker")

    @measure_time("worker_sync")
    def work(self, x):
        return x * 2

    @measure_time("worker_async")
    async def work_async(self, x):
        await asyncio.sleep(0)
        return x + 1

    @measure_time("worker_fail")
    def fail(self):
        raise RuntimeError("boom")


def _count(method: str) -> float:
    value = REGISTRY.get_sample_value(
        "exam_method_duration_seconds_count",
        {"component": "_Worker", "method": method},
    )
    return value or 0.0


def test_measure_time_wraps_sync_method():
    worker = _Worker()
    before = _count("work")
    assert worker.work(21) == 42
    assert _count("work") == before + 1


@pytest.mark.asyncio
async def test_measure_time_wraps_coroutine_method():
    worker = _Worker()
    before = _count("work_async")
    assert await worker.work_async(1) == 2
    assert _count("work_async") == before + 1


def test_measure_time_reraises_and_still_observes():
    worker = _Worker()
    before = _count("fail")
    with pytest.raises(RuntimeError, match="boom"):
        worker.fail()
    assert _count("fail") == before + 1


def test_trace_id_is_set_per_context():
    trace = Telemetry.start_trace()
    assert Telemetry.get_trace_id() == trace
    assert len(trace) == 8


def test_record_transition_increments_counter():
    labels = {"from_phase": "ACTIVE", "to_phase": "SUBMITTING"}
    before = REGISTRY.get_sample_value("exam_session_transitions_total", labels) or 0.0
    Telemetry.record_transition("ACTIVE", "SUBMITTING")
    assert REGISTRY.get_sample_value("exam_session_transitions_total", labels) == before + 1
