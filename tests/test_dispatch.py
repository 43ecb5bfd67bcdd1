from __future__ import annotations

import asyncio
import json

import pytest
from helpers import bam, row

from fingerprint_grouping.datasets.reference import SimulatedComparisonService
from fingerprint_grouping.errors import (
    AggregateJobFailure,
    ExecutionError,
    MalformedOutputError,
    SubmissionError,
)
from fingerprint_grouping.models import (
    EmptyResult,
    GroupResult,
    JobState,
    JobStatus,
    MatchRecord,
    SelfOnlyResult,
    classify_result,
)
from fingerprint_grouping.steps.dispatch import StepsDispatcher, parse_result_rows


class ScriptedService:
    """Replays a fixed sequence of statuses per item; the last status repeats."""

    def __init__(self, scripts: dict[str, list[JobStatus]], no_handle_for: tuple[str, ...] = ()) -> None:
        self._scripts = scripts
        self._no_handle_for = no_handle_for
        self._polls: dict[str, int] = {}
        self.submitted: list[tuple[str, float, str]] = []
        self.completed: list[str] = []

    async def submit(self, query_key: str, relatedness_threshold: float, exclude_pattern: str) -> str | None:
        self.submitted.append((query_key, relatedness_threshold, exclude_pattern))
        if query_key in self._no_handle_for:
            return None
        return f"handle:{query_key}"

    async def poll(self, handle: str) -> JobStatus:
        key = handle.removeprefix("handle:")
        script = self._scripts[key]
        index = self._polls.get(key, 0)
        self._polls[key] = index + 1
        status = script[min(index, len(script) - 1)]
        if not status.state.in_progress:
            self.completed.append(key)
        return status


def _running(times: int) -> list[JobStatus]:
    return [JobStatus(state=JobState.RUNNING)] * times


def _done(*files: str) -> JobStatus:
    return JobStatus(state=JobState.SUCCEEDED, output=json.dumps([row(file) for file in files]))


@pytest.mark.asyncio
async def test_concurrency_cap_is_respected() -> None:
    keys = [bam(f"SBJ000{i:02d}", f"L21000{i:02d}") for i in range(10)]
    service = SimulatedComparisonService(genotypes={key: key for key in keys}, polls_until_done=2)

    results = await StepsDispatcher(service, concurrency=3, poll_interval=0).dispatch(keys)

    assert service.max_active == 3
    assert service.active == 0
    assert all(isinstance(result, SelfOnlyResult) for result in results)


@pytest.mark.asyncio
async def test_results_follow_input_order_not_completion_order() -> None:
    a1 = bam("SBJ00001", "L2100001")
    a2 = bam("SBJ00001", "L2100002")
    b1 = bam("SBJ00002", "L2100003")
    service = ScriptedService(
        {
            a1: _running(4) + [_done(a1, a2)],
            a2: _running(2) + [_done(a2, a1)],
            b1: [_done(b1)],
        }
    )

    results = await StepsDispatcher(service, concurrency=3, poll_interval=0).dispatch([a1, a2, b1])

    assert service.completed == [b1, a2, a1]
    assert [result.query_key for result in results] == [a1, a2, b1]
    assert isinstance(results[0], GroupResult)
    assert isinstance(results[2], SelfOnlyResult)


@pytest.mark.asyncio
async def test_submission_carries_threshold_and_exclusion() -> None:
    b1 = bam("SBJ00002", "L2100003")
    service = ScriptedService({b1: [_done(b1)]})

    await StepsDispatcher(service, relatedness_threshold=0.8, exclude_pattern=".*PTC_.*", poll_interval=0).run_job(b1)

    assert service.submitted == [(b1, 0.8, ".*PTC_.*")]


@pytest.mark.asyncio
@pytest.mark.parametrize("state", [JobState.FAILED, JobState.ABORTED])
async def test_failed_execution_aborts_the_batch(state: JobState) -> None:
    good = bam("SBJ00001", "L2100001")
    bad = bam("SBJ00002", "L2100003")
    service = ScriptedService({good: [_done(good)], bad: _running(1) + [JobStatus(state=state)]})

    with pytest.raises(AggregateJobFailure) as excinfo:
        await StepsDispatcher(service, poll_interval=0).dispatch([good, bad])

    assert excinfo.value.query_key == bad
    assert isinstance(excinfo.value.__cause__, ExecutionError)


@pytest.mark.asyncio
async def test_missing_handle_aborts_the_batch() -> None:
    b1 = bam("SBJ00002", "L2100003")
    service = ScriptedService({b1: [_done(b1)]}, no_handle_for=(b1,))

    with pytest.raises(AggregateJobFailure) as excinfo:
        await StepsDispatcher(service, poll_interval=0).dispatch([b1])

    assert isinstance(excinfo.value.__cause__, SubmissionError)


@pytest.mark.asyncio
async def test_failure_cancels_jobs_still_in_flight() -> None:
    slow = [bam("SBJ00001", f"L210000{i}") for i in range(1, 4)]
    bad = bam("SBJ00002", "L2100009")
    scripts = {key: [JobStatus(state=JobState.RUNNING)] for key in slow}
    scripts[bad] = [JobStatus(state=JobState.FAILED)]
    service = ScriptedService(scripts)

    with pytest.raises(AggregateJobFailure):
        await asyncio.wait_for(StepsDispatcher(service, concurrency=5, poll_interval=0).dispatch([*slow, bad]), 5)

    assert service.completed == [bad]


@pytest.mark.asyncio
async def test_malformed_output_is_an_execution_failure() -> None:
    b1 = bam("SBJ00002", "L2100003")
    service = ScriptedService({b1: [JobStatus(state=JobState.SUCCEEDED, output="{not json")]})

    with pytest.raises(MalformedOutputError):
        await StepsDispatcher(service, poll_interval=0).run_job(b1)


@pytest.mark.asyncio
async def test_poll_transport_error_is_wrapped() -> None:
    class BrokenService(ScriptedService):
        async def poll(self, handle: str) -> JobStatus:
            raise ConnectionError("throttled")

    b1 = bam("SBJ00002", "L2100003")

    with pytest.raises(ExecutionError) as excinfo:
        await StepsDispatcher(BrokenService({}), poll_interval=0).run_job(b1)

    assert excinfo.value.query_key == b1
    assert isinstance(excinfo.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_empty_output_is_an_empty_result() -> None:
    b1 = bam("SBJ00002", "L2100003")
    service = ScriptedService({b1: [JobStatus(state=JobState.SUCCEEDED, output="[]")]})

    result = await StepsDispatcher(service, poll_interval=0).run_job(b1)

    assert result == EmptyResult(query_key=b1)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "output",
    [
        b"[\x80]",
        '[{"file": "x", "n": Infinity, "relatedness": 1.0, "shared_hets": 1, "shared_hom_alts": 1}]',
        '[{"file": "x", "n": 12.7, "relatedness": 1.0, "shared_hets": 1, "shared_hom_alts": 1}]',
    ],
)
async def test_undecodable_output_aborts_the_batch(output: str | bytes) -> None:
    b1 = bam("SBJ00002", "L2100003")
    service = ScriptedService({b1: [JobStatus(state=JobState.SUCCEEDED, output=output)]})

    with pytest.raises(AggregateJobFailure) as excinfo:
        await StepsDispatcher(service, poll_interval=0).dispatch([b1])

    assert excinfo.value.query_key == b1
    assert isinstance(excinfo.value.__cause__, MalformedOutputError)


@pytest.mark.asyncio
async def test_unexpected_job_error_aborts_the_batch() -> None:
    class GarbledService(ScriptedService):
        async def poll(self, handle: str) -> JobStatus:
            return None  # type: ignore[return-value]

    b1 = bam("SBJ00002", "L2100003")

    with pytest.raises(AggregateJobFailure) as excinfo:
        await StepsDispatcher(GarbledService({}), poll_interval=0).dispatch([b1])

    assert isinstance(excinfo.value.__cause__, ExecutionError)
    assert isinstance(excinfo.value.__cause__.__cause__, AttributeError)


def test_parse_result_rows_accepts_decoded_rows() -> None:
    b1 = bam("SBJ00002", "L2100003")

    records = parse_result_rows([row(b1, relatedness=1.0)], b1)

    assert records[0].file == b1
    assert records[0].relatedness == 1.0


@pytest.mark.parametrize(
    "output",
    [
        None,
        b"[\x80]",
        {"file": "x"},
        [{"file": "x", "n": 1}],
        [{"file": "x", "n": 12.7, "relatedness": 1, "shared_hets": 1, "shared_hom_alts": 1}],
        [{"file": "x", "n": "many", "relatedness": 1, "shared_hets": 1, "shared_hom_alts": 1}],
    ],
)
def test_parse_result_rows_rejects_malformed_output(output: object) -> None:
    with pytest.raises(MalformedOutputError):
        parse_result_rows(output, "query")


def test_lone_peer_row_is_not_self_only() -> None:
    a1 = bam("SBJ00001", "L2100001")
    a2 = bam("SBJ00001", "L2100002")

    result = classify_result(a1, [MatchRecord.from_payload(row(a2))])

    assert isinstance(result, GroupResult)


def test_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        StepsDispatcher(ScriptedService({}), concurrency=0)
