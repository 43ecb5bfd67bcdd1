from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any

from fingerprint_grouping.datasets.profiles import DEFAULT_EXCLUDE_PATTERN
from fingerprint_grouping.errors import (
    AggregateJobFailure,
    ExecutionError,
    JobError,
    MalformedOutputError,
    SubmissionError,
)
from fingerprint_grouping.interfaces import ComparisonService
from fingerprint_grouping.models import JobState, JobStatus, MatchRecord, RawResult, classify_result
from fingerprint_grouping.settings import DEFAULT_POLL_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class StepsDispatcher:
    """Runs one comparison execution per item with a cap on executions in flight.

    The cap protects the comparison service, which has a hard limit on concurrent
    invocations. A permit is held from submission until the execution is terminal.
    """

    def __init__(
        self,
        service: ComparisonService,
        concurrency: int = 5,
        relatedness_threshold: float = 0.75,
        exclude_pattern: str = DEFAULT_EXCLUDE_PATTERN,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._service = service
        self._concurrency = concurrency
        self._relatedness_threshold = relatedness_threshold
        self._exclude_pattern = exclude_pattern
        self._poll_interval = poll_interval

    async def dispatch(self, query_keys: Sequence[str]) -> list[RawResult]:
        keys = list(query_keys)
        slots: list[RawResult | None] = [None] * len(keys)
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_slot(index: int, key: str) -> None:
            async with semaphore:
                try:
                    slots[index] = await self.run_job(key)
                except JobError:
                    raise
                except Exception as exc:
                    raise ExecutionError(f"Comparison job for {key} failed unexpectedly", key) from exc

        logger.info("Dispatching %d comparison jobs (concurrency=%d)", len(keys), self._concurrency)
        try:
            async with asyncio.TaskGroup() as group:
                for index, key in enumerate(keys):
                    group.create_task(run_slot(index, key))
        except ExceptionGroup as failures:
            error = _first_leaf(failures)
            logger.error("Comparison job for %s failed: %s", error.query_key, error)
            raise AggregateJobFailure(error.query_key, len(keys)) from error

        return [slot for slot in slots if slot is not None]

    async def run_job(self, query_key: str) -> RawResult:
        try:
            handle = await self._service.submit(query_key, self._relatedness_threshold, self._exclude_pattern)
        except Exception as exc:
            raise SubmissionError(f"Comparison job for {query_key} could not be started", query_key) from exc
        if not handle:
            raise SubmissionError(f"Comparison job for {query_key} returned no execution handle", query_key)

        status = await self._poll_until_terminal(query_key, handle)
        if status.state is not JobState.SUCCEEDED:
            raise ExecutionError(
                f"Comparison job {handle} for {query_key} finished with status {status.state}",
                query_key,
            )

        records = parse_result_rows(status.output, query_key)
        logger.debug("Comparison job %s for %s returned %d rows", handle, query_key, len(records))
        return classify_result(query_key, records)

    async def _poll_until_terminal(self, query_key: str, handle: str) -> JobStatus:
        while True:
            try:
                status = await self._service.poll(handle)
            except Exception as exc:
                raise ExecutionError(f"Comparison job {handle} for {query_key} could not be polled", query_key) from exc
            if not status.state.in_progress:
                return status
            await asyncio.sleep(self._poll_interval)


def parse_result_rows(output: Any, query_key: str) -> list[MatchRecord]:
    """Turn an execution's output (JSON text or decoded rows) into match records."""
    if output is None:
        raise MalformedOutputError(f"Comparison job for {query_key} succeeded without output", query_key)
    if isinstance(output, (str, bytes)):
        try:
            output = json.loads(output)
        except ValueError as exc:
            raise MalformedOutputError(f"Comparison job for {query_key} returned invalid JSON", query_key) from exc
    if not isinstance(output, list):
        raise MalformedOutputError(
            f"Comparison job for {query_key} returned {type(output).__name__}, expected a list of rows",
            query_key,
        )

    try:
        return [MatchRecord.from_payload(row) for row in output]
    except MalformedOutputError as exc:
        raise MalformedOutputError(f"Comparison job for {query_key}: {exc}", query_key) from exc


def _first_leaf(group: BaseExceptionGroup) -> JobError:
    first = group.exceptions[0]
    while isinstance(first, BaseExceptionGroup):
        first = first.exceptions[0]
    return first
