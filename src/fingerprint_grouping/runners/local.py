from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from fingerprint_grouping.errors import BatchTimeoutError
from fingerprint_grouping.interfaces import ComparisonService, Dispatcher, GroupResolver
from fingerprint_grouping.models import GroupingReport
from fingerprint_grouping.settings import DEFAULT_DEADLINE_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS
from fingerprint_grouping.steps.dispatch import StepsDispatcher
from fingerprint_grouping.steps.resolve import SubsetGroupResolver

logger = logging.getLogger(__name__)


class LocalGroupingPipeline:
    """Fans a batch out to the comparison service and resolves the results into groups."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        resolver: GroupResolver,
        deadline: float = DEFAULT_DEADLINE_SECONDS,
    ) -> None:
        self._dispatcher = dispatcher
        self._resolver = resolver
        self._deadline = deadline

    async def run(self, items: Sequence[str]) -> GroupingReport:
        if not items:
            return GroupingReport()

        try:
            async with asyncio.timeout(self._deadline):
                results = await self._dispatcher.dispatch(items)
        except TimeoutError as exc:
            logger.error("Grouping of %d items exceeded the %gs deadline", len(items), self._deadline)
            raise BatchTimeoutError(self._deadline) from exc

        return self._resolver.resolve(results)


async def resolve_groups(
    items: Sequence[str],
    concurrency_limit: int,
    relatedness_threshold: float,
    exclude_pattern: str,
    *,
    service: ComparisonService,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    deadline: float = DEFAULT_DEADLINE_SECONDS,
) -> GroupingReport:
    """Check every item against the fingerprint pool and group the related ones.

    Raises ``AggregateJobFailure`` if any single comparison fails and
    ``BatchTimeoutError`` if the whole batch outlives ``deadline`` seconds.
    """
    pipeline = LocalGroupingPipeline(
        dispatcher=StepsDispatcher(
            service=service,
            concurrency=concurrency_limit,
            relatedness_threshold=relatedness_threshold,
            exclude_pattern=exclude_pattern,
            poll_interval=poll_interval,
        ),
        resolver=SubsetGroupResolver(),
        deadline=deadline,
    )
    return await pipeline.run(items)
