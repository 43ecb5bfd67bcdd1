from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from fingerprint_grouping.models import GroupingReport, JobStatus, ObjectPage, RawResult


class ComparisonService(Protocol):
    """Remote fingerprint check: one long-running execution per queried item."""

    async def submit(self, query_key: str, relatedness_threshold: float, exclude_pattern: str) -> str | None:
        ...

    async def poll(self, handle: str) -> JobStatus:
        ...


class ItemEnumerator(Protocol):
    """Lists fingerprint artifacts one page at a time."""

    async def list_page(self, bucket: str, prefix: str, continuation_token: str | None = None) -> ObjectPage:
        ...


class ServiceLocator(Protocol):
    """Returns the attribute maps of every instance registered under a service name."""

    async def discover(self, namespace: str, service: str) -> Sequence[Mapping[str, str]]:
        ...


class SecretProvider(Protocol):
    async def get_secret(self, secret_id: str) -> str | None:
        ...


class ReportingSink(Protocol):
    async def post_message(self, channel: str, text: str) -> Any:
        ...


class Dispatcher(Protocol):
    """Fan-out: one comparison job per item, results in input order."""

    async def dispatch(self, query_keys: Sequence[str]) -> list[RawResult]:
        ...


class GroupResolver(Protocol):
    """Fan-in: reduce redundant raw result sets to a grouping report."""

    def resolve(self, results: Sequence[RawResult]) -> GroupingReport:
        ...
