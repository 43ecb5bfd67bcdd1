from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from fingerprint_grouping.errors import MalformedOutputError

_NUMERIC_FIELDS = ("n", "relatedness", "shared_hets", "shared_hom_alts")


@dataclass(frozen=True, slots=True)
class MatchRecord:
    """One row of a comparison job: ``file`` compared to the queried item."""

    file: str
    n: int
    relatedness: float
    shared_hets: int
    shared_hom_alts: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MatchRecord":
        if not isinstance(payload, Mapping):
            raise MalformedOutputError(f"match row is not a mapping: {payload!r}")
        try:
            file = payload["file"]
            values = {name: payload[name] for name in _NUMERIC_FIELDS}
        except KeyError as exc:
            raise MalformedOutputError(f"match row is missing field {exc.args[0]!r}") from exc

        if not isinstance(file, str) or not file:
            raise MalformedOutputError(f"match row has no usable file: {payload!r}")
        try:
            return cls(
                file=file,
                n=_count(values["n"]),
                relatedness=float(values["relatedness"]),
                shared_hets=_count(values["shared_hets"]),
                shared_hom_alts=_count(values["shared_hom_alts"]),
            )
        except (TypeError, ValueError, OverflowError) as exc:
            raise MalformedOutputError(f"match row has invalid numeric values: {payload!r}") from exc


def _count(value: Any) -> int:
    if isinstance(value, int):
        return value
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"{value!r} is not a whole number")
    return int(number)


@dataclass(frozen=True, slots=True)
class EmptyResult:
    """The job matched nothing, not even the queried item itself."""

    query_key: str

    @property
    def keys(self) -> frozenset[str]:
        return frozenset()


@dataclass(frozen=True, slots=True)
class SelfOnlyResult:
    """The queried item only matched itself: a new, unrelated individual."""

    query_key: str
    record: MatchRecord

    @property
    def keys(self) -> frozenset[str]:
        return frozenset({self.record.file})


@dataclass(frozen=True, slots=True)
class GroupResult:
    """The queried item is related to one or more peers."""

    query_key: str
    records: tuple[MatchRecord, ...]

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(record.file for record in self.records)


RawResult = EmptyResult | SelfOnlyResult | GroupResult


def classify_result(query_key: str, records: Sequence[MatchRecord]) -> RawResult:
    if not records:
        return EmptyResult(query_key=query_key)
    if len(records) == 1 and records[0].file == query_key:
        return SelfOnlyResult(query_key=query_key, record=records[0])
    return GroupResult(query_key=query_key, records=tuple(records))


@dataclass(frozen=True, slots=True)
class MatchMember:
    """Match attributes of one item in a group, enriched with derived identities."""

    subject: str | None
    library: str | None
    base: str
    n: int | None = None
    relatedness: float | None = None
    shared_hets: int | None = None
    shared_hom_alts: int | None = None


@dataclass(frozen=True)
class MatchGroup:
    """A deduplicated cluster of related items keyed by item key."""

    members: Mapping[str, MatchMember]

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self.members)

    @property
    def subject_ids(self) -> set[str]:
        return {member.subject for member in self.members.values() if member.subject}

    def __getitem__(self, key: str) -> MatchMember:
        return self.members[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)


@dataclass(frozen=True, slots=True)
class ExpectedMatch:
    subject_id: str
    count: int


class ItemOutcome(StrEnum):
    UNMATCHED = "UNMATCHED"
    EXPECTED = "EXPECTED"
    REPORTABLE = "REPORTABLE"


@dataclass(slots=True)
class GroupingReport:
    unmatched_subject_ids: list[str] = field(default_factory=list)
    expected_matches: list[ExpectedMatch] = field(default_factory=list)
    reportable_groups: list[MatchGroup] = field(default_factory=list)
    outcomes: dict[str, ItemOutcome] = field(default_factory=dict)


class JobState(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    ABORTED = "ABORTED"

    @property
    def in_progress(self) -> bool:
        return self in (JobState.PENDING, JobState.RUNNING)


@dataclass(frozen=True, slots=True)
class JobStatus:
    """Snapshot of a remote comparison execution."""

    state: JobState
    output: str | Sequence[Mapping[str, Any]] | None = None


@dataclass(frozen=True, slots=True)
class FingerprintObject:
    key: str
    last_modified: datetime


@dataclass(frozen=True, slots=True)
class ObjectPage:
    objects: list[FingerprintObject]
    next_token: str | None = None
