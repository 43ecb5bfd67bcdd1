"""Fan-out/fan-in grouping of genomic identity fingerprints by biological subject."""

from fingerprint_grouping.errors import AggregateJobFailure, BatchTimeoutError, GroupingError
from fingerprint_grouping.models import (
    EmptyResult,
    ExpectedMatch,
    GroupingReport,
    GroupResult,
    MatchGroup,
    MatchMember,
    MatchRecord,
    SelfOnlyResult,
)
from fingerprint_grouping.runners.local import LocalGroupingPipeline, resolve_groups

__all__ = [
    "AggregateJobFailure",
    "BatchTimeoutError",
    "EmptyResult",
    "ExpectedMatch",
    "GroupingError",
    "GroupingReport",
    "GroupResult",
    "LocalGroupingPipeline",
    "MatchGroup",
    "MatchMember",
    "MatchRecord",
    "SelfOnlyResult",
    "resolve_groups",
]
