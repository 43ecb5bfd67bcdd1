from fingerprint_grouping.runners.batch import (
    FingerprintBatch,
    iter_fingerprint_objects,
    locate_comparison_service,
    reporting_token,
    run_grouping_command,
    select_batch,
)
from fingerprint_grouping.runners.local import LocalGroupingPipeline, resolve_groups

__all__ = [
    "FingerprintBatch",
    "LocalGroupingPipeline",
    "iter_fingerprint_objects",
    "locate_comparison_service",
    "reporting_token",
    "resolve_groups",
    "run_grouping_command",
    "select_batch",
]
