from fingerprint_grouping.steps.dispatch import StepsDispatcher, parse_result_rows
from fingerprint_grouping.steps.resolve import SubsetGroupResolver, eliminate_subsets

__all__ = [
    "StepsDispatcher",
    "SubsetGroupResolver",
    "eliminate_subsets",
    "parse_result_rows",
]
