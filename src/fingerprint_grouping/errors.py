from __future__ import annotations


class GroupingError(Exception):
    """Base class for failures of a fingerprint grouping run."""


class JobError(GroupingError):
    """A single comparison job could not produce a result set."""

    def __init__(self, message: str, query_key: str | None = None) -> None:
        super().__init__(message)
        self.query_key = query_key


class SubmissionError(JobError):
    """The comparison service did not hand back an execution handle."""


class ExecutionError(JobError):
    """The remote execution failed, was aborted, or could not be polled."""


class MalformedOutputError(JobError):
    """The execution succeeded but its output is not a result set."""


class AggregateJobFailure(GroupingError):
    """One job of a batch failed, so the whole batch is abandoned."""

    def __init__(self, query_key: str | None, total_jobs: int) -> None:
        super().__init__(
            "One of the fingerprint comparison executions failed so the whole check was abandoned "
            f"(item={query_key}, jobs={total_jobs}); this can be caused by too many concurrent "
            "executions, consider lowering the concurrency"
        )
        self.query_key = query_key
        self.total_jobs = total_jobs


class BatchTimeoutError(GroupingError):
    def __init__(self, deadline: float) -> None:
        super().__init__(f"Fingerprint grouping did not finish within {deadline:g} seconds")
        self.deadline = deadline


class ServiceNotFoundError(GroupingError):
    pass


class SecretNotFoundError(GroupingError):
    pass
