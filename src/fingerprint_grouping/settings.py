from __future__ import annotations

from dataclasses import dataclass

from fingerprint_grouping.datasets.profiles import (
    DEFAULT_BUCKET,
    DEFAULT_EXCLUDE_PATTERN,
    DEFAULT_SITES_CHECKSUM,
)

# the hosting platform stops the task shortly after 15 minutes
DEFAULT_DEADLINE_SECONDS = 14 * 60.0
DEFAULT_POLL_INTERVAL_SECONDS = 5.0


@dataclass(frozen=True)
class GroupingSettings:
    """Options for one grouping run over a batch of new fingerprints."""

    channel: str = ""
    bucket: str = DEFAULT_BUCKET
    sites_checksum: str = DEFAULT_SITES_CHECKSUM
    concurrency: int = 5
    relatedness: float = 0.75
    days: int | None = None
    exclude_pattern: str = DEFAULT_EXCLUDE_PATTERN
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    deadline: float = DEFAULT_DEADLINE_SECONDS

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if not 0.0 <= self.relatedness <= 1.0:
            raise ValueError(f"relatedness must be within [0, 1], got {self.relatedness}")
        if self.days is not None and self.days < 0:
            raise ValueError(f"days must not be negative, got {self.days}")
        if self.poll_interval < 0:
            raise ValueError(f"poll_interval must not be negative, got {self.poll_interval}")
        if self.deadline <= 0:
            raise ValueError(f"deadline must be positive, got {self.deadline}")
