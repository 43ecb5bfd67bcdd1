from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from fingerprint_grouping.models import JobState, JobStatus


class RecordedComparisonService:
    """Replays captured execution outputs, keyed by queried item.

    A captured value is either the list of result rows of a successful execution
    or a mapping ``{"status": ..., "output": ...}`` describing any terminal state.
    Items without a capture succeed with no rows.
    """

    def __init__(self, outputs: Mapping[str, Any]) -> None:
        self._outputs = dict(outputs)
        self._handles: dict[str, str] = {}

    @classmethod
    def from_json(cls, path: Path) -> "RecordedComparisonService":
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if not isinstance(payload, dict):
            raise ValueError(f"{path} must hold a JSON object keyed by item")
        return cls(payload)

    @property
    def items(self) -> list[str]:
        return list(self._outputs)

    async def submit(self, query_key: str, relatedness_threshold: float, exclude_pattern: str) -> str:
        handle = f"recorded-{len(self._handles) + 1:05d}"
        self._handles[handle] = query_key
        return handle

    async def poll(self, handle: str) -> JobStatus:
        captured = self._outputs.get(self._handles[handle], [])
        if isinstance(captured, Mapping):
            return JobStatus(state=JobState(captured["status"]), output=captured.get("output"))
        return JobStatus(state=JobState.SUCCEEDED, output=captured)


def write_recorded_outputs(path: Path, outputs: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(dict(outputs), handle, indent=2)
