from __future__ import annotations

import json
import random
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from fingerprint_grouping.models import JobState, JobStatus

_RUN_FOLDERS = ["2023/230714_A01052_0153", "2023/230721_A00130_0271", "2023/230728_A01052_0156"]
_PHENOTYPES = ["tumor", "normal", "germline"]
_ASSAYS = ["WGS", "WTS", "ctTSO"]


@dataclass(slots=True)
class ReferencePool:
    """A synthetic pool of fingerprints and the batch of new arrivals to check."""

    genotypes: dict[str, str]
    batch: list[str]
    swapped: list[str] = field(default_factory=list)

    @property
    def keys(self) -> list[str]:
        return list(self.genotypes)


class ReferenceFingerprintGenerator:
    """Generate fingerprint keys with known origins (including sample swaps) for tests and demos."""

    def __init__(self, seed: int = 7) -> None:
        self._rng = random.Random(seed)

    def generate(
        self,
        subjects: int,
        batch_size: int,
        swap_rate: float = 0.1,
        unlabelled_rate: float = 0.05,
        max_libraries: int = 3,
        controls: int = 2,
    ) -> ReferencePool:
        if subjects <= 0:
            return ReferencePool(genotypes={}, batch=[])

        genotypes: dict[str, str] = {}
        swapped: list[str] = []
        library_counter = 0

        for i in range(1, subjects + 1):
            subject = f"SBJ{i:05d}"
            run = self._rng.choice(_RUN_FOLDERS)
            for _ in range(self._rng.randint(1, max_libraries)):
                library_counter += 1
                library = f"L23{library_counter:05d}"
                if self._rng.random() < unlabelled_rate:
                    key = f"gds://production/analysis/{run}/unsorted/{library}_{self._rng.choice(_PHENOTYPES)}.bam"
                else:
                    assay = self._rng.choice(_ASSAYS)
                    phenotype = self._rng.choice(_PHENOTYPES)
                    key = f"gds://production/analysis/{run}/{subject}/{assay}/{subject}__{library}-{phenotype}.bam"

                genotype = f"genotype-{subject}"
                if subjects > 1 and self._rng.random() < swap_rate:
                    other = self._rng.choice([n for n in range(1, subjects + 1) if n != i])
                    genotype = f"genotype-SBJ{other:05d}"
                    swapped.append(key)
                genotypes[key] = genotype

        for i in range(controls):
            library_counter += 1
            marker = "PTC_" if i % 2 == 0 else "NTC_"
            key = f"gds://production/analysis/{_RUN_FOLDERS[0]}/controls/{marker}L23{library_counter:05d}.bam"
            genotypes[key] = f"genotype-control-{i}"

        candidates = [key for key in genotypes if "controls/" not in key]
        batch = self._rng.sample(candidates, k=min(batch_size, len(candidates)))
        return ReferencePool(genotypes=genotypes, batch=batch, swapped=swapped)


@dataclass(slots=True)
class _Execution:
    query_key: str
    threshold: float
    exclude: re.Pattern[str]
    polls_left: int
    status: JobStatus | None = None


class SimulatedComparisonService:
    """In-process comparison service: items with the same genotype are related.

    Executions report RUNNING for ``polls_until_done`` polls before finishing.
    ``active`` and ``max_active`` count executions between submit and their
    terminal poll.
    """

    def __init__(
        self,
        genotypes: Mapping[str, str],
        polls_until_done: int = 1,
        failing_keys: Sequence[str] = (),
        seed: int = 7,
    ) -> None:
        self._genotypes = dict(genotypes)
        self._polls_until_done = polls_until_done
        self._failing_keys = set(failing_keys)
        self._seed = seed
        self._executions: dict[str, _Execution] = {}
        self.active = 0
        self.max_active = 0

    async def submit(self, query_key: str, relatedness_threshold: float, exclude_pattern: str) -> str:
        handle = f"execution-{len(self._executions) + 1:05d}"
        self._executions[handle] = _Execution(
            query_key=query_key,
            threshold=relatedness_threshold,
            exclude=re.compile(exclude_pattern),
            polls_left=self._polls_until_done,
        )
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return handle

    async def poll(self, handle: str) -> JobStatus:
        execution = self._executions[handle]
        if execution.status is not None:
            return execution.status
        if execution.polls_left > 0:
            execution.polls_left -= 1
            return JobStatus(state=JobState.RUNNING)

        self.active -= 1
        if execution.query_key in self._failing_keys:
            execution.status = JobStatus(state=JobState.FAILED)
        else:
            rows = self.compare(execution.query_key, execution.threshold, execution.exclude.pattern)
            execution.status = JobStatus(state=JobState.SUCCEEDED, output=json.dumps(rows))
        return execution.status

    def compare(self, query_key: str, relatedness_threshold: float, exclude_pattern: str) -> list[dict[str, Any]]:
        genotype = self._genotypes.get(query_key)
        if genotype is None:
            return []

        exclude = re.compile(exclude_pattern)
        rows: list[dict[str, Any]] = []
        for key, other in self._genotypes.items():
            if other != genotype:
                continue
            if key != query_key and exclude.fullmatch(key):
                continue
            rows.append(self._row(query_key, key, relatedness_threshold))
        rows.sort(key=lambda row: row["file"] != query_key)
        return rows

    def _row(self, query_key: str, key: str, relatedness_threshold: float) -> dict[str, Any]:
        # seeded by the unordered pair so A->B and B->A report the same numbers
        pair_rng = random.Random(f"{self._seed}:{':'.join(sorted((query_key, key)))}")
        if key == query_key:
            relatedness = 1.0
        else:
            relatedness = round(pair_rng.uniform(max(relatedness_threshold, 0.8), 1.0), 4)
        n = pair_rng.randint(3000, 9000)
        shared_hets = pair_rng.randint(n // 4, n // 2)
        return {
            "file": key,
            "n": n,
            "relatedness": relatedness,
            "shared_hets": shared_hets,
            "shared_hom_alts": pair_rng.randint(n // 10, n // 4),
        }
