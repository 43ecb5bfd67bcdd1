from __future__ import annotations

from typing import Any


def bam(subject: str | None, library: str, folder: str = "2023/230714_A01052_0153") -> str:
    if subject is None:
        return f"gds://production/analysis/{folder}/unsorted/{library}-tumor.bam"
    return f"gds://production/analysis/{folder}/{subject}/WGS/{subject}__{library}-tumor.bam"


def row(file: str, relatedness: float = 0.95, n: int = 5000) -> dict[str, Any]:
    return {"file": file, "n": n, "relatedness": relatedness, "shared_hets": 1800, "shared_hom_alts": 700}
