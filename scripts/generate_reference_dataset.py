from __future__ import annotations

import argparse
from pathlib import Path

from fingerprint_grouping.datasets.profiles import DEFAULT_EXCLUDE_PATTERN
from fingerprint_grouping.datasets.recorded import write_recorded_outputs
from fingerprint_grouping.datasets.reference import ReferenceFingerprintGenerator, SimulatedComparisonService


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate captured comparison outputs for a synthetic batch")
    parser.add_argument("--subjects", type=int, default=200)
    parser.add_argument("--batch-size", type=int, default=40)
    parser.add_argument("--swap-rate", type=float, default=0.05)
    parser.add_argument("--relatedness", type=float, default=0.75)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output", type=Path, default=Path("data/reference_outputs.json"))
    args = parser.parse_args()

    pool = ReferenceFingerprintGenerator(seed=args.seed).generate(
        subjects=args.subjects,
        batch_size=args.batch_size,
        swap_rate=args.swap_rate,
    )
    service = SimulatedComparisonService(genotypes=pool.genotypes, seed=args.seed)
    write_recorded_outputs(
        args.output,
        {key: service.compare(key, args.relatedness, DEFAULT_EXCLUDE_PATTERN) for key in pool.batch},
    )


if __name__ == "__main__":
    main()
