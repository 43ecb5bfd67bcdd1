from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fingerprint_grouping import report as messages
from fingerprint_grouping.datasets.recorded import RecordedComparisonService, write_recorded_outputs
from fingerprint_grouping.datasets.reference import ReferenceFingerprintGenerator, SimulatedComparisonService
from fingerprint_grouping.errors import GroupingError
from fingerprint_grouping.interfaces import ComparisonService
from fingerprint_grouping.models import GroupingReport, ItemOutcome
from fingerprint_grouping.runners.local import resolve_groups
from fingerprint_grouping.settings import GroupingSettings

logger = logging.getLogger(__name__)

_DEFAULTS = GroupingSettings()


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return

    settings = GroupingSettings(
        concurrency=args.concurrency,
        relatedness=args.relatedness,
        exclude_pattern=args.exclude_pattern,
        poll_interval=args.poll_interval,
        deadline=args.deadline,
    )
    try:
        if args.command == "run-test":
            run_test(
                settings=settings,
                subjects=args.subjects,
                batch_size=args.batch_size,
                swap_rate=args.swap_rate,
                seed=args.seed,
                output_dir=args.output_dir,
            )
        elif args.command == "resolve":
            resolve(settings=settings, input_json=args.input_json, output_dir=args.output_dir)
    except GroupingError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc


def run_test(
    *,
    settings: GroupingSettings,
    subjects: int,
    batch_size: int,
    swap_rate: float,
    seed: int,
    output_dir: Path,
) -> GroupingReport:
    output_dir.mkdir(parents=True, exist_ok=True)

    pool = ReferenceFingerprintGenerator(seed=seed).generate(
        subjects=subjects,
        batch_size=batch_size,
        swap_rate=swap_rate,
    )
    service = SimulatedComparisonService(genotypes=pool.genotypes, seed=seed)

    captured_path = output_dir / "recorded_outputs.json"
    write_recorded_outputs(
        captured_path,
        {key: service.compare(key, settings.relatedness, settings.exclude_pattern) for key in pool.batch},
    )

    report = _run(settings, pool.batch, service)
    _write_outputs(output_dir, report, item_count=len(pool.batch), extra={"recorded_outputs_path": str(captured_path)})
    return report


def resolve(*, settings: GroupingSettings, input_json: Path, output_dir: Path) -> GroupingReport:
    output_dir.mkdir(parents=True, exist_ok=True)
    service = RecordedComparisonService.from_json(input_json)
    report = _run(settings, service.items, service)
    _write_outputs(output_dir, report, item_count=len(service.items), extra={"input_path": str(input_json)})
    return report


def _run(settings: GroupingSettings, items: list[str], service: ComparisonService) -> GroupingReport:
    return asyncio.run(
        resolve_groups(
            items,
            settings.concurrency,
            settings.relatedness,
            settings.exclude_pattern,
            service=service,
            poll_interval=settings.poll_interval,
            deadline=settings.deadline,
        )
    )


def _write_outputs(output_dir: Path, report: GroupingReport, item_count: int, extra: dict[str, str]) -> None:
    groups_path = output_dir / "groups.json"
    summary_path = output_dir / "summary.json"

    _write_json(groups_path, _groups_payload(report))
    summary = {**_build_summary(report, item_count=item_count), "groups_path": str(groups_path), **extra}
    _write_json(summary_path, summary)

    print(f"Groups: {groups_path}")
    print(f"Summary: {summary_path}")
    print("---")
    for key in ("item_count", "unmatched_count", "expected_group_count", "reportable_group_count"):
        print(f"{key}={summary[key]}")
    print("---")
    for text in messages.render_messages(report):
        print(text)


def _build_summary(report: GroupingReport, item_count: int) -> dict[str, Any]:
    outcome_counts = {outcome.value: 0 for outcome in ItemOutcome}
    for outcome in report.outcomes.values():
        outcome_counts[outcome.value] += 1
    group_sizes = [len(group) for group in report.reportable_groups]

    return {
        "item_count": item_count,
        "unmatched_count": len(report.unmatched_subject_ids),
        "expected_group_count": len(report.expected_matches),
        "reportable_group_count": len(report.reportable_groups),
        "max_reportable_group_size": max(group_sizes) if group_sizes else 0,
        "items_by_outcome": outcome_counts,
    }


def _groups_payload(report: GroupingReport) -> dict[str, Any]:
    return {
        "unmatched_subject_ids": sorted(report.unmatched_subject_ids),
        "expected_matches": [asdict(match) for match in report.expected_matches],
        "reportable_groups": [
            {key: asdict(member) for key, member in group.members.items()} for group in report.reportable_groups
        ],
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fingerprint-grouping",
        description="Group newly fingerprinted samples against the existing fingerprint pool",
    )
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    subparsers = parser.add_subparsers(dest="command")

    run_test_parser = subparsers.add_parser(
        "run-test",
        help="Generate a synthetic fingerprint pool, group a batch of it, and output groups + summary",
    )
    run_test_parser.add_argument("--subjects", type=int, default=40)
    run_test_parser.add_argument("--batch-size", type=int, default=12)
    run_test_parser.add_argument("--swap-rate", type=float, default=0.1)
    run_test_parser.add_argument("--seed", type=int, default=42)
    run_test_parser.add_argument("--output-dir", type=Path, default=Path("data/cli_output"))
    _add_grouping_arguments(run_test_parser, poll_interval=0.0)

    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Group previously captured comparison outputs (JSON keyed by item)",
    )
    resolve_parser.add_argument("--input-json", type=Path, required=True)
    resolve_parser.add_argument("--output-dir", type=Path, default=Path("data/cli_output"))
    _add_grouping_arguments(resolve_parser, poll_interval=0.0)

    return parser


def _add_grouping_arguments(parser: argparse.ArgumentParser, poll_interval: float) -> None:
    parser.add_argument("--concurrency", type=int, default=_DEFAULTS.concurrency)
    parser.add_argument("--relatedness", type=float, default=_DEFAULTS.relatedness)
    parser.add_argument("--exclude-pattern", type=str, default=_DEFAULTS.exclude_pattern)
    parser.add_argument("--poll-interval", type=float, default=poll_interval)
    parser.add_argument("--deadline", type=float, default=_DEFAULTS.deadline)


def _write_json(path: Path, payload: object) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)


if __name__ == "__main__":
    main()
