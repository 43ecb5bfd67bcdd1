from __future__ import annotations

from datetime import date

from fingerprint_grouping.models import GroupingReport, MatchGroup


def long_date(day: date) -> str:
    """Render a date as e.g. ``Thursday, March 7th, 2024``."""
    if 11 <= day.day <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day.day % 10, "th")
    return f"{day:%A, %B} {day.day}{suffix}, {day.year}"


def batch_intro(bucket: str, batch_date: date) -> str:
    return f"For sequencing runs that finished fingerprinting in `{bucket}` on {long_date(batch_date)}"


def empty_batch_message(bucket: str, batch_date: date) -> str:
    return f"{batch_intro(bucket, batch_date)}\nWe found no new fingerprints and so no checks were run"


def header_message(bucket: str, batch_date: date, item_count: int, relatedness: float) -> str:
    return (
        f"{batch_intro(bucket, batch_date)} we found {item_count} new fingerprints\n"
        f"We looked for samples with relatedness threshold > {relatedness}"
    )


def unmatched_message(report: GroupingReport) -> str:
    subjects = ", ".join(sorted(f"`{subject}`" for subject in report.unmatched_subject_ids))
    return f"*New Unrelated Samples (by Subject Id)*\n{subjects}\n"


def expected_message(report: GroupingReport) -> str:
    groups = ", ".join(sorted(f"`{match.subject_id}` x{match.count}" for match in report.expected_matches))
    return f"*New Related Samples with Grouping as Expected (by Subject Id and Match Count)*\n{groups}\n"


def group_message(number: int, group: MatchGroup) -> str:
    lines = [f"*Match Group {number}*"]
    for key, member in group.members.items():
        lines.append(
            f"`{key}` subj={member.subject} lib={member.library} r={member.relatedness} n={member.n} "
            f"shared hets={member.shared_hets} shared hom alts={member.shared_hom_alts} base={member.base}"
        )
    return "\n".join(lines) + "\n"


def render_messages(report: GroupingReport) -> list[str]:
    """Messages for the outcome sections, one per reportable group after the two summaries."""
    messages = [unmatched_message(report), expected_message(report)]
    messages.extend(group_message(number, group) for number, group in enumerate(report.reportable_groups, start=1))
    return messages
