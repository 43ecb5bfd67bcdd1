from __future__ import annotations

import logging
from collections.abc import Sequence

from fingerprint_grouping.identifiers import UMCCR_CONVENTION, NamingConvention, basename
from fingerprint_grouping.models import (
    EmptyResult,
    ExpectedMatch,
    GroupingReport,
    GroupResult,
    ItemOutcome,
    MatchGroup,
    MatchMember,
    MatchRecord,
    RawResult,
    SelfOnlyResult,
)

logger = logging.getLogger(__name__)


class SubsetGroupResolver:
    """Classifies raw result sets and collapses redundant groups.

    Every member of an N item cluster reports (up to) the same N items, so the raw
    groups arrive many times over. Groups are consumed largest first and any group
    whose items are all inside an already chosen group is dropped. Overlapping but
    not nested groups are kept as separate groups.
    """

    def __init__(self, convention: NamingConvention = UMCCR_CONVENTION) -> None:
        self._convention = convention

    def resolve(self, results: Sequence[RawResult]) -> GroupingReport:
        report = GroupingReport()
        expected: dict[str, ExpectedMatch] = {}
        reportable: list[GroupResult] = []
        unidentified: list[EmptyResult] = []

        for result in results:
            key = result.query_key
            if isinstance(result, GroupResult):
                if key not in result.keys:
                    logger.warning("Result set for %s does not contain the item itself", key)
                subject = self._shared_subject(result.records)
                if subject is None:
                    reportable.append(result)
                    report.outcomes[key] = ItemOutcome.REPORTABLE
                else:
                    # several items of one subject each report the same group; the first one wins
                    expected.setdefault(subject, ExpectedMatch(subject_id=subject, count=len(result.keys)))
                    report.outcomes[key] = ItemOutcome.EXPECTED
                continue

            subject = self._convention.subject_id(key)
            if subject is not None:
                report.unmatched_subject_ids.append(subject)
                report.outcomes[key] = ItemOutcome.UNMATCHED
                continue

            logger.info("Unmatched item %s has no subject id, reporting it for review", key)
            report.outcomes[key] = ItemOutcome.REPORTABLE
            if isinstance(result, SelfOnlyResult):
                reportable.append(GroupResult(query_key=key, records=(result.record,)))
            else:
                unidentified.append(result)

        report.expected_matches = list(expected.values())
        report.reportable_groups = [self.to_match_group(group) for group in eliminate_subsets(reportable)]

        covered = {item for group in report.reportable_groups for item in group.keys}
        for result in unidentified:
            if result.query_key not in covered:
                report.reportable_groups.append(self._placeholder_group(result.query_key))
                covered.add(result.query_key)

        logger.info(
            "Resolved %d results: %d unmatched, %d expected groups, %d reportable groups",
            len(results),
            len(report.unmatched_subject_ids),
            len(report.expected_matches),
            len(report.reportable_groups),
        )
        return report

    def to_match_group(self, result: GroupResult) -> MatchGroup:
        return MatchGroup(members={record.file: self._member(record) for record in result.records})

    def _shared_subject(self, records: Sequence[MatchRecord]) -> str | None:
        subjects = {self._convention.subject_id(record.file) for record in records}
        if len(subjects) != 1 or None in subjects:
            return None
        return subjects.pop()

    def _member(self, record: MatchRecord) -> MatchMember:
        return MatchMember(
            subject=self._convention.subject_id(record.file),
            library=self._convention.library_id(record.file),
            base=basename(record.file),
            n=record.n,
            relatedness=record.relatedness,
            shared_hets=record.shared_hets,
            shared_hom_alts=record.shared_hom_alts,
        )

    def _placeholder_group(self, key: str) -> MatchGroup:
        member = MatchMember(subject=None, library=self._convention.library_id(key), base=basename(key))
        return MatchGroup(members={key: member})


def eliminate_subsets(groups: Sequence[GroupResult]) -> list[GroupResult]:
    """Greedy largest-first removal of groups contained in a bigger (or equal) group.

    Ties keep their original order. Applying this to its own output is a no-op.
    """
    remaining = sorted(groups, key=lambda group: len(group.keys), reverse=True)
    kept: list[GroupResult] = []
    while remaining:
        biggest = remaining.pop(0)
        biggest_keys = biggest.keys
        remaining = [group for group in remaining if not group.keys <= biggest_keys]
        kept.append(biggest)
    return kept
