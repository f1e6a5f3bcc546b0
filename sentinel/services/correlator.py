"""Evidence correlation: pick the meeting logs that can substantiate a case."""
from typing import Iterable, List

from sentinel.models.enums import EvidenceFilter, LogSentiment


def correlate_evidence(
    student_name: str,
    records: Iterable,
    evidence_filter: EvidenceFilter = EvidenceFilter.ALL
) -> List:
    """
    Rank candidate evidence for a student, newest first.

    Rules:
    - A record is a candidate when student_name is one of its attendees (exact match)
    - CONCERNS_ONLY further keeps only records with Concerned sentiment
    - An empty student name selects nothing, never everything
    - Duplicate records are kept as given; de-duplication belongs to the data source

    Works on anything exposing attendees, sentiment and date (ORM rows or schemas).
    """
    if not student_name:
        return []

    candidates = [r for r in records if student_name in (r.attendees or [])]

    if evidence_filter == EvidenceFilter.CONCERNS_ONLY:
        candidates = [r for r in candidates if r.sentiment == LogSentiment.CONCERNED]

    # sorted() is stable, so logs sharing a date keep their input order
    return sorted(candidates, key=lambda r: r.date, reverse=True)
