"""
Completeness policy for daybreak reports.

A report is COMPLETE when the set of doc types it holds is exactly the
required set, and PARTIAL otherwise. The required set is always supplied
by the caller.
"""

from enum import Enum
from typing import AbstractSet

from .doc_types import DaybreakDocType
from .models import Report


class ReportStatus(Enum):
    """Completeness status of a single report."""
    COMPLETE = "COMPLETE"
    PARTIAL = "PARTIAL"


def evaluate_completeness(
    report: Report,
    required_types: AbstractSet[DaybreakDocType]
) -> ReportStatus:
    """
    Decide whether a report holds a full set of documents.

    Args:
        report: Report to evaluate (always has at least one document)
        required_types: Doc types a complete report must contain

    Returns:
        ReportStatus.COMPLETE if the report's types equal required_types,
        ReportStatus.PARTIAL otherwise

    Raises:
        ValueError: If required_types is empty
    """
    if not required_types:
        raise ValueError("required_types must not be empty")

    if report.doc_types == frozenset(required_types):
        return ReportStatus.COMPLETE
    return ReportStatus.PARTIAL


def missing_types(report: Report, required_types: AbstractSet[DaybreakDocType]) -> list:
    """Required doc types the report has not received yet, sorted by name."""
    return sorted((t for t in required_types if t not in report.docs), key=lambda t: t.name)
