"""
Groups classified daybreak documents into per-date reports.

Aggregation state lives only for one polling pass; every pass starts from
an empty set and reclassifies whatever is in the mailbox.
"""

import logging
from datetime import date
from typing import AbstractSet, Dict, Iterable

from .completeness import ReportStatus, evaluate_completeness
from .doc_types import DaybreakDocType
from .models import InboundDocument, Report, ReportSet

logger = logging.getLogger(__name__)


class ReportAggregator:
    """Builds a ReportSet from a sequence of inbound documents."""

    def __init__(self, required_types: AbstractSet[DaybreakDocType]):
        if not required_types:
            raise ValueError("required_types must not be empty")
        self.required_types = frozenset(required_types)

    def ingest(self, documents: Iterable[InboundDocument]) -> ReportSet:
        """
        Group documents by report date and partition the resulting reports.

        A later document with the same (date, type) as an earlier one
        replaces it.

        Args:
            documents: Classified documents in traversal order

        Returns:
            ReportSet with complete and partial reports
        """
        reports: Dict[date, Report] = {}

        for doc in documents:
            report = reports.get(doc.report_date)
            if report is None:
                report = Report(report_date=doc.report_date)
                reports[doc.report_date] = report

            # TODO: flag same-date same-type duplicates as ambiguous instead of keeping the last one
            if report.insert(doc):
                logger.debug(
                    f"Replaced {doc.doc_type.name} for {doc.report_date} with message {doc.message_id}"
                )

        report_set = ReportSet()
        for report_date, report in reports.items():
            status = evaluate_completeness(report, self.required_types)
            if status == ReportStatus.COMPLETE:
                report_set.complete[report_date] = report
            else:
                report_set.partial[report_date] = report

        return report_set


def aggregate_reports(
    documents: Iterable[InboundDocument],
    required_types: AbstractSet[DaybreakDocType]
) -> ReportSet:
    """Convenience wrapper around ReportAggregator.ingest()."""
    return ReportAggregator(required_types).ingest(documents)
