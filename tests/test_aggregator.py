"""Tests for report aggregation and the completeness policy."""

import itertools
from datetime import date

import pytest

from daybreak.ingest.aggregator import ReportAggregator, aggregate_reports
from daybreak.ingest.completeness import ReportStatus, evaluate_completeness, missing_types
from daybreak.ingest.doc_types import ALL_DOC_TYPES, DaybreakDocType
from daybreak.ingest.models import ContentHandle, InboundDocument, Report

A = DaybreakDocType.PAGE_FILE
B = DaybreakDocType.SENATE_LOW
C = DaybreakDocType.SENATE_HIGH
D = DaybreakDocType.ASSEMBLY_LOW

JAN_5 = date(2024, 1, 5)
JAN_6 = date(2024, 1, 6)


def make_doc(doc_type, report_date=JAN_5, message_id=None, data=b"payload"):
    return InboundDocument(
        doc_type=doc_type,
        report_date=report_date,
        content=ContentHandle(data=data, filename="attachment.html"),
        message_id=message_id or f"{doc_type.name}-{report_date}",
    )


def make_report(*doc_types, report_date=JAN_5):
    report = Report(report_date=report_date)
    for doc_type in doc_types:
        report.insert(make_doc(doc_type, report_date))
    return report


# =============================================================================
# Completeness Policy
# =============================================================================

class TestCompletenessPolicy:
    """Tests for complete vs partial decisions."""

    def test_all_required_types_is_complete(self, required_abc):
        """Report holding exactly the required types is COMPLETE."""
        report = make_report(A, B, C)
        assert evaluate_completeness(report, required_abc) == ReportStatus.COMPLETE

    def test_subset_is_partial(self, required_abc):
        """Report missing a required type is PARTIAL."""
        report = make_report(A, B)
        assert evaluate_completeness(report, required_abc) == ReportStatus.PARTIAL

    def test_single_type_is_partial(self, required_abc):
        report = make_report(C)
        assert evaluate_completeness(report, required_abc) == ReportStatus.PARTIAL

    def test_extra_type_is_not_complete(self, required_abc):
        """Complete means an exact match: an extra type does not count."""
        report = make_report(A, B, C, D)
        assert evaluate_completeness(report, required_abc) == ReportStatus.PARTIAL

    def test_single_required_type(self):
        """Policy works with any caller-supplied set."""
        assert evaluate_completeness(make_report(D), {D}) == ReportStatus.COMPLETE

    def test_full_enum_required(self):
        report = make_report(*DaybreakDocType)
        assert evaluate_completeness(report, ALL_DOC_TYPES) == ReportStatus.COMPLETE

    def test_empty_required_set_rejected(self):
        with pytest.raises(ValueError):
            evaluate_completeness(make_report(A), set())

    def test_every_subset_of_required(self, required_abc):
        """Every non-empty strict subset is PARTIAL, the full set COMPLETE."""
        types = sorted(required_abc, key=lambda t: t.name)
        for size in range(1, len(types) + 1):
            for combo in itertools.combinations(types, size):
                status = evaluate_completeness(make_report(*combo), required_abc)
                expected = ReportStatus.COMPLETE if size == len(types) else ReportStatus.PARTIAL
                assert status == expected, combo

    def test_missing_types(self, required_abc):
        assert missing_types(make_report(A), required_abc) == [C, B]


# =============================================================================
# Report Aggregator
# =============================================================================

class TestReportAggregator:
    """Tests for grouping documents into reports."""

    def test_scenario_a_two_of_three_is_partial(self, required_abc):
        """Types A and B on 2024-01-05 give one partial report."""
        report_set = aggregate_reports([make_doc(A), make_doc(B)], required_abc)

        assert list(report_set.partial) == [JAN_5]
        assert report_set.complete == {}
        assert report_set.partial[JAN_5].doc_types == frozenset({A, B})

    def test_scenario_b_third_type_completes_report(self, required_abc):
        """A third message of type C moves the report to the complete set."""
        report_set = aggregate_reports([make_doc(A), make_doc(B), make_doc(C)], required_abc)

        assert list(report_set.complete) == [JAN_5]
        assert report_set.partial == {}

    def test_reports_partitioned_by_date(self, required_abc):
        """Documents for different dates never share a report."""
        docs = [
            make_doc(A, JAN_5), make_doc(B, JAN_5), make_doc(C, JAN_5),
            make_doc(A, JAN_6),
        ]
        report_set = aggregate_reports(docs, required_abc)

        assert set(report_set.complete) == {JAN_5}
        assert set(report_set.partial) == {JAN_6}
        assert len(report_set) == 2
        assert set(report_set.reports) == {JAN_5, JAN_6}

    def test_empty_input_gives_empty_set(self, required_abc):
        report_set = aggregate_reports([], required_abc)

        assert len(report_set) == 0
        assert report_set.complete == {}
        assert report_set.partial == {}

    def test_duplicate_type_last_wins(self, required_abc):
        """A later (date, type) duplicate replaces the earlier document."""
        first = make_doc(A, message_id="m1", data=b"first")
        second = make_doc(A, message_id="m2", data=b"second")

        report_set = aggregate_reports([first, second, make_doc(B)], required_abc)
        report = report_set.partial[JAN_5]

        assert report.docs[A].message_id == "m2"
        assert report.docs[A].content.data == b"second"
        assert len(report.docs) == 2

    def test_duplicate_order_decides_retained_doc(self, required_abc):
        """Reversing duplicates flips which one is kept but not the partition."""
        first = make_doc(A, message_id="m1")
        second = make_doc(A, message_id="m2")
        others = [make_doc(B), make_doc(C)]

        forward = aggregate_reports([first, second] + others, required_abc)
        backward = aggregate_reports([second, first] + others, required_abc)

        assert set(forward.complete) == set(backward.complete) == {JAN_5}
        assert forward.complete[JAN_5].docs[A].message_id == "m2"
        assert backward.complete[JAN_5].docs[A].message_id == "m1"

    def test_partition_independent_of_order(self, required_abc):
        """Without duplicates, input order does not change the result."""
        docs = [make_doc(A), make_doc(B), make_doc(C), make_doc(A, JAN_6), make_doc(C, JAN_6)]

        expected = aggregate_reports(docs, required_abc)
        for perm in itertools.permutations(docs):
            result = aggregate_reports(list(perm), required_abc)
            assert set(result.complete) == set(expected.complete)
            assert set(result.partial) == set(expected.partial)
            for report_date, report in result.reports.items():
                assert report.doc_types == expected.reports[report_date].doc_types

    def test_aggregator_requires_types(self):
        with pytest.raises(ValueError):
            ReportAggregator(frozenset())

    def test_aggregator_holds_no_state_between_calls(self, required_abc):
        """Each ingest() starts from an empty set of reports."""
        aggregator = ReportAggregator(required_abc)
        aggregator.ingest([make_doc(A), make_doc(B)])

        second = aggregator.ingest([make_doc(C)])

        assert second.partial[JAN_5].doc_types == frozenset({C})
        assert second.complete == {}

    def test_report_set_to_dict(self, required_abc):
        report_set = aggregate_reports([make_doc(A), make_doc(B), make_doc(C), make_doc(A, JAN_6)], required_abc)
        data = report_set.to_dict()

        assert data["complete"][0]["report_date"] == "2024-01-05"
        assert data["complete"][0]["doc_types"] == ["PAGE_FILE", "SENATE_HIGH", "SENATE_LOW"]
        assert data["partial"][0]["report_date"] == "2024-01-06"
