"""
Data model for daybreak report aggregation.

An InboundDocument is one classified email attachment. Documents sharing a
report date are collected into a Report; all reports of a polling pass form
a ReportSet split into complete and partial reports.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, FrozenSet, List

from .doc_types import DaybreakDocType


@dataclass(frozen=True)
class ContentHandle:
    """Raw attachment bytes plus the filename the sender gave them."""
    data: bytes
    filename: str = ""

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class InboundDocument:
    """A classified daybreak document and the message it came from."""
    doc_type: DaybreakDocType
    report_date: date
    content: ContentHandle
    message_id: str


@dataclass
class Report:
    """All documents received for one report date."""
    report_date: date
    docs: Dict[DaybreakDocType, InboundDocument] = field(default_factory=dict)

    def insert(self, document: InboundDocument) -> bool:
        """
        Store a document under its type, replacing any earlier one.

        Returns:
            True if an earlier document of the same type was replaced
        """
        replaced = document.doc_type in self.docs
        self.docs[document.doc_type] = document
        return replaced

    @property
    def doc_types(self) -> FrozenSet[DaybreakDocType]:
        return frozenset(self.docs)

    @property
    def message_ids(self) -> List[str]:
        return [doc.message_id for doc in self.docs.values()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_date": self.report_date.isoformat(),
            "doc_types": sorted(t.name for t in self.docs),
            "message_ids": self.message_ids,
        }


@dataclass
class ReportSet:
    """Reports from one polling pass, partitioned by completeness."""
    complete: Dict[date, Report] = field(default_factory=dict)
    partial: Dict[date, Report] = field(default_factory=dict)

    @property
    def reports(self) -> Dict[date, Report]:
        merged = dict(self.partial)
        merged.update(self.complete)
        return merged

    def __len__(self) -> int:
        return len(self.complete) + len(self.partial)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complete": [r.to_dict() for _, r in sorted(self.complete.items())],
            "partial": [r.to_dict() for _, r in sorted(self.partial.items())],
        }
