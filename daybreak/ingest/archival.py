"""
Archival of complete daybreak reports.

Every document of every complete report is written to the staging sink
under ``<report date prefix><doc type suffix>``. Messages whose document
was staged are then copied to the archive folder, flagged deleted and
expunged in one batch for the whole pass.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from .doc_types import DEFAULT_SUFFIXES, DaybreakDocType
from .errors import ArchivalMoveError, StagingWriteError, TransportError
from .models import Report
from .staging import StagingSink
from .transport import MailFolder

logger = logging.getLogger(__name__)

# strftime pattern for the staged filename prefix
DEFAULT_FILENAME_DATE_FORMAT = "%Y%m%d"


def report_filename_prefix(report_date: date, date_format: str = DEFAULT_FILENAME_DATE_FORMAT) -> str:
    """Filename prefix for all documents of the report dated report_date."""
    return report_date.strftime(date_format)


@dataclass
class ArchivalResult:
    """Outcome of archiving a batch of complete reports."""
    saved_files: List[str] = field(default_factory=list)
    archived_message_ids: List[str] = field(default_factory=list)
    staging_errors: List[StagingWriteError] = field(default_factory=list)
    move_error: Optional[ArchivalMoveError] = None

    @property
    def ok(self) -> bool:
        return not self.staging_errors and self.move_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "saved_files": list(self.saved_files),
            "archived_message_ids": list(self.archived_message_ids),
            "staging_errors": [str(e) for e in self.staging_errors],
            "move_error": str(self.move_error) if self.move_error else None,
        }


class ArchivalCoordinator:
    """Stages complete reports and archives their source messages."""

    def __init__(
        self,
        sink: StagingSink,
        source_folder: MailFolder,
        archive_folder: MailFolder,
        filename_date_format: str = DEFAULT_FILENAME_DATE_FORMAT,
        suffixes: Optional[Dict[DaybreakDocType, str]] = None
    ):
        self.sink = sink
        self.source_folder = source_folder
        self.archive_folder = archive_folder
        self.filename_date_format = filename_date_format
        self.suffixes = suffixes if suffixes is not None else dict(DEFAULT_SUFFIXES)

    def filename_for(self, report_date: date, doc_type: DaybreakDocType) -> str:
        return report_filename_prefix(report_date, self.filename_date_format) + self.suffixes[doc_type]

    def archive(self, reports: Dict[date, Report]) -> ArchivalResult:
        """
        Stage every document of the given reports, then archive their messages.

        Staging failures are collected per document and do not stop other
        writes. Only successfully staged messages join the archive batch.
        A failed batch move leaves staged files in place.

        Args:
            reports: Complete reports keyed by report date

        Returns:
            ArchivalResult describing files saved and errors met
        """
        result = ArchivalResult()
        to_archive: List[str] = []

        for report_date in sorted(reports):
            report = reports[report_date]
            for doc_type, doc in report.docs.items():
                filename = self.filename_for(report_date, doc_type)
                logger.info(f"\tSaving {doc.content.filename or doc_type.name} ({doc.content.size} bytes) to {filename}")
                try:
                    path = self.sink.write(filename, doc.content.data)
                except StagingWriteError as e:
                    logger.error(f"Failed to stage {filename} from message {doc.message_id}: {e}")
                    result.staging_errors.append(e)
                    continue
                result.saved_files.append(path)
                to_archive.append(doc.message_id)

        if not to_archive:
            return result

        try:
            self.move_batch(to_archive)
        except ArchivalMoveError as e:
            logger.error(f"Archive batch of {len(to_archive)} messages failed, staged files kept: {e}")
            result.move_error = e
            return result

        result.archived_message_ids = to_archive
        return result

    def move_batch(self, message_ids: List[str]) -> None:
        """
        Copy messages to the archive folder, then flag and expunge them.

        Raises:
            ArchivalMoveError: If any step of the batch fails
        """
        try:
            self.source_folder.copy_messages(message_ids, self.archive_folder)
            self.source_folder.flag_deleted(message_ids)
            self.source_folder.expunge()
        except TransportError as e:
            raise ArchivalMoveError(self.archive_folder.path, e.message, e)
