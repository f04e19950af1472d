"""
Daybreak check-mail pass.

One pass connects to the mailbox, classifies every message in the receiving
folder, groups the classified documents into reports by date and, when at
least one report is complete, stages its attachments and archives the
source messages:

    IDLE -> CONNECTING -> SCANNING -> AGGREGATING -> DECIDING
         -> (IDLE | ARCHIVING -> IDLE)

Passes are not retried internally; the next scheduled run starts fresh.

Usage:
    # On-demand pass
    python -m daybreak.ingest.checkmail

    # Cron entry point, honours schedule_enabled in the config
    python -m daybreak.ingest.checkmail --scheduled
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config.secrets import MissingCredentialError, get_mail_credentials
from ..config.settings import DEFAULT_CONFIG_PATH, CheckMailConfig, load_checkmail_config
from ..logging_config import configure_logging
from .aggregator import ReportAggregator
from .archival import ArchivalCoordinator
from .completeness import missing_types
from .doc_types import DocumentClassifier
from .errors import ConfigError, TransportError
from .health import load_mailbox_health, save_mailbox_health
from .models import ContentHandle, InboundDocument, ReportSet
from .staging import DirectoryStagingSink, StagingSink
from .transport import ImapMailStore, MailFolder, MailStore

logger = logging.getLogger(__name__)


class PassState(Enum):
    """States of a single check-mail pass."""
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    SCANNING = "SCANNING"
    AGGREGATING = "AGGREGATING"
    DECIDING = "DECIDING"
    ARCHIVING = "ARCHIVING"


@dataclass
class PassSummary:
    """What happened during one check-mail pass."""
    mailbox: str
    started_at_utc: str
    finished_at_utc: Optional[str] = None
    states: List[str] = field(default_factory=list)
    messages_scanned: int = 0
    documents_classified: int = 0
    messages_skipped: int = 0
    complete_reports: List[str] = field(default_factory=list)
    partial_reports: List[str] = field(default_factory=list)
    files_saved: List[str] = field(default_factory=list)
    archived_message_ids: List[str] = field(default_factory=list)
    staging_errors: List[str] = field(default_factory=list)
    transport_error: Optional[str] = None
    archive_error: Optional[str] = None
    status: str = "PASS"  # PASS, WARN, FAIL
    status_reason: str = ""

    @property
    def failed(self) -> bool:
        return self.transport_error is not None or self.archive_error is not None

    def finish(self):
        """Stamp the end time and derive status."""
        self.finished_at_utc = datetime.now(timezone.utc).isoformat()

        if self.transport_error:
            self.status = "FAIL"
            self.status_reason = f"Transport error: {self.transport_error}"
        elif self.archive_error:
            self.status = "FAIL"
            self.status_reason = f"Archive move failed: {self.archive_error}"
        elif self.staging_errors:
            self.status = "WARN"
            self.status_reason = f"{len(self.staging_errors)} documents could not be staged"
        elif self.complete_reports:
            self.status = "PASS"
            self.status_reason = f"Saved {len(self.files_saved)} files from {len(self.complete_reports)} reports"
        elif self.partial_reports:
            self.status = "PASS"
            self.status_reason = f"{len(self.partial_reports)} partial reports waiting"
        else:
            self.status = "PASS"
            self.status_reason = "No daybreak reports found"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def to_report_date(sent_at: datetime, tz_name: Optional[str] = None) -> date:
    """
    Report date for a message sent at sent_at.

    With tz_name set, aware timestamps are converted to that zone first;
    otherwise the date in the sender's own offset is used.
    """
    if tz_name and sent_at.tzinfo is not None:
        try:
            return sent_at.astimezone(ZoneInfo(tz_name)).date()
        except ZoneInfoNotFoundError:
            raise ConfigError(f"Unknown timezone: {tz_name}")
    return sent_at.date()


def scan_folder(
    folder: MailFolder,
    classifier: DocumentClassifier,
    tz_name: Optional[str] = None,
    summary: Optional[PassSummary] = None
) -> List[InboundDocument]:
    """
    Classify every message in a folder into inbound documents.

    Messages with unrecognised subjects are ignored. Recognised messages
    without a sent date or without an attachment are skipped with a warning.

    Raises:
        TransportError: If listing or reading messages fails
    """
    documents = []
    messages = folder.list_messages()

    for message in messages:
        doc_type = classifier.classify(message.subject)
        if doc_type is None:
            continue

        if message.sent_at is None:
            logger.warning(f"Skipping {doc_type.name} message {message.message_id}: no sent date")
            if summary is not None:
                summary.messages_skipped += 1
            continue

        attachments = folder.fetch_attachments(message.message_id)
        if not attachments:
            logger.warning(f"Skipping {doc_type.name} message {message.message_id}: no attachment")
            if summary is not None:
                summary.messages_skipped += 1
            continue
        if len(attachments) > 1:
            logger.debug(
                f"Message {message.message_id} has {len(attachments)} attachments, keeping the last"
            )

        attachment = attachments[-1]
        documents.append(InboundDocument(
            doc_type=doc_type,
            report_date=to_report_date(message.sent_at, tz_name),
            content=ContentHandle(data=attachment.data, filename=attachment.filename),
            message_id=message.message_id,
        ))

    if summary is not None:
        summary.messages_scanned = len(messages)
        summary.documents_classified = len(documents)
    return documents


class CheckMailService:
    """Runs check-mail passes against one mailbox."""

    def __init__(
        self,
        config: CheckMailConfig,
        store_factory: Optional[Callable[[], MailStore]] = None,
        sink: Optional[StagingSink] = None,
        track_health: bool = True
    ):
        self.config = config
        self.store_factory = store_factory or self._imap_store
        self.sink = sink or DirectoryStagingSink(config.staging_dir)
        self.track_health = track_health
        self.aggregator = ReportAggregator(config.required_doc_types)
        # Only required types are recognised; other daybreak mail stays in the folder
        self.classifier = DocumentClassifier({
            doc_type: pattern
            for doc_type, pattern in config.subject_patterns.items()
            if doc_type in self.aggregator.required_types
        })

    def _imap_store(self) -> MailStore:
        user, password = get_mail_credentials()
        return ImapMailStore(
            host=self.config.host,
            user=user,
            password=password,
            port=self.config.port,
            delimiter=self.config.folder_delimiter,
        )

    @staticmethod
    def _enter(summary: PassSummary, state: PassState):
        summary.states.append(state.value)
        logger.debug(f"check-mail state -> {state.value}")

    def scheduled_check_mail(self) -> Optional[PassSummary]:
        """Run a pass only when scheduled checking is enabled."""
        if not self.config.schedule_enabled:
            logger.info("Scheduled check-mail is disabled, skipping")
            return None
        return self.check_mail()

    def check_mail(self) -> PassSummary:
        """
        Run one full check-mail pass.

        Transport errors abort the pass and are recorded on the summary;
        the mail store is closed on every exit path.

        Returns:
            PassSummary of the pass
        """
        summary = PassSummary(
            mailbox=self.config.mailbox_id,
            started_at_utc=datetime.now(timezone.utc).isoformat()
        )
        self._enter(summary, PassState.IDLE)
        logger.info("checking for daybreak emails...")

        try:
            self._enter(summary, PassState.CONNECTING)
            with self.store_factory() as store:
                source_folder = store.get_folder(self.config.receiving_folder)
                archive_folder = store.get_folder(self.config.processed_folder)
                source_folder.open()

                self._enter(summary, PassState.SCANNING)
                documents = scan_folder(source_folder, self.classifier, self.config.timezone, summary)

                self._enter(summary, PassState.AGGREGATING)
                reports = self.aggregator.ingest(documents)

                self._enter(summary, PassState.DECIDING)
                self._decide(summary, reports, source_folder, archive_folder)
        except TransportError as e:
            logger.error(f"CheckMail error: {e}")
            summary.transport_error = str(e)
        finally:
            self._enter(summary, PassState.IDLE)
            summary.finish()

        if self.track_health:
            try:
                self._record_health(summary)
            except OSError as e:
                logger.warning(f"Could not update mailbox health at {self.config.health_path}: {e}")

        logger.info(
            f"check-mail finished: {summary.status} - {summary.status_reason} "
            f"({len(summary.complete_reports)} complete, {len(summary.partial_reports)} partial, "
            f"{len(summary.files_saved)} files saved)"
        )
        return summary

    def _decide(
        self,
        summary: PassSummary,
        reports: ReportSet,
        source_folder: MailFolder,
        archive_folder: MailFolder
    ):
        summary.complete_reports = [d.isoformat() for d in sorted(reports.complete)]
        summary.partial_reports = [d.isoformat() for d in sorted(reports.partial)]

        if reports.partial:
            logger.info(f"{len(reports.partial)} partial daybreak reports found.")
            for report_date in sorted(reports.partial):
                missing = missing_types(reports.partial[report_date], self.aggregator.required_types)
                logger.info(f"\t{report_date}: missing {', '.join(t.name for t in missing) or 'nothing'}")

        if not reports.complete:
            if not reports.partial:
                logger.info("No daybreak reports found")
            return

        logger.info(f"{len(reports.complete)} complete daybreak reports found.  Saving...")
        self._enter(summary, PassState.ARCHIVING)
        coordinator = ArchivalCoordinator(
            sink=self.sink,
            source_folder=source_folder,
            archive_folder=archive_folder,
            filename_date_format=self.config.filename_date_format,
            suffixes=self.config.suffixes,
        )
        result = coordinator.archive(reports.complete)

        summary.files_saved = result.saved_files
        summary.archived_message_ids = result.archived_message_ids
        summary.staging_errors = [str(e) for e in result.staging_errors]
        if result.move_error is not None:
            summary.archive_error = str(result.move_error)
        else:
            logger.info(f"Daybreak files saved. {len(result.archived_message_ids)} messages archived.")

    def _record_health(self, summary: PassSummary):
        health = load_mailbox_health(summary.mailbox, self.config.health_path)
        if summary.failed:
            health.record_failure(summary.status_reason, files_saved=len(summary.files_saved))
        else:
            health.record_success(len(summary.files_saved))
        if health.status != "OK":
            logger.warning(
                f"Mailbox {summary.mailbox} is {health.status} after "
                f"{health.consecutive_failures} consecutive failed passes"
            )
        save_mailbox_health(health, self.config.health_path)


def write_pass_summary(summary: PassSummary, output_path: str):
    """Write pass summary to JSON file."""
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(summary.to_dict(), f, indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Check the mailbox for daybreak reports")
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH,
                        help=f"Path to check-mail YAML config (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument('--scheduled', action='store_true',
                        help="Scheduled run: do nothing if schedule_enabled is false")
    parser.add_argument('--summary-out', default=None,
                        help="Write the pass summary as JSON to this path")
    parser.add_argument('--verbose', '-v', action='store_true',
                        help="Enable debug logging")
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = load_checkmail_config(args.config)
        service = CheckMailService(config)
        summary = service.scheduled_check_mail() if args.scheduled else service.check_mail()
    except (ConfigError, MissingCredentialError) as e:
        logger.error(f"Cannot run check-mail: {e}")
        return 1

    if summary is None:
        return 0

    if args.summary_out:
        write_pass_summary(summary, args.summary_out)

    # Exit nonzero on FAIL (for cron alerting)
    return 1 if summary.failed else 0


if __name__ == '__main__':
    sys.exit(main())
