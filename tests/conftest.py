"""Shared fixtures: an in-memory mail store standing in for IMAP."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from daybreak.config.settings import CheckMailConfig
from daybreak.ingest.doc_types import DaybreakDocType
from daybreak.ingest.errors import StagingWriteError, TransportError
from daybreak.ingest.staging import DirectoryStagingSink
from daybreak.ingest.transport import Attachment, MailFolder, MailMessage, MailStore


RECEIVING = "INBOX/Daybreak"
PROCESSED = "INBOX/Daybreak/Processed"

SUBJECTS = {
    DaybreakDocType.PAGE_FILE: "Daybreak Page File",
    DaybreakDocType.SENATE_LOW: "Daybreak Senate Low",
    DaybreakDocType.SENATE_HIGH: "Daybreak Senate High",
    DaybreakDocType.ASSEMBLY_LOW: "Daybreak Assembly Low",
    DaybreakDocType.ASSEMBLY_HIGH: "Daybreak Assembly High",
}


def sent(year: int, month: int, day: int, hour: int = 9) -> datetime:
    return datetime(year, month, day, hour, 0, tzinfo=timezone.utc)


@dataclass
class FakeMessage:
    message_id: str
    subject: Optional[str]
    sent_at: Optional[datetime]
    attachments: List[Attachment] = field(default_factory=list)


class FakeFolder(MailFolder):
    """Folder backed by a dict; fail_on names operations that raise TransportError."""

    def __init__(self, path: str):
        super().__init__(path)
        self.messages: Dict[str, FakeMessage] = {}
        self.deleted: Set[str] = set()
        self.opened = False
        self.copy_calls: List[Tuple[List[str], str]] = []
        self.expunge_calls = 0
        self.fetched: List[str] = []
        self.fail_on: Set[str] = set()

    def _maybe_fail(self, op: str):
        if op in self.fail_on:
            raise TransportError(self.path, f"{op} failed")

    def open(self) -> None:
        self._maybe_fail("open")
        self.opened = True

    def list_messages(self) -> List[MailMessage]:
        self._maybe_fail("list")
        return [
            MailMessage(message_id=m.message_id, subject=m.subject, sent_at=m.sent_at)
            for m in self.messages.values()
        ]

    def fetch_attachments(self, message_id: str) -> List[Attachment]:
        self._maybe_fail("fetch")
        self.fetched.append(message_id)
        return list(self.messages[message_id].attachments)

    def copy_messages(self, message_ids: Sequence[str], destination: MailFolder) -> None:
        self._maybe_fail("copy")
        self.copy_calls.append((list(message_ids), destination.path))
        for message_id in message_ids:
            destination.messages[message_id] = self.messages[message_id]

    def flag_deleted(self, message_ids: Sequence[str]) -> None:
        self._maybe_fail("flag")
        self.deleted.update(message_ids)

    def expunge(self) -> None:
        self._maybe_fail("expunge")
        self.expunge_calls += 1
        for message_id in self.deleted:
            self.messages.pop(message_id, None)
        self.deleted.clear()


class FakeMailStore(MailStore):
    """In-memory mail store recording connect/close calls."""

    def __init__(self):
        self.folders: Dict[str, FakeFolder] = {}
        self.connect_error: Optional[TransportError] = None
        self.connected = False
        self.close_calls = 0

    def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def get_folder(self, path: str) -> FakeFolder:
        if path not in self.folders:
            self.folders[path] = FakeFolder(path)
        return self.folders[path]

    def close(self) -> None:
        self.connected = False
        self.close_calls += 1

    def add_message(
        self,
        message_id: str,
        subject: Optional[str],
        sent_at: Optional[datetime],
        attachments: Optional[List[Attachment]] = None,
        folder: str = RECEIVING
    ) -> FakeMessage:
        if attachments is None:
            attachments = [Attachment(filename=f"{message_id}.dat", data=f"content-{message_id}".encode())]
        message = FakeMessage(message_id, subject, sent_at, attachments)
        self.get_folder(folder).messages[message_id] = message
        return message

    def add_daybreak(self, message_id: str, doc_type: DaybreakDocType, sent_at: datetime) -> FakeMessage:
        return self.add_message(message_id, SUBJECTS[doc_type], sent_at)


class FailingSink(DirectoryStagingSink):
    """Directory sink that refuses to write the named files."""

    def __init__(self, staging_dir: str, fail_names: Set[str]):
        super().__init__(staging_dir)
        self.fail_names = set(fail_names)

    def write(self, filename: str, data: bytes) -> str:
        if filename in self.fail_names:
            raise StagingWriteError(filename, "disk full")
        return super().write(filename, data)


@pytest.fixture
def mail_store():
    return FakeMailStore()


@pytest.fixture
def required_abc():
    return frozenset({DaybreakDocType.PAGE_FILE, DaybreakDocType.SENATE_LOW, DaybreakDocType.SENATE_HIGH})


@pytest.fixture
def checkmail_config(tmp_path, required_abc):
    return CheckMailConfig(
        host="imap.test",
        receiving_folder=RECEIVING,
        processed_folder=PROCESSED,
        staging_dir=str(tmp_path / "staging"),
        required_doc_types=required_abc,
        health_path=str(tmp_path / "meta" / "health.json"),
    )
