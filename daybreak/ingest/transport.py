"""
Mail transport capability used by the check-mail pass.

The pass only needs a narrow view of a mailbox: list messages with their
subject and sent date, read a message's attachments, copy messages to
another folder, flag them deleted and expunge. MailStore/MailFolder define
that view; ImapMailStore implements it over imaplib.
"""

import email
import email.policy
import imaplib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from email.message import Message
from email.utils import parsedate_to_datetime
from typing import Callable, List, Optional, Sequence

from .errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_IMAP_PORT = 993


@dataclass(frozen=True)
class Attachment:
    """A single attachment part of a message."""
    filename: str
    data: bytes


@dataclass
class MailMessage:
    """Header-level view of a message in a folder."""
    message_id: str
    subject: Optional[str] = None
    sent_at: Optional[datetime] = None


class MailFolder(ABC):
    """A folder within a mail store."""

    def __init__(self, path: str):
        self.path = path

    @abstractmethod
    def open(self) -> None:
        """Open the folder for reading and writing."""
        pass

    @abstractmethod
    def list_messages(self) -> List[MailMessage]:
        """Enumerate the messages currently in the folder."""
        pass

    @abstractmethod
    def fetch_attachments(self, message_id: str) -> List[Attachment]:
        """Read the attachment parts of one message."""
        pass

    @abstractmethod
    def copy_messages(self, message_ids: Sequence[str], destination: "MailFolder") -> None:
        """Copy messages into another folder of the same store."""
        pass

    @abstractmethod
    def flag_deleted(self, message_ids: Sequence[str]) -> None:
        """Mark messages for deletion on the next expunge."""
        pass

    @abstractmethod
    def expunge(self) -> None:
        """Permanently remove messages flagged deleted."""
        pass


class MailStore(ABC):
    """A connection to a mail server. Use as a context manager."""

    @abstractmethod
    def connect(self) -> None:
        pass

    @abstractmethod
    def get_folder(self, path: str) -> MailFolder:
        """Resolve a '/'-separated folder path."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> "MailStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def parse_sent_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 2822 Date header, returning None when malformed."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(str(value))
    except (TypeError, ValueError, IndexError):
        logger.debug(f"Unparseable Date header: {value!r}")
        return None


def extract_attachments(message: Message) -> List[Attachment]:
    """
    Collect the parts of a message whose disposition is 'attachment'.

    Non-multipart messages have no attachments.
    """
    if not message.is_multipart():
        return []

    attachments = []
    for part in message.walk():
        if part.get_content_disposition() != 'attachment':
            continue
        payload = part.get_payload(decode=True) or b""
        attachments.append(Attachment(filename=part.get_filename() or "", data=payload))
    return attachments


def _first_literal(data: list) -> bytes:
    """Pull the message literal out of an imaplib FETCH response."""
    for item in data or []:
        if isinstance(item, tuple) and len(item) >= 2:
            return item[1]
    return b""


class ImapFolder(MailFolder):
    """IMAP folder addressed by its mailbox name on the server."""

    def __init__(self, store: "ImapMailStore", path: str):
        super().__init__(path)
        self._store = store
        self.mailbox_name = store.delimiter.join(p for p in path.split('/') if p)

    def _quoted(self) -> str:
        return '"' + self.mailbox_name.replace('\\', '\\\\').replace('"', '\\"') + '"'

    def open(self) -> None:
        self._store._run(self.path, "select", lambda c: c.select(self._quoted(), readonly=False))

    def list_messages(self) -> List[MailMessage]:
        data = self._store._run(self.path, "search", lambda c: c.uid('SEARCH', None, 'UNDELETED'))
        uids = data[0].split() if data and data[0] else []

        messages = []
        for uid in uids:
            uid_str = uid.decode() if isinstance(uid, bytes) else str(uid)
            fetched = self._store._run(
                self.path, f"fetch headers {uid_str}",
                lambda c: c.uid('FETCH', uid_str, '(BODY.PEEK[HEADER.FIELDS (SUBJECT DATE)])')
            )
            headers = email.message_from_bytes(_first_literal(fetched), policy=email.policy.default)
            subject = headers.get('Subject')
            messages.append(MailMessage(
                message_id=uid_str,
                subject=str(subject) if subject is not None else None,
                sent_at=parse_sent_date(headers.get('Date')),
            ))
        return messages

    def fetch_attachments(self, message_id: str) -> List[Attachment]:
        fetched = self._store._run(
            self.path, f"fetch body {message_id}",
            lambda c: c.uid('FETCH', message_id, '(BODY.PEEK[])')
        )
        message = email.message_from_bytes(_first_literal(fetched), policy=email.policy.default)
        return extract_attachments(message)

    def copy_messages(self, message_ids: Sequence[str], destination: MailFolder) -> None:
        if not message_ids:
            return
        target = destination._quoted() if isinstance(destination, ImapFolder) else destination.path
        self._store._run(
            self.path, f"copy to {destination.path}",
            lambda c: c.uid('COPY', ','.join(message_ids), target)
        )

    def flag_deleted(self, message_ids: Sequence[str]) -> None:
        if not message_ids:
            return
        self._store._run(
            self.path, "flag deleted",
            lambda c: c.uid('STORE', ','.join(message_ids), '+FLAGS', '(\\Deleted)')
        )

    def expunge(self) -> None:
        self._store._run(self.path, "expunge", lambda c: c.expunge())


class ImapMailStore(MailStore):
    """IMAP over SSL mail store."""

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        port: int = DEFAULT_IMAP_PORT,
        delimiter: str = "/",
        imap_factory: Callable[..., imaplib.IMAP4] = imaplib.IMAP4_SSL
    ):
        self.host = host
        self.user = user
        self.password = password
        self.port = port
        self.delimiter = delimiter
        self._imap_factory = imap_factory
        self._conn: Optional[imaplib.IMAP4] = None

    def connect(self) -> None:
        logger.debug(f"Connecting to {self.host}:{self.port} as {self.user}")
        try:
            self._conn = self._imap_factory(self.host, self.port)
            self._conn.login(self.user, self.password)
        except (imaplib.IMAP4.error, OSError) as e:
            self.close()
            raise TransportError(self.host, f"connect failed: {e}", e)

    def get_folder(self, path: str) -> ImapFolder:
        return ImapFolder(self, path)

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug(f"Ignoring error while closing {self.host}: {e}")

    def _run(self, folder_path: str, what: str, command: Callable[[imaplib.IMAP4], tuple]) -> list:
        """Run an IMAP command, turning failures into TransportError."""
        if self._conn is None:
            raise TransportError(folder_path, f"{what} failed: not connected")
        try:
            typ, data = command(self._conn)
        except (imaplib.IMAP4.error, OSError) as e:
            raise TransportError(folder_path, f"{what} failed: {e}", e)
        if typ != 'OK':
            raise TransportError(folder_path, f"{what} failed: {typ} {data!r}")
        return data
