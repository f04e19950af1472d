"""
Mailbox health tracking across check-mail passes.

Each pass records a success or failure; consecutive failures move the
mailbox from OK to DEGRADED to DOWN.
"""

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Health status thresholds
CONSECUTIVE_FAILURES_DEGRADED = 3
CONSECUTIVE_FAILURES_DOWN = 7

# Number of passes kept in files_saved_history
HISTORY_RUNS = 7

DEFAULT_HEALTH_PATH = "runs/_meta/checkmail_health.json"


@dataclass
class MailboxHealth:
    """Health status for one mailbox."""
    mailbox: str
    last_success_at: Optional[str] = None
    last_failure_at: Optional[str] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    files_saved_last_pass: int = 0
    files_saved_history: List[int] = field(default_factory=list)
    status: str = "OK"  # OK, DEGRADED, DOWN

    def update_status(self):
        """Update status based on consecutive failures."""
        if self.consecutive_failures >= CONSECUTIVE_FAILURES_DOWN:
            self.status = "DOWN"
        elif self.consecutive_failures >= CONSECUTIVE_FAILURES_DEGRADED:
            self.status = "DEGRADED"
        else:
            self.status = "OK"

    def _push_history(self, files_saved: int):
        self.files_saved_history.append(files_saved)
        if len(self.files_saved_history) > HISTORY_RUNS:
            self.files_saved_history = self.files_saved_history[-HISTORY_RUNS:]

    def record_success(self, files_saved: int, timestamp: Optional[datetime] = None):
        """Record a pass that finished without transport or archival errors."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        self.last_success_at = timestamp.isoformat()
        self.consecutive_failures = 0
        self.last_error = None
        self.files_saved_last_pass = files_saved
        self._push_history(files_saved)
        self.update_status()

    def record_failure(self, error: str, files_saved: int = 0, timestamp: Optional[datetime] = None):
        """Record a failed pass."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        self.last_failure_at = timestamp.isoformat()
        self.consecutive_failures += 1
        self.last_error = error
        self.files_saved_last_pass = files_saved
        self._push_history(files_saved)
        self.update_status()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MailboxHealth":
        return cls(
            mailbox=data.get("mailbox", ""),
            last_success_at=data.get("last_success_at"),
            last_failure_at=data.get("last_failure_at"),
            consecutive_failures=data.get("consecutive_failures", 0),
            last_error=data.get("last_error"),
            files_saved_last_pass=data.get("files_saved_last_pass", 0),
            files_saved_history=data.get("files_saved_history", []),
            status=data.get("status", "OK"),
        )


def load_mailbox_health(mailbox: str, health_path: str = DEFAULT_HEALTH_PATH) -> MailboxHealth:
    """Load mailbox health from disk, or create a new record."""
    if os.path.exists(health_path):
        try:
            with open(health_path, 'r') as f:
                data = json.load(f)
            if data.get("mailbox") == mailbox:
                return MailboxHealth.from_dict(data)
        except (json.JSONDecodeError, AttributeError) as e:
            logger.warning(f"Could not load mailbox health from {health_path}: {e}")

    return MailboxHealth(mailbox=mailbox)


def save_mailbox_health(health: MailboxHealth, health_path: str = DEFAULT_HEALTH_PATH):
    """Save mailbox health to disk."""
    Path(health_path).parent.mkdir(parents=True, exist_ok=True)
    with open(health_path, 'w') as f:
        json.dump(health.to_dict(), f, indent=2)
