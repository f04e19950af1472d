"""Exceptions raised by the check-mail pipeline."""

from typing import Optional


class CheckMailError(Exception):
    """Base exception carrying the id of the thing that failed."""
    def __init__(self, context_id: str, message: str, original_error: Optional[Exception] = None):
        self.context_id = context_id
        self.message = message
        self.original_error = original_error
        super().__init__(f"{context_id}: {message}")


class TransportError(CheckMailError):
    """Connect, fetch or move failure against the mail store."""


class StagingWriteError(CheckMailError):
    """Failure writing a single document to the staging directory."""


class ArchivalMoveError(CheckMailError):
    """Failure copying, flagging or expunging the archive batch."""


class ConfigError(Exception):
    """Raised when check-mail configuration is invalid."""
    pass
