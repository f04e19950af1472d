"""Staging sink for daybreak attachment payloads."""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import StagingWriteError

logger = logging.getLogger(__name__)


class StagingSink(ABC):
    """Destination for staged document payloads."""

    @abstractmethod
    def write(self, filename: str, data: bytes) -> str:
        """
        Write named content to the staging location.

        Returns:
            Path the content was written to

        Raises:
            StagingWriteError on failure
        """
        pass


class DirectoryStagingSink(StagingSink):
    """
    Writes payloads as files in a staging directory.

    Existing files are overwritten, so staging the same report twice
    leaves the same files behind.
    """

    def __init__(self, staging_dir: str):
        self.staging_dir = Path(staging_dir)

    def write(self, filename: str, data: bytes) -> str:
        if not filename or os.path.basename(filename) != filename:
            raise StagingWriteError(filename or "<empty>", "filename must be a bare file name")

        target = self.staging_dir / filename
        tmp_path = target.with_name(target.name + ".part")
        try:
            self.staging_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, target)
        except OSError as e:
            raise StagingWriteError(filename, f"write to {self.staging_dir} failed: {e}", e)

        logger.debug(f"Staged {len(data)} bytes to {target}")
        return str(target)
