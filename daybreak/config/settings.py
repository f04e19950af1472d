"""
Check-mail configuration loaded from config/checkmail.yaml.

Credentials are not kept in the YAML file; see daybreak.config.secrets.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from ..ingest.archival import DEFAULT_FILENAME_DATE_FORMAT
from ..ingest.doc_types import (
    ALL_DOC_TYPES,
    DEFAULT_SUBJECT_PATTERNS,
    DEFAULT_SUFFIXES,
    DaybreakDocType,
    load_doc_type_overrides,
    parse_doc_types,
)
from ..ingest.errors import ConfigError
from ..ingest.health import DEFAULT_HEALTH_PATH
from ..ingest.transport import DEFAULT_IMAP_PORT
from .secrets import get_mail_host

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/checkmail.yaml"


@dataclass(frozen=True)
class CheckMailConfig:
    """Everything a check-mail pass needs apart from credentials."""
    host: str = ""
    port: int = DEFAULT_IMAP_PORT
    folder_delimiter: str = "/"
    receiving_folder: str = "INBOX"
    processed_folder: str = "INBOX/Processed"
    staging_dir: str = "staging/daybreak"
    filename_date_format: str = DEFAULT_FILENAME_DATE_FORMAT
    timezone: Optional[str] = None
    schedule_enabled: bool = True
    required_doc_types: FrozenSet[DaybreakDocType] = ALL_DOC_TYPES
    suffixes: Dict[DaybreakDocType, str] = field(default_factory=lambda: dict(DEFAULT_SUFFIXES))
    subject_patterns: Dict[DaybreakDocType, str] = field(
        default_factory=lambda: dict(DEFAULT_SUBJECT_PATTERNS)
    )
    health_path: str = DEFAULT_HEALTH_PATH

    @property
    def mailbox_id(self) -> str:
        return f"{self.host}/{self.receiving_folder}"


def load_config_file(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load raw check-mail YAML.

    Returns:
        Config dict or empty dict if file not found
    """
    config_paths = [
        config_path,
        os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), config_path),
    ]

    for path in config_paths:
        if os.path.exists(path):
            with open(path, 'r') as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Failed to parse {path}: {e}")
            if not isinstance(data, dict):
                raise ConfigError(f"{path} must contain a mapping")
            logger.debug(f"Loaded check-mail config from {path}")
            return data

    logger.debug(f"No check-mail config at {config_path}, using defaults")
    return {}


def build_config(raw: Dict[str, Any]) -> CheckMailConfig:
    """
    Build a CheckMailConfig from a raw config dict.

    CHECKMAIL_HOST in the environment overrides the YAML host.

    Raises:
        ConfigError: On unknown doc types or an empty required set
    """
    suffixes, patterns = load_doc_type_overrides(raw.get('doc_types'))

    required_names = raw.get('required_doc_types')
    if required_names is None:
        required = ALL_DOC_TYPES
    else:
        required = parse_doc_types(required_names)
        if not required:
            raise ConfigError("required_doc_types must list at least one doc type")

    tz_name = raw.get('timezone')
    if tz_name:
        try:
            ZoneInfo(str(tz_name))
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigError(f"Unknown timezone: {tz_name}")

    defaults = CheckMailConfig()
    return CheckMailConfig(
        host=get_mail_host(str(raw.get('host', defaults.host))),
        port=int(raw.get('port', defaults.port)),
        folder_delimiter=str(raw.get('folder_delimiter', defaults.folder_delimiter)),
        receiving_folder=str(raw.get('receiving_folder', defaults.receiving_folder)),
        processed_folder=str(raw.get('processed_folder', defaults.processed_folder)),
        staging_dir=str(raw.get('staging_dir', defaults.staging_dir)),
        filename_date_format=str(raw.get('filename_date_format', defaults.filename_date_format)),
        timezone=str(tz_name) if tz_name else None,
        schedule_enabled=bool(raw.get('schedule_enabled', defaults.schedule_enabled)),
        required_doc_types=required,
        suffixes=suffixes,
        subject_patterns=patterns,
        health_path=str(raw.get('health_path', defaults.health_path)),
    )


def load_checkmail_config(config_path: str = DEFAULT_CONFIG_PATH) -> CheckMailConfig:
    """Load and validate check-mail configuration."""
    return build_config(load_config_file(config_path))
