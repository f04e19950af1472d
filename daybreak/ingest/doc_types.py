"""
Daybreak document types and subject-line classification.

Each daybreak email carries one document of a known type. The type is
recognised from the message subject and determines the local filename
suffix used when the attachment is staged.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Pattern, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)


class DaybreakDocType(Enum):
    """Document types making up a full daybreak report."""
    PAGE_FILE = "page_file"
    SENATE_LOW = "senate_low"
    SENATE_HIGH = "senate_high"
    ASSEMBLY_LOW = "assembly_low"
    ASSEMBLY_HIGH = "assembly_high"

    @property
    def local_file_ext(self) -> str:
        """Default filename suffix for this type."""
        return DEFAULT_SUFFIXES[self]


# Local filename suffix per document type
DEFAULT_SUFFIXES: Dict[DaybreakDocType, str] = {
    DaybreakDocType.PAGE_FILE: ".page_file.txt",
    DaybreakDocType.SENATE_LOW: ".senate.low.html",
    DaybreakDocType.SENATE_HIGH: ".senate.high.html",
    DaybreakDocType.ASSEMBLY_LOW: ".assembly.low.html",
    DaybreakDocType.ASSEMBLY_HIGH: ".assembly.high.html",
}

# Subject regexes, matched case-insensitively with re.search
DEFAULT_SUBJECT_PATTERNS: Dict[DaybreakDocType, str] = {
    DaybreakDocType.PAGE_FILE: r"\bpage\s*file\b",
    DaybreakDocType.SENATE_LOW: r"\bsenate\b.*\b(low|1\s*-\s*4999)\b",
    DaybreakDocType.SENATE_HIGH: r"\bsenate\b.*\b(high|5000\s*-\s*9999)\b",
    DaybreakDocType.ASSEMBLY_LOW: r"\bassembly\b.*\b(low|1\s*-\s*4999)\b",
    DaybreakDocType.ASSEMBLY_HIGH: r"\bassembly\b.*\b(high|5000\s*-\s*9999)\b",
}

ALL_DOC_TYPES: FrozenSet[DaybreakDocType] = frozenset(DaybreakDocType)


def parse_doc_type(name: str) -> DaybreakDocType:
    """
    Resolve a doc type from its enum name or value (case-insensitive).

    Raises:
        ConfigError: If the name matches no known type
    """
    key = str(name).strip()
    for doc_type in DaybreakDocType:
        if key.upper() == doc_type.name or key.lower() == doc_type.value:
            return doc_type
    raise ConfigError(f"Unknown daybreak doc type: {name!r}")


def parse_doc_types(names: Iterable[str]) -> FrozenSet[DaybreakDocType]:
    """Resolve a list of doc type names into a frozenset."""
    return frozenset(parse_doc_type(n) for n in names)


def load_doc_type_overrides(
    raw: Optional[Dict[str, Any]]
) -> Tuple[Dict[DaybreakDocType, str], Dict[DaybreakDocType, str]]:
    """
    Build suffix and subject-pattern tables from the ``doc_types`` config section.

    Args:
        raw: Mapping of doc type name -> {suffix, subject_pattern}

    Returns:
        Tuple of (suffixes, subject_patterns), defaults filled in for
        every type not overridden

    Raises:
        ConfigError: On unknown type names, invalid regexes, or suffixes
            that are empty, contain a path separator or are shared
    """
    suffixes = dict(DEFAULT_SUFFIXES)
    patterns = dict(DEFAULT_SUBJECT_PATTERNS)

    for name, overrides in (raw or {}).items():
        doc_type = parse_doc_type(name)
        overrides = overrides or {}
        if 'suffix' in overrides:
            suffixes[doc_type] = str(overrides['suffix'])
        if 'subject_pattern' in overrides:
            pattern = str(overrides['subject_pattern'])
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigError(f"Invalid subject_pattern for {doc_type.name}: {e}")
            patterns[doc_type] = pattern

    # Each type must stage to its own file directly in the staging directory
    seen: Dict[str, DaybreakDocType] = {}
    for doc_type, suffix in suffixes.items():
        if not suffix or "/" in suffix or "\\" in suffix:
            raise ConfigError(f"Invalid suffix for {doc_type.name}: {suffix!r}")
        if suffix in seen:
            raise ConfigError(
                f"Suffix {suffix!r} used by both {seen[suffix].name} and {doc_type.name}"
            )
        seen[suffix] = doc_type

    return suffixes, patterns


class DocumentClassifier:
    """Maps message subjects onto daybreak doc types."""

    def __init__(self, patterns: Optional[Dict[DaybreakDocType, str]] = None):
        patterns = patterns if patterns is not None else DEFAULT_SUBJECT_PATTERNS
        # Enum order decides which type wins when several patterns match
        self._compiled: Dict[DaybreakDocType, Pattern] = {
            doc_type: re.compile(patterns[doc_type], re.IGNORECASE)
            for doc_type in DaybreakDocType
            if doc_type in patterns
        }

    def classify(self, subject: Optional[str]) -> Optional[DaybreakDocType]:
        """
        Determine the doc type of a message from its subject.

        Args:
            subject: Message subject line (may be None)

        Returns:
            Matching DaybreakDocType, or None if the subject is not a
            daybreak document
        """
        if not subject:
            return None

        for doc_type, pattern in self._compiled.items():
            if pattern.search(subject):
                return doc_type

        logger.debug(f"Subject not recognised as daybreak doc: {subject!r}")
        return None


_default_classifier = DocumentClassifier()


def classify_subject(subject: Optional[str]) -> Optional[DaybreakDocType]:
    """Classify a subject using the default patterns."""
    return _default_classifier.classify(subject)
