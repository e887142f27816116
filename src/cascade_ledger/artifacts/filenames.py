"""
Artifact filename codec.

Canonical form: ``YYYYMMDD_HHMMSS_<IDENTIFIER>[_EXECUTED|_VERIFICATION].md``.
Parsing never raises; names without the timestamp prefix degrade to the
whole base name as identifier.
"""

import os
import re
from datetime import datetime

from cascade_ledger.artifacts.models import ParsedFilename, Phase
from cascade_ledger.core.config import (
    ARTIFACT_EXTENSION,
    EXECUTED_MARKER,
    TEMPLATE_PREFIX,
    VERIFICATION_MARKER,
)

TIMESTAMP_PATTERN = re.compile(r"^(\d{8}_\d{6})_(.+)$")
PHASE_SUFFIXES = (EXECUTED_MARKER, VERIFICATION_MARKER)


def _base_name(filename: str) -> str:
    name = os.path.basename(filename)
    stem, _ext = os.path.splitext(name)
    return stem or name


def parse(filename: str) -> ParsedFilename:
    """
    Decode an artifact filename.

    Args:
        filename: Base name or path of the artifact file

    Returns:
        ParsedFilename with timestamp, identifier and phase suffix
    """
    name = os.path.basename(filename)
    base = _base_name(name)

    match = TIMESTAMP_PATTERN.match(base)
    if not match:
        return ParsedFilename(filename=name, identifier=base.strip())

    timestamp, identifier = match.group(1), match.group(2)
    suffix = None
    for candidate in PHASE_SUFFIXES:
        tail = f"_{candidate}"
        if identifier.endswith(tail):
            identifier = identifier[: -len(tail)]
            suffix = candidate
            break

    return ParsedFilename(
        filename=name,
        timestamp=timestamp,
        identifier=identifier.strip(),
        phase_suffix=suffix,
    )


def display_name(identifier: str) -> str:
    """
    Title-case an identifier for display.

    Each underscore-delimited token gets an uppercase first character and
    a lowercase remainder, digits included (``API2`` becomes ``Api2``).

    >>> display_name("USER_AUTHENTICATION")
    'User Authentication'
    """
    return " ".join(
        token[0].upper() + token[1:].lower()
        for token in identifier.split("_")
        if token
    )


def is_reserved(filename: str) -> bool:
    """True for template files, which are never artifacts."""
    return os.path.basename(filename).startswith(TEMPLATE_PREFIX)


def is_artifact_filename(filename: str) -> bool:
    """True for visible, non-template files with the artifact extension."""
    name = os.path.basename(filename)
    return (
        name.endswith(ARTIFACT_EXTENSION)
        and not name.startswith(".")
        and not is_reserved(name)
    )


def normalize_identifier(title: str) -> str:
    """Turn a free-text title into an identifier: uppercased, underscore-joined."""
    return "_".join(title.upper().split())


def build_filename(identifier: str, phase: Phase, when: datetime | None = None) -> str:
    """
    Generate the canonical filename for an artifact.

    Args:
        identifier: Identifier or free-text title
        phase: Phase the file belongs to
        when: Creation instant (default: now)

    Returns:
        Canonical filename including extension
    """
    when = when or datetime.now()
    ident = normalize_identifier(identifier)
    suffix = f"_{phase.marker}" if phase.marker else ""
    return f"{when.strftime('%Y%m%d_%H%M%S')}_{ident}{suffix}{ARTIFACT_EXTENSION}"
