"""
Cross-phase artifact matching.

Two strategies answer "which file in another phase belongs to this unit
of work":

- ``ExactMatcher`` compares decoded identifiers and requires the phase
  marker in the candidate filename. Used for status display.
- ``FuzzyMatcher`` checks keywords derived from a todo's text against
  the candidate filename. Used by the enforcement hook. It accepts
  everything the exact identifier check accepts and more: short or common
  keywords, and their five-character prefixes, can match unrelated files.

Both operate on filename listings only. Callers pick a strategy
explicitly.
"""

import re
from abc import ABC, abstractmethod
from typing import Iterable

from cascade_ledger.artifacts import filenames
from cascade_ledger.artifacts.models import Phase

PHASE_MARKER_PATTERN = re.compile(r"^PHASE [123]:")
KEYWORD_PREFIX_LENGTH = 5


class ArtifactMatcher(ABC):
    """Strategy for matching a key against candidate filenames of one phase."""

    name: str = "abstract"

    @abstractmethod
    def matches(self, key: str, filename: str, phase: Phase) -> bool:
        """Return True if ``filename`` in ``phase`` belongs to ``key``."""

    def find_all(self, key: str, candidates: Iterable[str], phase: Phase) -> list[str]:
        """All matching candidates in lexicographic order."""
        return [name for name in sorted(candidates) if self.matches(key, name, phase)]

    def find(self, key: str, candidates: Iterable[str], phase: Phase) -> str | None:
        """First matching candidate in lexicographic order, or None."""
        found = self.find_all(key, candidates, phase)
        return found[0] if found else None


class ExactMatcher(ArtifactMatcher):
    """
    Identifier-equality matching.

    The key is a decoded identifier. A candidate matches when its own
    decoded identifier is equal (case-sensitive) and, for execution and
    verification phases, the raw filename contains the phase marker.
    """

    name = "exact"

    def matches(self, key: str, filename: str, phase: Phase) -> bool:
        marker = phase.marker
        if marker is not None and marker not in filename:
            return False
        return filenames.parse(filename).identifier == key.strip()


def derive_keywords(content: str) -> str:
    """
    Derive the underscore-joined keyword string from todo text.

    The text is uppercased, a leading ``PHASE <n>:`` marker is removed,
    and whitespace runs become single underscores.

    >>> derive_keywords("Phase 1: user authentication")
    'USER_AUTHENTICATION'
    """
    text = PHASE_MARKER_PATTERN.sub("", content.upper().strip(), count=1)
    return re.sub(r"\s+", "_", text.strip())


class FuzzyMatcher(ArtifactMatcher):
    """
    Keyword-substring matching.

    The key is a keyword string from ``derive_keywords``. A candidate
    matches when every keyword, or its first five characters, occurs in
    the filename. An empty keyword string matches every candidate.
    """

    name = "fuzzy"

    def matches(self, key: str, filename: str, phase: Phase) -> bool:
        return all(
            keyword in filename or keyword[:KEYWORD_PREFIX_LENGTH] in filename
            for keyword in key.split("_")
        )

    def matches_content(self, content: str, filename: str, phase: Phase = Phase.PLAN) -> bool:
        """Match raw todo text against a filename."""
        return self.matches(derive_keywords(content), filename, phase)


EXACT = ExactMatcher()
FUZZY = FuzzyMatcher()

MATCHERS: dict[str, ArtifactMatcher] = {
    EXACT.name: EXACT,
    FUZZY.name: FUZZY,
}


def get_matcher(name: str) -> ArtifactMatcher:
    """Look up a strategy by name ("exact" or "fuzzy")."""
    try:
        return MATCHERS[name]
    except KeyError:
        raise ValueError(f"Unknown matching strategy: {name}")
