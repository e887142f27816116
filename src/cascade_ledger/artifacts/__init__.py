"""
Cascade Ledger Artifacts Module.

Provides filename decoding, read-only directory access, cross-phase
matching and status derivation for plan, execution and verification
documents.
"""

from .models import (
    Artifact,
    MatchGroup,
    ParsedFilename,
    Phase,
    Status,
)
from .filenames import build_filename, display_name, is_reserved, parse
from .store import ArtifactStore, newest_first
from .matching import (
    EXACT,
    FUZZY,
    ArtifactMatcher,
    ExactMatcher,
    FuzzyMatcher,
    derive_keywords,
    get_matcher,
)
from .status import (
    collect_match_groups,
    derive_status,
    has_incomplete_phases,
    match_group,
    status_counts,
    status_from_presence,
)

__all__ = [
    # Models
    "Artifact",
    "MatchGroup",
    "ParsedFilename",
    "Phase",
    "Status",
    # Filename codec
    "parse",
    "display_name",
    "build_filename",
    "is_reserved",
    # Store
    "ArtifactStore",
    "newest_first",
    # Matching
    "ArtifactMatcher",
    "ExactMatcher",
    "FuzzyMatcher",
    "EXACT",
    "FUZZY",
    "derive_keywords",
    "get_matcher",
    # Status
    "derive_status",
    "match_group",
    "collect_match_groups",
    "status_counts",
    "status_from_presence",
    "has_incomplete_phases",
]
