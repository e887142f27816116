"""
Completion status derivation.

Status is a pure function of which phase artifacts exist for an
identifier, found with the exact matching strategy. Match groups are
rebuilt from directory listings on every call.
"""

from collections import Counter
from pathlib import Path

from cascade_ledger.artifacts import filenames
from cascade_ledger.artifacts.matching import EXACT, ArtifactMatcher
from cascade_ledger.artifacts.models import MatchGroup, Phase, Status
from cascade_ledger.artifacts.store import ArtifactStore


def status_from_presence(has_plan: bool, has_execution: bool, has_verification: bool) -> Status:
    """
    Highest status whose prerequisites are all present.

    A missing plan yields MISSING even when later-phase files exist.
    """
    if not has_plan:
        return Status.MISSING
    if not has_execution:
        return Status.PLANNED
    if not has_verification:
        return Status.EXECUTED
    return Status.VERIFIED


def _as_store(root: ArtifactStore | Path | str) -> ArtifactStore:
    if isinstance(root, ArtifactStore):
        return root
    return ArtifactStore(Path(root))


def match_group(
    identifier: str,
    root: ArtifactStore | Path | str,
    matcher: ArtifactMatcher = EXACT,
) -> MatchGroup:
    """
    Collect the artifacts of every phase that belong to ``identifier``.

    Args:
        identifier: Decoded identifier (phase suffix stripped)
        root: Store or plans root path
        matcher: Matching strategy (default: exact)

    Returns:
        MatchGroup with the first match per phase in filename order
    """
    store = _as_store(root)
    found = {}
    for phase in Phase:
        name = matcher.find(identifier, store.list_filenames(phase), phase)
        found[phase] = store.artifact(phase, name) if name else None

    return MatchGroup(
        identifier=identifier,
        plan=found[Phase.PLAN],
        execution=found[Phase.EXECUTION],
        verification=found[Phase.VERIFICATION],
    )


def derive_status(identifier: str, root: ArtifactStore | Path | str) -> Status:
    """Completion status of ``identifier`` under the plans root."""
    return match_group(identifier, root).status


def collect_match_groups(root: ArtifactStore | Path | str) -> list[MatchGroup]:
    """
    Build a match group for every identifier seen in any phase directory.

    Identifiers that only appear in execution or verification directories
    produce MISSING groups flagged as anomalous rather than being dropped.
    Groups are ordered by identifier.
    """
    store = _as_store(root)
    identifiers = set()
    for phase in Phase:
        for name in store.list_filenames(phase):
            identifier = filenames.parse(name).identifier
            # unmarked execution/verification files never match anything
            if EXACT.matches(identifier, name, phase):
                identifiers.add(identifier)

    return [match_group(identifier, store) for identifier in sorted(identifiers)]


def status_counts(groups: list[MatchGroup]) -> dict[Status, int]:
    """Number of groups per status, every status present as a key."""
    counts = Counter(group.status for group in groups)
    return {status: counts.get(status, 0) for status in Status}


def has_incomplete_phases(root: ArtifactStore | Path | str) -> bool:
    """
    True if any unit of work is not fully verified.

    Anomalous groups (later-phase files without their prerequisites)
    count as incomplete.
    """
    for group in collect_match_groups(root):
        if group.status is not Status.VERIFIED or group.is_anomalous:
            return True
    return False
