"""
Correlation Policy.

Responsibilities:
- Decide how a stage's report relates to the candidate entries a query found.
- Prefer an exact match, fall back to a donor, fall back to an orphan.
- Pick the donor by recency.

Non-Responsibilities:
- No database access.
- No mutation of entries.
- No logging.

Invariant:
An unset field on a candidate matches anything. Given the same candidates
and expectations, the same resolution is returned.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from .models import DeploymentEntry
from .normalize import same_text

MATCHED = "matched"
DONOR = "donor"
ORPHAN = "orphan"


@dataclass
class Resolution:
    outcome: str
    entry: Optional[DeploymentEntry] = None


def fields_agree(entry: DeploymentEntry, expected: Dict[str, Optional[str]]) -> bool:
    """
    Absent-or-equal match.

    Each expected field must either be unset on the entry or equal the
    expected value, ignoring case.
    """
    for name, value in expected.items():
        if entry.has(name) and not same_text(getattr(entry, name), value):
            return False
    return True


def select_donor(candidates: Sequence[DeploymentEntry]) -> DeploymentEntry:
    """
    Most recent candidate.

    Ranks by the store-assigned insertion sequence when every candidate
    carries one. Wall-clock timestamps are not used since the clock can
    step backwards. Otherwise falls back to the last candidate, which is
    only the newest if the store returns oldest-first.
    """
    if not candidates:
        raise ValueError("select_donor needs at least one candidate")

    if any(c.sequence is None for c in candidates):
        return candidates[-1]
    return max(candidates, key=lambda c: c.sequence)


def resolve(
    candidates: Sequence[DeploymentEntry],
    is_match: Callable[[DeploymentEntry], bool],
) -> Resolution:
    """
    Three-tier resolution over query results.

    Returns the first candidate accepted by is_match, otherwise the donor
    for a synthesized entry, otherwise an orphan resolution with no entry.
    """
    for candidate in candidates:
        if is_match(candidate):
            return Resolution(MATCHED, candidate)
    if candidates:
        return Resolution(DONOR, select_donor(candidates))
    return Resolution(ORPHAN)


def expectations(**values: Optional[str]) -> Callable[[DeploymentEntry], bool]:
    """Build an is_match predicate from field=value pairs."""
    expected: Dict[str, Optional[str]] = dict(values)
    return lambda entry: fields_agree(entry, expected)


def describe(resolution: Resolution) -> Dict[str, Optional[str]]:
    """Small dict for log context."""
    return {
        "outcome": resolution.outcome,
        "candidate_row_key": resolution.entry.row_key if resolution.entry else None,
    }
