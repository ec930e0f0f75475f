"""
Timeline Assembler - Merges milestone lists and packages the response.

Performs no transformation beyond de-duplication and ordering.
"""

from datetime import datetime
from typing import Iterable, Optional

from .derivation import sort_chronologically
from .models import Derivation, Milestone, TimelineResult


def merge_milestones(*milestone_lists: Iterable[Milestone]) -> list[Milestone]:
    """
    Concatenate milestone lists, keep the first milestone per id, and
    sort stably by timestamp.
    """
    seen: set[str] = set()
    merged: list[Milestone] = []
    for milestones in milestone_lists:
        for milestone in milestones:
            if milestone.id in seen:
                continue
            seen.add(milestone.id)
            merged.append(milestone)
    return sort_chronologically(merged)


def assemble_timeline(
    subject_label: str,
    chain: str,
    derivations: list[Derivation],
    contracts: Optional[list[str]] = None,
    wallet: Optional[str] = None,
    window_start: Optional[datetime] = None,
    window_days: Optional[int] = None,
    resolved_name: Optional[str] = None,
) -> TimelineResult:
    """
    Package one or more derivations into a TimelineResult.

    Totals are summed key by key across derivations. When contracts is
    not given, the union of derived contracts is used in first-seen order.
    """
    totals: dict[str, int] = {}
    derived_contracts: dict[str, None] = {}
    for derivation in derivations:
        for key, value in derivation.totals.items():
            totals[key] = totals.get(key, 0) + value
        for address in derivation.contracts:
            derived_contracts.setdefault(address, None)

    milestones = merge_milestones(*(d.milestones for d in derivations))
    totals["milestoneCount"] = len(milestones)

    return TimelineResult(
        subject_label=subject_label,
        chain=chain,
        contracts=list(contracts) if contracts is not None else list(derived_contracts),
        totals=totals,
        milestones=milestones,
        window_start=window_start,
        window_days=window_days,
        wallet=wallet,
        resolved_name=resolved_name,
    )
