"""
Retention planner: decides which versioned ConfigMaps can be deleted.

Pure functions only. The caller injects ``now`` and the in-use set, nothing is
read from the cluster or the environment here.
"""
from datetime import datetime, timedelta
from typing import AbstractSet, List, Sequence

from cm_gc.core.models import ConfigMapCandidate, Decision, PlanDecision

ANNOTATION_PROTECT = "gc.k8s.io/protect"
ANNOTATION_SYNC_OPTIONS = "argocd.argoproj.io/sync-options"
PRUNE_LAST = "PruneLast=true"


def is_in_use(name: str, in_use: AbstractSet[str], match_substring: bool = True) -> bool:
    """
    Un nom est utilisé s'il figure tel quel dans l'ensemble, ou s'il contient
    un des checksums de l'ensemble.
    """
    if name in in_use:
        return True
    if not match_substring:
        return False
    return any(token and token in name for token in in_use)


def is_protected(annotations) -> bool:
    return annotations.get(ANNOTATION_PROTECT) == "true"


def is_prune_last(annotations) -> bool:
    return PRUNE_LAST in annotations.get(ANNOTATION_SYNC_OPTIONS, "")


def sort_newest_first(candidates: Sequence[ConfigMapCandidate]) -> List[ConfigMapCandidate]:
    """Newest first; equal timestamps fall back to name order."""
    by_name = sorted(candidates, key=lambda c: c.name)
    return sorted(by_name, key=lambda c: c.creation_timestamp, reverse=True)


def explain(
    candidates: Sequence[ConfigMapCandidate],
    in_use: AbstractSet[str],
    keep_last: int,
    keep_days: int,
    now: datetime,
    match_substring: bool = True,
) -> List[PlanDecision]:
    """
    Returns one decision per distinct candidate name, in newest-first order.

    Rules, first match wins:
      1. the ``keep_last`` newest candidates are kept unconditionally
      2. in-use names are kept (exact name, or containing a token of
         the set unless match_substring is False)
      3. ``gc.k8s.io/protect: "true"`` is kept
      4. ``argocd.argoproj.io/sync-options`` containing ``PruneLast=true`` is kept
      5. candidates younger than ``keep_days`` days are kept
    Everything else is marked for deletion.
    """
    if keep_last < 0 or keep_days < 0:
        raise ValueError(f"keep_last and keep_days must be >= 0 (got {keep_last}, {keep_days})")

    min_age = timedelta(days=keep_days)
    decisions = []
    seen = set()

    for rank, cm in enumerate(sort_newest_first(candidates)):
        if cm.name in seen:
            continue
        seen.add(cm.name)

        age = now - cm.creation_timestamp
        if rank < keep_last:
            decision = Decision.KEEP_RECENT
        elif is_in_use(cm.name, in_use, match_substring):
            decision = Decision.IN_USE
        elif is_protected(cm.annotations):
            decision = Decision.PROTECTED
        elif is_prune_last(cm.annotations):
            decision = Decision.PRUNE_LAST
        elif keep_days and age < min_age:
            decision = Decision.TOO_YOUNG
        else:
            decision = Decision.DELETE

        decisions.append(PlanDecision(name=cm.name, decision=decision, age_days=max(age.days, 0)))

    return decisions


def plan(
    candidates: Sequence[ConfigMapCandidate],
    in_use: AbstractSet[str],
    keep_last: int,
    keep_days: int,
    now: datetime,
    match_substring: bool = True,
) -> List[str]:
    """Names of the candidates that can be deleted."""
    return [
        d.name
        for d in explain(candidates, in_use, keep_last, keep_days, now, match_substring)
        if d.decision is Decision.DELETE
    ]
