"""
Dashboard statistics computed from a user's progress and plan documents.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Mapping

TRAINING_WEIGHT = 0.7
READY_PLAN_WEIGHT = 6


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def mean_progress(records: Iterable[Mapping]) -> float:
    values: List[float] = [float(r.get("progress") or 0) for r in records]
    return sum(values) / max(len(values), 1)


def training_progress(records: Iterable[Mapping]) -> int:
    return round_half_up(mean_progress(records))


def plans_ready(plans: Iterable[Mapping]) -> int:
    return sum(1 for p in plans if p.get("completed"))


def preparedness_score(stored_score, mean_training: float, ready: int) -> int:
    """Prefer a stored non-zero score; otherwise derive one.

    A stored 0 counts as unset and is recomputed.
    """
    if stored_score:
        return round_half_up(stored_score)
    return round_half_up(mean_training * TRAINING_WEIGHT + ready * READY_PLAN_WEIGHT)


def dashboard_stats(user: Mapping, progress: List[Mapping], plans: List[Mapping]) -> dict:
    mean_training = mean_progress(progress)
    ready = plans_ready(plans)
    stored = (user.get("progress") or {}).get("preparednessScore")
    return {
        "trainingProgress": round_half_up(mean_training),
        "plansReady": ready,
        "totalPlans": len(plans),
        "preparednessScore": preparedness_score(stored, mean_training, ready),
    }
