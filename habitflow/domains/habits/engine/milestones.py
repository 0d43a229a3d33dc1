"""Milestone detection on streak / completion-count transitions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from habitflow.core.utils.timestamps import utcnow
from habitflow.domains.habits.engine.types import MilestoneRecord, MilestoneType

logger = logging.getLogger(__name__)

DEFAULT_STREAK_MILESTONES = (7, 14, 21, 30, 60, 90, 100, 180, 365, 500, 1000)
DEFAULT_COMPLETION_MILESTONES = (10, 25, 50, 100, 250, 500, 1000)


def crossed_thresholds(previous: int, new: int, thresholds: Iterable[int]) -> List[int]:
    """Thresholds ``t`` with ``previous < t <= new``; empty on decrease."""
    if new <= previous:
        return []
    return [t for t in sorted(set(thresholds)) if previous < t <= new]


def next_threshold(value: int, thresholds: Sequence[int], earned: Iterable[int] = ()) -> Optional[int]:
    earned_set = set(earned)
    for t in sorted(set(thresholds)):
        if t > value and t not in earned_set:
            return t
    return None


def detect(
    store,
    habit_id: int,
    previous: int,
    new: int,
    *,
    now: Optional[datetime] = None,
    thresholds: Sequence[int] = DEFAULT_STREAK_MILESTONES,
    kind: MilestoneType = MilestoneType.STREAK,
    user_id: Optional[int] = None,
) -> List[MilestoneRecord]:
    """Create milestones for every threshold crossed between ``previous`` and ``new``.

    Milestones are permanent: a threshold already recorded for the habit is
    never created again, even after the streak broke and was rebuilt. A
    concurrent duplicate insert is treated as a no-op by the store.
    """
    achieved_at = now or utcnow()
    created: List[MilestoneRecord] = []
    for threshold in crossed_thresholds(previous, new, thresholds):
        if store.exists(habit_id, kind, threshold):
            continue
        milestone = store.create(
            MilestoneRecord(
                habit_id=habit_id,
                type=kind,
                value=threshold,
                achieved_at=achieved_at,
                user_id=user_id,
            )
        )
        if milestone is None:
            continue
        logger.info(
            "Milestone achieved habit_id=%s type=%s value=%s", habit_id, kind.value, threshold
        )
        created.append(milestone)
    return created


__all__ = [
    "DEFAULT_STREAK_MILESTONES",
    "DEFAULT_COMPLETION_MILESTONES",
    "crossed_thresholds",
    "next_threshold",
    "detect",
]
