"""
SM-2 style review scheduling.

Everything here is pure: callers pass the current state, the rating and the
review time, and get a new state back. Persistence lives in db/records.py and
utils/reviews.py.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from models.review import Rating, StudyState
from utils.timestamps import to_utc, utc_now


@dataclass(frozen=True)
class SchedulerPolicy:
    initial_ease_factor: float = 2.5
    minimum_ease_factor: float = 1.3
    again_penalty: float = 0.20
    easy_bonus: float = 0.15
    first_interval_days: int = 1
    second_interval_days: int = 6
    maximum_interval_days: int = 36500


DEFAULT_POLICY = SchedulerPolicy()
EASE_FACTOR_FLOOR = 1.3
# keeps now + interval inside datetime's range
MAX_REPRESENTABLE_INTERVAL_DAYS = 365 * 500


@dataclass(frozen=True)
class ScheduleState:
    ease_factor: float
    interval_days: int
    repetitions: int
    next_review_date: datetime
    last_review_date: Optional[datetime] = None
    lapses: int = 0
    state: StudyState = StudyState.NEW


def policy_from_config(config: Dict[str, Any]) -> SchedulerPolicy:
    """Build a policy from the [scheduler] config section, falling back to defaults."""
    section = config.get("scheduler", {}) or {}
    policy = SchedulerPolicy(
        initial_ease_factor=float(section.get("initial_ease_factor", DEFAULT_POLICY.initial_ease_factor)),
        minimum_ease_factor=float(section.get("minimum_ease_factor", DEFAULT_POLICY.minimum_ease_factor)),
        again_penalty=float(section.get("again_penalty", DEFAULT_POLICY.again_penalty)),
        easy_bonus=float(section.get("easy_bonus", DEFAULT_POLICY.easy_bonus)),
        first_interval_days=int(section.get("first_interval_days", DEFAULT_POLICY.first_interval_days)),
        second_interval_days=int(section.get("second_interval_days", DEFAULT_POLICY.second_interval_days)),
        maximum_interval_days=int(section.get("maximum_interval_days", DEFAULT_POLICY.maximum_interval_days)),
    )
    if policy.minimum_ease_factor < EASE_FACTOR_FLOOR:
        raise ValueError(f"minimum_ease_factor must be at least {EASE_FACTOR_FLOOR}")
    if policy.initial_ease_factor < policy.minimum_ease_factor:
        raise ValueError("initial_ease_factor must not be below minimum_ease_factor")
    if policy.first_interval_days < 1 or policy.second_interval_days < policy.first_interval_days:
        raise ValueError("intervals must satisfy 1 <= first_interval_days <= second_interval_days")
    if not policy.second_interval_days <= policy.maximum_interval_days <= MAX_REPRESENTABLE_INTERVAL_DAYS:
        raise ValueError(
            f"maximum_interval_days must be between second_interval_days and {MAX_REPRESENTABLE_INTERVAL_DAYS}"
        )
    return policy


def initial_state(now: Optional[datetime] = None, policy: SchedulerPolicy = DEFAULT_POLICY) -> ScheduleState:
    """State of a card that has never been reviewed; due immediately."""
    now = to_utc(now) if now else utc_now()
    return ScheduleState(
        ease_factor=policy.initial_ease_factor,
        interval_days=0,
        repetitions=0,
        next_review_date=now,
        last_review_date=None,
        lapses=0,
        state=StudyState.NEW,
    )


def round_half_up(value: float) -> int:
    # half-up; round() is half-to-even
    return int(math.floor(value + 0.5))


def clamp_ease(ease_factor: float, policy: SchedulerPolicy = DEFAULT_POLICY) -> float:
    return max(policy.minimum_ease_factor, ease_factor)


def next_interval(repetitions: int, previous_interval: int, ease_factor: float,
                  policy: SchedulerPolicy = DEFAULT_POLICY) -> int:
    """Interval for a successful review that brings the card to `repetitions`.

    Capped at `policy.maximum_interval_days` so the next review date stays representable.
    """
    if repetitions <= 1:
        interval = policy.first_interval_days
    elif repetitions == 2:
        interval = policy.second_interval_days
    else:
        interval = max(policy.first_interval_days, round_half_up(previous_interval * ease_factor))
    return min(interval, policy.maximum_interval_days)


def compute_next_state(
    current: ScheduleState,
    rating: Rating,
    now: Optional[datetime] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY,
) -> ScheduleState:
    """Apply one review with `rating` at time `now` and return the new state."""
    rating = Rating(rating)
    now = to_utc(now) if now else utc_now()
    ease_factor = clamp_ease(current.ease_factor, policy)

    if rating is Rating.AGAIN:
        repetitions = 0
        interval_days = policy.first_interval_days
        ease_factor = clamp_ease(ease_factor - policy.again_penalty, policy)
        lapses = current.lapses + 1
        state = StudyState.LEARNING if current.state == StudyState.NEW else StudyState.RELEARNING
    else:
        repetitions = current.repetitions + 1
        interval_days = next_interval(repetitions, current.interval_days, ease_factor, policy)
        if rating is Rating.EASY:
            ease_factor = clamp_ease(ease_factor + policy.easy_bonus, policy)
        lapses = current.lapses
        state = StudyState.LEARNING if repetitions <= 2 else StudyState.REVIEW

    return replace(
        current,
        ease_factor=ease_factor,
        interval_days=interval_days,
        repetitions=repetitions,
        next_review_date=now + timedelta(days=interval_days),
        last_review_date=now,
        lapses=lapses,
        state=state,
    )
