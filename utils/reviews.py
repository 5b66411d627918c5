from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from db.records import get_study_record, log_review, state_from_row, update_study_record
from models.review import Rating, ReviewResult
from utils.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from utils.sm2 import DEFAULT_POLICY, SchedulerPolicy, compute_next_state
from utils.timestamps import to_iso, to_utc, utc_now

logger = logging.getLogger(__name__)


def process_review(
    conn: sqlite3.Connection,
    user_id: str,
    study_record_id: str,
    flashcard_id: str,
    rating: Rating,
    now: Optional[datetime] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY,
) -> ReviewResult:
    """Apply a rating to a study record and persist the new schedule."""
    rating = Rating(rating)
    now = to_utc(now) if now else utc_now()
    record = get_study_record(conn, study_record_id)
    if not record:
        raise NotFoundError("Study record not found")
    if record["user_id"] != user_id:
        raise ForbiddenError("Access denied")
    if record["flashcard_id"] != flashcard_id:
        raise ValidationError("Flashcard ID does not match study record")

    new_state = compute_next_state(state_from_row(record), rating, now=now, policy=policy)
    try:
        updated = update_study_record(
            conn,
            study_record_id,
            new_state,
            expected_last_review_date=record["last_review_date"],
            check_stale=True,
        )
        if not updated:
            conn.rollback()
            logger.warning("Stale review for study record %s rejected", study_record_id)
            raise ConflictError("Study record was updated by another review")
        log_review(conn, study_record_id, user_id, rating.value, now)
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise

    logger.info(
        "Review %s on record %s: interval %d -> %d days, ease %.2f",
        rating.value, study_record_id, record["interval_days"], new_state.interval_days, new_state.ease_factor,
    )
    return ReviewResult(
        study_record_id=study_record_id,
        flashcard_id=flashcard_id,
        ease_factor=new_state.ease_factor,
        interval_days=new_state.interval_days,
        repetitions=new_state.repetitions,
        lapses=new_state.lapses,
        state=new_state.state,
        next_review_date=to_iso(new_state.next_review_date),
        last_review_date=to_iso(new_state.last_review_date),
    )
