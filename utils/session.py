from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from config import DEFAULT_SESSION_LIMIT, MAX_SESSION_LIMIT
from db.records import (
    create_missing_study_records,
    ensure_deck_access,
    list_due_records,
)
from models.study import StudyCard, StudySession
from utils.errors import ValidationError
from utils.sm2 import DEFAULT_POLICY, SchedulerPolicy, initial_state
from utils.timestamps import to_iso, to_utc, utc_now

logger = logging.getLogger(__name__)


def validate_limit(limit: Optional[int], max_limit: int = MAX_SESSION_LIMIT) -> int:
    if limit is None:
        return min(DEFAULT_SESSION_LIMIT, max_limit)
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError("Limit must be an integer")
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"Limit must be between 1 and {max_limit}")
    return limit


def study_card_from_row(row: Dict) -> StudyCard:
    return StudyCard(
        study_record_id=row["id"],
        flashcard_id=row["flashcard_id"],
        front=row["front"],
        back=row["back"],
        state=row["state"] or "new",
        ease_factor=row["ease_factor"],
        interval_days=row["interval_days"],
        repetitions=row["repetitions"],
        next_review_date=row["next_review_date"],
        last_review_date=row["last_review_date"],
    )


def select_due_cards(
    conn: sqlite3.Connection,
    user_id: str,
    deck_id: str,
    limit: int,
    now: datetime,
    policy: SchedulerPolicy = DEFAULT_POLICY,
) -> tuple[List[StudyCard], int]:
    """Create missing records, then return (due cards capped at limit, total due)."""
    created = create_missing_study_records(conn, user_id, deck_id, initial_state(now, policy))
    if created:
        logger.info("Created %d study records for deck %s", created, deck_id)
    due_rows = list_due_records(conn, user_id, deck_id, now)
    cards = [study_card_from_row(row) for row in due_rows[:limit]]
    return cards, len(due_rows)


def initialize_session(
    conn: sqlite3.Connection,
    user_id: str,
    deck_id: str,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY,
    max_limit: int = MAX_SESSION_LIMIT,
) -> StudySession:
    """Start a study session for a deck the user owns.

    Raises NotFoundError if the deck does not exist, ForbiddenError if it
    belongs to someone else and ValidationError for an out-of-range limit.
    Records created here are committed before returning.
    """
    limit = validate_limit(limit, max_limit)
    now = to_utc(now) if now else utc_now()
    deck = ensure_deck_access(conn, user_id, deck_id)
    try:
        cards, total_due = select_due_cards(conn, user_id, deck_id, limit, now, policy)
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    logger.info(
        "Study session for deck %s: %d of %d due cards (user %s)",
        deck_id, len(cards), total_due, user_id,
    )
    return StudySession(
        session_id=str(uuid.uuid4()),
        deck_id=deck["id"],
        deck_name=deck["name"],
        cards_due=cards,
        total_due=total_due,
        session_started_at=to_iso(now),
    )
