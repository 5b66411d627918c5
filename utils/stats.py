from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta
from typing import Optional

from db.records import ensure_deck_access
from models.study import StudyStats
from utils.timestamps import day_bounds, to_iso, to_utc, utc_now

STREAK_LOOKBACK_DAYS = 365


def rate(part: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(part / total, 2)


def count_streak(review_days: set[date], today: date) -> int:
    """Consecutive days ending today that contain at least one review."""
    streak = 0
    day = today
    while day in review_days and streak < STREAK_LOOKBACK_DAYS:
        streak += 1
        day -= timedelta(days=1)
    return streak


def get_review_days(conn: sqlite3.Connection, user_id: str, now: datetime) -> set[date]:
    since, _ = day_bounds(now, offset_days=-STREAK_LOOKBACK_DAYS)
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT DISTINCT substr(reviewed_at, 1, 10)
        FROM reviews
        WHERE user_id = ? AND reviewed_at >= ?
        """,
        (user_id, since),
    )
    return {date.fromisoformat(row[0]) for row in cursor.fetchall()}


def get_deck_statistics(
    conn: sqlite3.Connection,
    user_id: str,
    deck_id: str,
    now: Optional[datetime] = None,
) -> StudyStats:
    """Study statistics for one deck; raises NotFoundError / ForbiddenError like sessions do."""
    now = to_utc(now) if now else utc_now()
    ensure_deck_access(conn, user_id, deck_id)
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM flashcards WHERE deck_id = ?", (deck_id,))
    total_cards = cursor.fetchone()[0] or 0
    if total_cards == 0:
        return StudyStats(deck_id=deck_id)

    today_start, today_end = day_bounds(now)
    tomorrow_start, tomorrow_end = day_bounds(now, offset_days=1)
    cursor.execute(
        """
        SELECT
            COUNT(*) AS total_records,
            SUM(CASE WHEN sr.last_review_date >= ? AND sr.last_review_date < ? THEN 1 ELSE 0 END) AS studied_today,
            SUM(CASE WHEN sr.next_review_date <= ? THEN 1 ELSE 0 END) AS due_today,
            SUM(CASE WHEN sr.next_review_date >= ? AND sr.next_review_date < ? THEN 1 ELSE 0 END) AS due_tomorrow,
            AVG(sr.ease_factor) AS average_ease,
            SUM(CASE WHEN sr.last_review_date IS NOT NULL THEN 1 ELSE 0 END) AS reviewed,
            SUM(CASE WHEN sr.last_review_date IS NOT NULL AND sr.lapses = 0 THEN 1 ELSE 0 END) AS retained
        FROM study_records sr
        JOIN flashcards f ON f.id = sr.flashcard_id
        WHERE sr.user_id = ? AND f.deck_id = ?
        """,
        (today_start, today_end, to_iso(now), tomorrow_start, tomorrow_end, user_id, deck_id),
    )
    row = cursor.fetchone()
    review_days = get_review_days(conn, user_id, now)
    return StudyStats(
        deck_id=deck_id,
        total_cards=total_cards,
        cards_studied_today=row["studied_today"] or 0,
        cards_due_today=row["due_today"] or 0,
        cards_due_tomorrow=row["due_tomorrow"] or 0,
        average_ease_factor=round(row["average_ease"] or 0.0, 2),
        retention_rate=rate(row["retained"] or 0, row["reviewed"] or 0),
        streak_days=count_streak(review_days, now.date()),
    )
