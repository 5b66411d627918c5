"""
Study record store and deck ownership lookups.

All functions take an open sqlite3 connection and leave committing to the
caller. sqlite3 errors propagate unchanged.
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from models.review import StudyState
from utils.errors import ForbiddenError, NotFoundError
from utils.sm2 import ScheduleState
from utils.timestamps import parse_iso, to_iso, utc_now

RECORD_COLUMNS = """
    sr.id,
    sr.user_id,
    sr.flashcard_id,
    sr.ease_factor,
    sr.interval_days,
    sr.repetitions,
    sr.lapses,
    sr.state,
    sr.next_review_date,
    sr.last_review_date,
    sr.created_at,
    sr.updated_at
"""


def get_deck(conn: sqlite3.Connection, deck_id: str) -> Optional[Dict]:
    cursor = conn.cursor()
    cursor.execute("SELECT id, user_id, name FROM decks WHERE id = ?", (deck_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def deck_exists(conn: sqlite3.Connection, deck_id: str) -> bool:
    return get_deck(conn, deck_id) is not None


def is_deck_owned_by(conn: sqlite3.Connection, deck_id: str, user_id: str) -> bool:
    deck = get_deck(conn, deck_id)
    return bool(deck) and deck["user_id"] == user_id


def ensure_deck_access(conn: sqlite3.Connection, user_id: str, deck_id: str) -> Dict:
    """Return the deck row, or raise NotFoundError / ForbiddenError."""
    deck = get_deck(conn, deck_id)
    if not deck:
        raise NotFoundError("Deck not found")
    if deck["user_id"] != user_id:
        raise ForbiddenError("Access denied")
    return deck


def state_from_row(row) -> ScheduleState:
    return ScheduleState(
        ease_factor=float(row["ease_factor"]),
        interval_days=int(row["interval_days"]),
        repetitions=int(row["repetitions"]),
        next_review_date=parse_iso(row["next_review_date"]),
        last_review_date=parse_iso(row["last_review_date"]),
        lapses=int(row["lapses"] or 0),
        state=StudyState(row["state"] or StudyState.NEW.value),
    )


def get_study_record(conn: sqlite3.Connection, record_id: str) -> Optional[Dict]:
    cursor = conn.cursor()
    cursor.execute(f"SELECT {RECORD_COLUMNS} FROM study_records sr WHERE sr.id = ?", (record_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_study_record_for_flashcard(conn: sqlite3.Connection, user_id: str, flashcard_id: str) -> Optional[Dict]:
    cursor = conn.cursor()
    cursor.execute(
        f"SELECT {RECORD_COLUMNS} FROM study_records sr WHERE sr.user_id = ? AND sr.flashcard_id = ?",
        (user_id, flashcard_id),
    )
    row = cursor.fetchone()
    return dict(row) if row else None


def _insert_params(user_id: str, flashcard_id: str, state: ScheduleState, created_at: str) -> tuple:
    return (
        str(uuid.uuid4()),
        user_id,
        flashcard_id,
        state.ease_factor,
        state.interval_days,
        state.repetitions,
        state.lapses,
        StudyState(state.state).value,
        to_iso(state.next_review_date),
        to_iso(state.last_review_date) if state.last_review_date else None,
        created_at,
        created_at,
    )


INSERT_RECORD_SQL = """
    INSERT INTO study_records (
        id,
        user_id,
        flashcard_id,
        ease_factor,
        interval_days,
        repetitions,
        lapses,
        state,
        next_review_date,
        last_review_date,
        created_at,
        updated_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(user_id, flashcard_id) DO NOTHING
"""


def create_study_record(conn: sqlite3.Connection, user_id: str, flashcard_id: str, state: ScheduleState) -> Dict:
    """Create the record for (user, flashcard) unless it exists; return the stored row."""
    cursor = conn.cursor()
    cursor.execute(INSERT_RECORD_SQL, _insert_params(user_id, flashcard_id, state, to_iso(utc_now())))
    record = get_study_record_for_flashcard(conn, user_id, flashcard_id)
    if record is None:
        raise sqlite3.DatabaseError(f"study record for flashcard {flashcard_id} was not stored")
    return record


def list_flashcards_without_records(conn: sqlite3.Connection, user_id: str, deck_id: str) -> List[str]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT f.id
        FROM flashcards f
        LEFT JOIN study_records sr ON sr.flashcard_id = f.id AND sr.user_id = ?
        WHERE f.deck_id = ? AND sr.id IS NULL
        ORDER BY f.created_at ASC, f.rowid ASC
        """,
        (user_id, deck_id),
    )
    return [row[0] for row in cursor.fetchall()]


def create_missing_study_records(conn: sqlite3.Connection, user_id: str, deck_id: str, state: ScheduleState) -> int:
    """Create records for every flashcard in the deck lacking one. Returns the number created."""
    missing = list_flashcards_without_records(conn, user_id, deck_id)
    if not missing:
        return 0
    created_at = to_iso(utc_now())
    cursor = conn.cursor()
    cursor.executemany(
        INSERT_RECORD_SQL,
        [_insert_params(user_id, flashcard_id, state, created_at) for flashcard_id in missing],
    )
    return cursor.rowcount if cursor.rowcount >= 0 else len(missing)


def update_study_record(
    conn: sqlite3.Connection,
    record_id: str,
    state: ScheduleState,
    expected_last_review_date: Optional[str] = None,
    check_stale: bool = False,
) -> bool:
    """Write new scheduling state to the record.

    With check_stale, the update only applies if last_review_date still equals
    expected_last_review_date. Returns False when no row was updated.
    """
    params = [
        state.ease_factor,
        state.interval_days,
        state.repetitions,
        state.lapses,
        StudyState(state.state).value,
        to_iso(state.next_review_date),
        to_iso(state.last_review_date) if state.last_review_date else None,
        to_iso(utc_now()),
        record_id,
    ]
    sql = """
        UPDATE study_records
        SET ease_factor = ?,
            interval_days = ?,
            repetitions = ?,
            lapses = ?,
            state = ?,
            next_review_date = ?,
            last_review_date = ?,
            updated_at = ?
        WHERE id = ?
    """
    if check_stale:
        sql += " AND last_review_date IS ?"
        params.append(expected_last_review_date)
    cursor = conn.cursor()
    cursor.execute(sql, params)
    return cursor.rowcount == 1


def list_due_records(conn: sqlite3.Connection, user_id: str, deck_id: str, now: datetime) -> List[Dict]:
    """Records with next_review_date <= now, oldest due first, ties by flashcard creation order."""
    cursor = conn.cursor()
    cursor.execute(
        f"""
        SELECT {RECORD_COLUMNS},
            f.front,
            f.back
        FROM study_records sr
        JOIN flashcards f ON f.id = sr.flashcard_id
        WHERE sr.user_id = ?
            AND f.deck_id = ?
            AND sr.next_review_date <= ?
        ORDER BY sr.next_review_date ASC, f.created_at ASC, f.rowid ASC
        """,
        (user_id, deck_id, to_iso(now)),
    )
    return [dict(row) for row in cursor.fetchall()]


def log_review(conn: sqlite3.Connection, record_id: str, user_id: str, rating: str, reviewed_at: datetime) -> None:
    cursor = conn.cursor()
    cursor.execute(
        """
        INSERT INTO reviews (study_record_id, user_id, rating, reviewed_at)
        VALUES (?, ?, ?, ?)
        """,
        (record_id, user_id, rating, to_iso(reviewed_at)),
    )
