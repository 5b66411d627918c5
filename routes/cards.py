from fastapi import APIRouter, Depends, Query, Response, status
from uuid import UUID
from datetime import timedelta
import logging
import sqlite3
import uuid

from db.database import get_db
from db.records import ensure_deck_access
from models.card import (
    Flashcard,
    FlashcardBulkCreate,
    FlashcardBulkResult,
    FlashcardCreate,
    FlashcardList,
    FlashcardUpdate,
)
from models.pagination import Pagination
from utils.auth import require_user
from utils.errors import ForbiddenError, NotFoundError, ValidationError
from utils.timestamps import to_iso, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_FLASHCARD_PAGE_SIZE = 200

CARD_COLUMNS = "f.id, f.deck_id, f.front, f.back, f.is_ai_generated, f.created_at, f.updated_at"

def card_from_row(row) -> dict:
    card = dict(row)
    card["is_ai_generated"] = bool(card["is_ai_generated"])
    return card

def get_owned_flashcard(conn, user_id: str, flashcard_id: str) -> dict:
    """Return the flashcard row, or raise NotFoundError / ForbiddenError via its deck."""
    cursor = conn.cursor()
    cursor.execute(
        f"SELECT {CARD_COLUMNS}, d.user_id FROM flashcards f JOIN decks d ON d.id = f.deck_id WHERE f.id = ?",
        (flashcard_id,),
    )
    row = cursor.fetchone()
    if not row:
        raise NotFoundError("Flashcard not found")
    if row["user_id"] != user_id:
        raise ForbiddenError("Access denied")
    card = card_from_row(row)
    card.pop("user_id")
    return card

@router.post("/decks/{deck_id}/flashcards", response_model=Flashcard, status_code=status.HTTP_201_CREATED)
async def create_flashcard(
    deck_id: UUID,
    payload: FlashcardCreate,
    user = Depends(require_user),
    conn = Depends(get_db),
):
    """Add a flashcard to a deck the user owns."""
    ensure_deck_access(conn, user["id"], str(deck_id))
    card_id = str(uuid.uuid4())
    now = to_iso(utc_now())
    conn.execute(
        """
        INSERT INTO flashcards (id, deck_id, front, back, is_ai_generated, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (card_id, str(deck_id), payload.front, payload.back, int(payload.is_ai_generated), now, now),
    )
    conn.execute("UPDATE decks SET updated_at = ? WHERE id = ?", (now, str(deck_id)))
    conn.commit()
    return get_owned_flashcard(conn, user["id"], card_id)

@router.get("/decks/{deck_id}/flashcards", response_model=FlashcardList)
async def list_flashcards(
    deck_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=MAX_FLASHCARD_PAGE_SIZE),
    user = Depends(require_user),
    conn = Depends(get_db),
):
    """List a deck's flashcards in creation order, a page at a time."""
    ensure_deck_access(conn, user["id"], str(deck_id))
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM flashcards WHERE deck_id = ?", (str(deck_id),))
    total = cursor.fetchone()[0]
    cursor.execute(
        f"""
        SELECT {CARD_COLUMNS} FROM flashcards f WHERE f.deck_id = ?
        ORDER BY f.created_at, f.rowid LIMIT ? OFFSET ?
        """,
        (str(deck_id), limit, (page - 1) * limit),
    )
    return {
        "data": [card_from_row(row) for row in cursor.fetchall()],
        "pagination": Pagination.build(page, limit, total),
    }

@router.post("/flashcards/bulk", response_model=FlashcardBulkResult, status_code=status.HTTP_201_CREATED)
async def bulk_create_flashcards(
    payload: FlashcardBulkCreate,
    user = Depends(require_user),
    conn = Depends(get_db),
):
    """Add up to 100 flashcards to one deck; either all are created or none."""
    deck_id = str(payload.deck_id)
    ensure_deck_access(conn, user["id"], deck_id)
    now = utc_now()
    rows = [
        (
            str(uuid.uuid4()),
            deck_id,
            card.front,
            card.back,
            int(card.is_ai_generated),
            # created_at increases in request order
            to_iso(now + timedelta(microseconds=index)),
        )
        for index, card in enumerate(payload.flashcards)
    ]
    try:
        conn.executemany(
            """
            INSERT INTO flashcards (id, deck_id, front, back, is_ai_generated, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [row + (row[-1],) for row in rows],
        )
        conn.execute("UPDATE decks SET updated_at = ? WHERE id = ?", (to_iso(now), deck_id))
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.exception("Bulk insert of %d flashcards into deck %s failed", len(rows), deck_id)
        raise
    logger.info("Created %d flashcards in deck %s", len(rows), deck_id)
    cursor = conn.cursor()
    cursor.execute(
        f"SELECT {CARD_COLUMNS} FROM flashcards f WHERE f.id IN ({', '.join('?' for _ in rows)})"
        " ORDER BY f.created_at, f.rowid",
        [row[0] for row in rows],
    )
    cards = [card_from_row(row) for row in cursor.fetchall()]
    return {"created": len(cards), "flashcards": cards}

@router.get("/flashcards/{flashcard_id}", response_model=Flashcard)
async def get_flashcard(flashcard_id: UUID, user = Depends(require_user), conn = Depends(get_db)):
    return get_owned_flashcard(conn, user["id"], str(flashcard_id))

@router.patch("/flashcards/{flashcard_id}", response_model=Flashcard)
async def update_flashcard(
    flashcard_id: UUID,
    payload: FlashcardUpdate,
    user = Depends(require_user),
    conn = Depends(get_db),
):
    """Edit flashcard content. Scheduling state is left untouched."""
    card = get_owned_flashcard(conn, user["id"], str(flashcard_id))
    if payload.front is None and payload.back is None:
        raise ValidationError("Nothing to update")
    conn.execute(
        "UPDATE flashcards SET front = ?, back = ?, updated_at = ? WHERE id = ?",
        (
            payload.front if payload.front is not None else card["front"],
            payload.back if payload.back is not None else card["back"],
            to_iso(utc_now()),
            card["id"],
        ),
    )
    conn.commit()
    return get_owned_flashcard(conn, user["id"], card["id"])

@router.delete("/flashcards/{flashcard_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flashcard(flashcard_id: UUID, user = Depends(require_user), conn = Depends(get_db)):
    """Delete a flashcard and, by cascade, its study records."""
    card = get_owned_flashcard(conn, user["id"], str(flashcard_id))
    conn.execute("DELETE FROM flashcards WHERE id = ?", (card["id"],))
    conn.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
