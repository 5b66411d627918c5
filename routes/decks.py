from fastapi import APIRouter, Depends, Query, Response, status
from uuid import UUID
import sqlite3
import uuid
from typing import Literal, Optional

from db.database import get_db
from db.records import ensure_deck_access
from models.deck import Deck, DeckCreate, DeckList, DeckUpdate
from models.pagination import Pagination
from utils.auth import require_user
from utils.errors import ConflictError
from utils.timestamps import to_iso, utc_now

router = APIRouter()

MAX_DECK_PAGE_SIZE = 100

DECK_SELECT = """
    SELECT d.id, d.user_id, d.name, d.created_at, d.updated_at,
        (SELECT COUNT(*) FROM flashcards f WHERE f.deck_id = d.id) AS flashcard_count
    FROM decks d
"""

def fetch_deck(conn, deck_id: str) -> dict:
    cursor = conn.cursor()
    cursor.execute(DECK_SELECT + " WHERE d.id = ?", (deck_id,))
    return dict(cursor.fetchone())

@router.post("", response_model=Deck, status_code=status.HTTP_201_CREATED)
async def create_deck(payload: DeckCreate, user = Depends(require_user), conn = Depends(get_db)):
    """Create new deck owned by the current user."""
    name = payload.name
    deck_id = str(uuid.uuid4())
    now = to_iso(utc_now())
    cursor = conn.cursor()
    try:
        cursor.execute(
            "INSERT INTO decks (id, user_id, name, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (deck_id, user["id"], name, now, now),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise ConflictError("Deck with this name already exists")
    return fetch_deck(conn, deck_id)

def like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"

@router.get("", response_model=DeckList)
async def list_decks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_DECK_PAGE_SIZE),
    sort: Literal["name", "created_at", "updated_at"] = "updated_at",
    order: Literal["asc", "desc"] = "desc",
    search: Optional[str] = Query(None, max_length=255),
    user = Depends(require_user),
    conn = Depends(get_db),
):
    """List the current user's decks, a page at a time.

    `search` matches deck names case-insensitively; `sort` and `order` pick the
    ordering, with insertion order breaking ties.
    """
    where = "WHERE d.user_id = ?"
    params: list = [user["id"]]
    if search and search.strip():
        where += " AND d.name LIKE ? ESCAPE '\\'"
        params.append(like_pattern(search.strip()))

    cursor = conn.cursor()
    cursor.execute(f"SELECT COUNT(*) FROM decks d {where}", params)
    total = cursor.fetchone()[0]
    # sort/order are constrained to the Literal choices above
    cursor.execute(
        f"{DECK_SELECT} {where} ORDER BY d.{sort} {order.upper()}, d.rowid {order.upper()} LIMIT ? OFFSET ?",
        params + [limit, (page - 1) * limit],
    )
    return {
        "data": [dict(row) for row in cursor.fetchall()],
        "pagination": Pagination.build(page, limit, total),
    }

@router.get("/{deck_id}", response_model=Deck)
async def get_deck(deck_id: UUID, user = Depends(require_user), conn = Depends(get_db)):
    ensure_deck_access(conn, user["id"], str(deck_id))
    return fetch_deck(conn, str(deck_id))

@router.patch("/{deck_id}", response_model=Deck)
async def rename_deck(deck_id: UUID, payload: DeckUpdate, user = Depends(require_user), conn = Depends(get_db)):
    ensure_deck_access(conn, user["id"], str(deck_id))
    cursor = conn.cursor()
    try:
        cursor.execute(
            "UPDATE decks SET name = ?, updated_at = ? WHERE id = ?",
            (payload.name, to_iso(utc_now()), str(deck_id)),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise ConflictError("Deck with this name already exists")
    return fetch_deck(conn, str(deck_id))

@router.delete("/{deck_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deck(deck_id: UUID, user = Depends(require_user), conn = Depends(get_db)):
    """Delete a deck; its flashcards and study records go with it."""
    ensure_deck_access(conn, user["id"], str(deck_id))
    conn.execute("DELETE FROM decks WHERE id = ?", (str(deck_id),))
    conn.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
