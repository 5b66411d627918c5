from fastapi import APIRouter, Depends, Query, Response
from uuid import UUID
from typing import Optional

from config import load_config
from db.database import get_db
from models.review import ReviewResult, SubmitReview
from models.study import StudySession, StudyStats
from utils.auth import require_user
from utils.reviews import process_review
from utils.session import initialize_session
from utils.sm2 import policy_from_config
from utils.stats import get_deck_statistics

router = APIRouter()

@router.get("/session/{deck_id}", response_model=StudySession)
async def start_session(
    deck_id: UUID,
    response: Response,
    limit: Optional[int] = Query(None, ge=1),
    user = Depends(require_user),
    conn = Depends(get_db),
):
    """Start a study session: create missing study records and return due cards."""
    config = load_config()
    study_cfg = config["study"]
    session = initialize_session(
        conn,
        user["id"],
        str(deck_id),
        limit=limit if limit is not None else study_cfg["default_limit"],
        policy=policy_from_config(config),
        max_limit=study_cfg["max_limit"],
    )
    response.headers["Cache-Control"] = "no-store"
    return session

@router.post("/review", response_model=ReviewResult)
async def submit_review(payload: SubmitReview, user = Depends(require_user), conn = Depends(get_db)):
    """Apply a rating to a study record and return the updated schedule."""
    config = load_config()
    return process_review(
        conn,
        user["id"],
        str(payload.study_record_id),
        str(payload.flashcard_id),
        payload.rating,
        policy=policy_from_config(config),
    )

@router.get("/stats/{deck_id}", response_model=StudyStats)
async def deck_stats(deck_id: UUID, user = Depends(require_user), conn = Depends(get_db)):
    """Study statistics for a deck."""
    return get_deck_statistics(conn, user["id"], str(deck_id))
