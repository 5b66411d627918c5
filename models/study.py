from pydantic import BaseModel
from typing import List, Optional

from .review import StudyState

class StudyCard(BaseModel):
    study_record_id: str
    flashcard_id: str
    front: str
    back: str
    state: StudyState
    ease_factor: float
    interval_days: int
    repetitions: int
    next_review_date: str
    last_review_date: Optional[str] = None

class StudySession(BaseModel):
    session_id: str
    deck_id: str
    deck_name: str
    cards_due: List[StudyCard]
    total_due: int
    session_started_at: str

class StudyStats(BaseModel):
    deck_id: str
    total_cards: int = 0
    cards_studied_today: int = 0
    cards_due_today: int = 0
    cards_due_tomorrow: int = 0
    average_ease_factor: float = 0.0
    retention_rate: float = 0.0
    streak_days: int = 0
