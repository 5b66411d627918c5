from pydantic import BaseModel, field_validator
from typing import Optional
from uuid import UUID
from enum import Enum

class Rating(str, Enum):
    AGAIN = "again"
    GOOD = "good"
    EASY = "easy"

class StudyState(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"

class SubmitReview(BaseModel):
    study_record_id: UUID
    flashcard_id: UUID
    rating: Rating

    @field_validator('rating', mode='before')
    @classmethod
    def validate_rating(cls, v):
        if not isinstance(v, str):
            # left to enum validation
            return v
        v = v.strip().lower()
        if v not in {rating.value for rating in Rating}:
            raise ValueError("Rating must be 'again', 'good', or 'easy'")
        return v

class ReviewResult(BaseModel):
    study_record_id: str
    flashcard_id: str
    ease_factor: float
    interval_days: int
    repetitions: int
    lapses: int
    state: StudyState
    next_review_date: str  # ISO datetime
    last_review_date: Optional[str] = None
