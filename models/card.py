from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID

from .pagination import Pagination

MAX_BULK_FLASHCARDS = 100

class FlashcardBase(BaseModel):
    front: str = Field(..., min_length=1, max_length=5000)
    back: str = Field(..., min_length=1, max_length=5000)

class FlashcardCreate(FlashcardBase):
    is_ai_generated: bool = False

class FlashcardUpdate(BaseModel):
    front: Optional[str] = Field(None, min_length=1, max_length=5000)
    back: Optional[str] = Field(None, min_length=1, max_length=5000)

class Flashcard(FlashcardBase):
    id: str
    deck_id: str
    is_ai_generated: bool = False
    created_at: str  # ISO datetime
    updated_at: str

    class Config:
        from_attributes = True

class FlashcardList(BaseModel):
    data: List[Flashcard]
    pagination: Pagination

class FlashcardBulkCreate(BaseModel):
    deck_id: UUID
    flashcards: List[FlashcardCreate] = Field(..., min_length=1, max_length=MAX_BULK_FLASHCARDS)

class FlashcardBulkResult(BaseModel):
    created: int
    flashcards: List[Flashcard]
