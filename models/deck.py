from typing import List

from pydantic import BaseModel, Field, field_validator

from .pagination import Pagination

class DeckBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

class DeckCreate(DeckBase):
    pass

class DeckUpdate(DeckBase):
    pass

class Deck(DeckBase):
    id: str
    user_id: str
    created_at: str
    updated_at: str
    flashcard_count: int = 0

    class Config:
        from_attributes = True

class DeckList(BaseModel):
    data: List[Deck]
    pagination: Pagination
