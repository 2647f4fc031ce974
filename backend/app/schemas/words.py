"""Pydantic schemas for the words API"""
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator


class WordAction(str, Enum):
    """What POST /api/words should do with the batch"""
    VALIDATE = "validate"
    SUBMIT = "submit"


class WordSort(str, Enum):
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    ALPHA_ASC = "alpha-asc"
    ALPHA_DESC = "alpha-desc"


class WordBatchRequest(BaseModel):
    """Raw batch as typed by the user - values are normalized server-side"""
    words: List[Any] = Field(default_factory=list)

    @field_validator("words", mode="before")
    @classmethod
    def coerce_words(cls, v):
        # Anything that is not a list counts as an empty batch
        return v if isinstance(v, list) else []


class ConflictsResponse(BaseModel):
    stored: List[str] = Field(default_factory=list)
    inBatch: List[str] = Field(default_factory=list)


class ValidateResponse(BaseModel):
    ok: bool
    message: str
    conflicts: ConflictsResponse


class SubmitResponse(BaseModel):
    insertedCount: int
    message: str


class WordResponse(BaseModel):
    id: int
    word: str
    key: str
    added_at: Optional[str] = None
