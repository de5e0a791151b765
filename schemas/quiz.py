from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

OPTIONS_PER_QUESTION = 4


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class OptionIn(BaseModel):
    """An answer option as entered in the admin editor."""
    text: str
    is_correct: bool = False

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class QuizFilter(BaseModel):
    """Optional (category, difficulty) pair narrowing the questions of a session."""
    model_config = ConfigDict(frozen=True)

    category_id: Optional[int] = None
    difficulty: Optional[Difficulty] = None

    @field_validator("difficulty", mode="before")
    @classmethod
    def blank_means_any(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ScoreRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    score: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    category_id: Optional[int] = None
    difficulty: Optional[Difficulty] = None

    @model_validator(mode="after")
    def score_within_total(self):
        if self.score > self.total:
            raise ValueError("score cannot exceed total")
        return self


class QuestionView(BaseModel):
    """What the presentation layer renders for one question.

    A fresh view is built every time a question is shown, so `selected_index`
    always starts unset.
    """
    index: int
    total: int
    question_id: int
    text: str
    options: List[str]
    selected_index: Optional[int] = None


class SessionResult(BaseModel):
    score: int
    total: int
    saved: bool
