"""Request and response schemas for flashcards, goals and text-to-speech."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.base import CamelModel


class CreateFlashcardRequest(CamelModel):
    text: str = Field(..., max_length=500, description="Word or phrase to save")
    translation: Optional[str] = Field(None, max_length=1000)
    source_lang: Optional[str] = Field(None, max_length=16)
    target_lang: Optional[str] = Field(None, max_length=16)


class FlashcardItem(CamelModel):
    id: int
    source_text: str
    translation: Optional[str] = None
    source_lang: str
    target_lang: str
    created_at: datetime


class FlashcardsResponse(CamelModel):
    flashcards: List[FlashcardItem]


class CreateFlashcardResponse(CamelModel):
    flashcard: FlashcardItem


class UpdateGoalRequest(CamelModel):
    weekly_session_goal: Optional[float] = None
    reminder_enabled: bool = False
    reminder_time: str = Field("19:00", max_length=5)
    reminder_timezone: Optional[str] = Field(None, max_length=64)


class GoalOut(CamelModel):
    weekly_session_goal: int
    reminder_enabled: bool
    reminder_time: str
    reminder_timezone: Optional[str] = None


class GoalProgress(CamelModel):
    weekly_completed: int
    streak_days: int
    last_completed_at: Optional[datetime] = None
    week_start: datetime
    week_end: datetime


class GoalsResponse(CamelModel):
    goal: GoalOut
    progress: GoalProgress


class TTSRequest(CamelModel):
    """Request schema for text-to-speech."""
    text: str = Field(..., description="Text to read aloud")
    voice_name: Optional[str] = Field(None, max_length=64)
    language_code: Optional[str] = Field(None, max_length=16)


class TTSResponse(CamelModel):
    audio: str = Field(..., description="Base64-encoded audio")
    mime_type: str


class FillBlankRequest(CamelModel):
    """`action` is "generate" (needs topic) or "check" (needs userAnswer and correctAnswer)."""
    action: str = Field(..., max_length=16)
    topic: Optional[str] = Field(None, max_length=500)
    user_answer: Optional[str] = Field(None, max_length=500)
    correct_answer: Optional[str] = Field(None, max_length=500)


class FillBlankExercise(CamelModel):
    sentence: str = Field(..., description='Sentence with the blank written as "___"')
    answer: str
    blank_type: str


class FillBlankResult(CamelModel):
    is_correct: bool
    feedback: Optional[str] = None
