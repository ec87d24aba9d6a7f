"""Request and response schemas for writing sessions."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.base import CamelModel


class StartSessionRequest(CamelModel):
    """Request schema for starting a writing session."""
    topic: str = Field(..., description="Conversation topic; trimmed, then 1-200 characters")


class StartSessionResponse(CamelModel):
    session_id: str
    ai_message: str
    message_count: int = 1


class CheckMessageRequest(CamelModel):
    """Request schema for submitting a sentence to a session."""
    session_id: str = Field(..., min_length=1, description="Must match the session id in the path")
    user_message: str = Field(..., min_length=1, max_length=2000, description="The learner's sentence")


class CheckMessageResponse(CamelModel):
    """
    One of three shapes (unset fields are omitted):
    rejection {isCorrect: false, error, suggestion},
    continuing {isCorrect: true, aiMessage, improvement, messageCount, isCompleted: false},
    completing {isCorrect: true, improvement, messageCount, isCompleted: true}.
    """
    is_correct: bool
    error: Optional[str] = None
    suggestion: Optional[str] = None
    ai_message: Optional[str] = None
    improvement: Optional[str] = None
    message_count: Optional[int] = None
    is_completed: Optional[bool] = None


class SessionItem(CamelModel):
    id: str
    topic: str
    status: str
    message_count: int
    created_at: datetime


class SessionsResponse(CamelModel):
    sessions: List[SessionItem]


class MessageItem(CamelModel):
    id: int
    role: str
    content: str
    order: int
    is_correct: Optional[bool] = None
    improvement: Optional[str] = None
    created_at: datetime


class SessionDetailResponse(SessionItem):
    messages: List[MessageItem]


class MistakeItem(CamelModel):
    id: int
    original: str
    correction: str
    explanation: str
    created_at: datetime


class HistoryResponse(CamelModel):
    mistakes: List[MistakeItem]


class ReviewMistakeResponse(CamelModel):
    id: int
    reviewed: bool
