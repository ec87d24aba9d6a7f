"""Writing practice endpoints: sessions, sentence checks and mistake history."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_oracle
from app.core.config import settings
from app.core.errors import InvalidArgument
from app.database import get_db
from app.models.user import User
from app.schemas.writing import (
    CheckMessageRequest,
    CheckMessageResponse,
    HistoryResponse,
    MessageItem,
    MistakeItem,
    ReviewMistakeResponse,
    SessionDetailResponse,
    SessionItem,
    SessionsResponse,
    StartSessionRequest,
    StartSessionResponse,
)
from app.services.sessions import SessionLifecycle, SessionSummary
from app.services.writing import WritingSessionEngine

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_item(summary: SessionSummary) -> SessionItem:
    return SessionItem(
        id=summary.id,
        topic=summary.topic,
        status=summary.status.value,
        message_count=summary.message_count,
        created_at=summary.created_at,
    )


@router.post("/sessions/start", response_model=StartSessionResponse)
async def start_session(
    request: StartSessionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    oracle=Depends(get_oracle),
):
    """Create a session on a topic and return the opening AI question."""
    started = await SessionLifecycle(db, oracle).start_session(user.id, request.topic)
    return StartSessionResponse(
        session_id=started.session_id,
        ai_message=started.ai_message,
        message_count=started.message_count,
    )


@router.post(
    "/sessions/{session_id}/check",
    response_model=CheckMessageResponse,
    response_model_exclude_none=True,
)
async def check_message(
    session_id: str,
    request: CheckMessageRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    oracle=Depends(get_oracle),
):
    """
    Grade one sentence. Incorrect sentences come back as a normal 200 rejection
    (isCorrect false) and must be resubmitted; correct ones advance the conversation.
    """
    if request.session_id != session_id:
        raise InvalidArgument("sessionId does not match the session in the URL")

    engine = WritingSessionEngine(
        db,
        oracle,
        max_messages=settings.writing_max_messages,
        improvement_enabled=settings.improvement_enabled,
        conflict_retries=settings.ledger_conflict_retries,
    )
    result = await engine.submit(user.id, session_id, request.user_message)
    if result.fallback:
        logger.info("Session %s: accepted under oracle fallback", session_id)
    return CheckMessageResponse(
        is_correct=result.is_correct,
        error=result.error,
        suggestion=result.suggestion,
        ai_message=result.ai_message,
        improvement=result.improvement,
        message_count=result.message_count,
        is_completed=result.is_completed,
    )


@router.get("/sessions", response_model=SessionsResponse)
async def list_sessions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    summaries = SessionLifecycle(db).list_sessions(user.id)
    return SessionsResponse(sessions=[_session_item(s) for s in summaries])


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_session(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    summary = SessionLifecycle(db).get_transcript(user.id, session_id)
    item = _session_item(summary)
    return SessionDetailResponse(
        **item.model_dump(),
        messages=[
            MessageItem(
                id=m.id,
                role=m.role.value,
                content=m.content,
                order=m.order,
                is_correct=m.is_correct,
                improvement=m.improvement,
                created_at=m.created_at,
            )
            for m in summary.messages
        ],
    )


@router.get("/history", response_model=HistoryResponse)
async def get_history(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Most recent unreviewed mistakes, capped at HISTORY_PAGE_SIZE."""
    mistakes = SessionLifecycle(db).get_history(user.id, settings.history_page_size)
    return HistoryResponse(mistakes=[MistakeItem.model_validate(m) for m in mistakes])


@router.post("/history/{mistake_id}/review", response_model=ReviewMistakeResponse)
async def review_mistake(mistake_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    mistake = SessionLifecycle(db).review_mistake(user.id, mistake_id)
    return ReviewMistakeResponse(id=mistake.id, reviewed=mistake.reviewed)
