"""Writing session lifecycle: starting sessions and read-side projections."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidArgument, NotFound
from app.core.prompts import DEFAULT_INITIAL_QUESTION
from app.models.writing import Message, Mistake, Role, SessionStatus, WritingSession
from app.services.ledger import SessionLedger

logger = logging.getLogger(__name__)

TOPIC_MAX_CHARS = 200


@dataclass
class StartedSession:
    session_id: str
    ai_message: str
    message_count: int = 1


@dataclass
class SessionSummary:
    id: str
    topic: str
    status: SessionStatus
    message_count: int
    created_at: datetime
    messages: List[Message] = field(default_factory=list)


class SessionLifecycle:
    def __init__(self, db: Session, oracle=None):
        self.db = db
        self.ledger = SessionLedger(db)
        self.oracle = oracle

    async def start_session(self, user_id: str, topic: str) -> StartedSession:
        """Create an IN_PROGRESS session seeded with one AI question at order 1."""
        topic = (topic or "").strip()
        if not topic:
            raise InvalidArgument("Topic is required")
        if len(topic) > TOPIC_MAX_CHARS:
            raise InvalidArgument(f"Topic must be at most {TOPIC_MAX_CHARS} characters")

        try:
            ai_message = await self.oracle.generate_initial_question(topic)
        except Exception as e:
            logger.error(f"Initial question failed; using default: {e}", exc_info=True)
            ai_message = DEFAULT_INITIAL_QUESTION

        try:
            session_id = self.ledger.create_session(user_id, topic).id
            self.ledger.append_message(session_id, Role.AI, ai_message, 1)
            self.ledger.commit()
        except Exception:
            self.ledger.rollback()
            raise
        logger.info("User %s started session %s on %r", user_id, session_id, topic)
        return StartedSession(session_id=session_id, ai_message=ai_message)

    def list_sessions(self, user_id: str) -> List[SessionSummary]:
        counts = (
            self.db.query(Message.session_id, func.count(Message.id).label("message_count"))
            .group_by(Message.session_id)
            .subquery()
        )
        rows = (
            self.db.query(WritingSession, func.coalesce(counts.c.message_count, 0))
            .outerjoin(counts, counts.c.session_id == WritingSession.id)
            .filter(WritingSession.user_id == user_id)
            .order_by(WritingSession.created_at.desc())
            .all()
        )
        return [
            SessionSummary(
                id=s.id,
                topic=s.topic,
                status=s.status,
                message_count=count,
                created_at=s.created_at,
            )
            for s, count in rows
        ]

    def get_transcript(self, user_id: str, session_id: str) -> SessionSummary:
        session = self.ledger.get_session(session_id)
        if session is None or session.user_id != user_id:
            raise NotFound("Session not found")
        messages = self.ledger.list_messages_ordered(session_id)
        return SessionSummary(
            id=session.id,
            topic=session.topic,
            status=session.status,
            message_count=len(messages),
            created_at=session.created_at,
            messages=messages,
        )

    def get_history(self, user_id: str, limit: Optional[int] = None) -> List[Mistake]:
        """Unreviewed mistakes across the user's sessions, newest first."""
        limit = limit or settings.history_page_size
        return (
            self.db.query(Mistake)
            .join(WritingSession, Mistake.session_id == WritingSession.id)
            .filter(WritingSession.user_id == user_id, Mistake.reviewed.is_(False))
            .order_by(Mistake.created_at.desc(), Mistake.id.desc())
            .limit(limit)
            .all()
        )

    def review_mistake(self, user_id: str, mistake_id: int) -> Mistake:
        mistake = (
            self.db.query(Mistake)
            .join(WritingSession, Mistake.session_id == WritingSession.id)
            .filter(Mistake.id == mistake_id, WritingSession.user_id == user_id)
            .first()
        )
        if mistake is None:
            raise NotFound("Mistake not found")
        if not mistake.reviewed:
            mistake.reviewed = True
            self.db.commit()
            self.db.refresh(mistake)
        return mistake
