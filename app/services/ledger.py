"""Session ledger: the durable, ordered record of a session's messages and mistakes.

Writes are flushed into the caller's transaction; `commit()` makes them durable.
Message order is claimed with compare-and-append: the expected order must equal
the committed count plus one, and the unique (session_id, order) index rejects
the loser of a concurrent race.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, OrderConflict, SessionClosed
from app.models.writing import Message, Mistake, Role, SessionStatus, WritingSession

logger = logging.getLogger(__name__)


class SessionLedger:
    def __init__(self, db: Session):
        self.db = db

    def get_session(self, session_id: str) -> Optional[WritingSession]:
        return self.db.get(WritingSession, session_id, populate_existing=True)

    def _require_session(self, session_id: str) -> WritingSession:
        session = self.get_session(session_id)
        if session is None:
            raise NotFound("Session not found")
        return session

    def create_session(self, user_id: str, topic: str) -> WritingSession:
        session = WritingSession(user_id=user_id, topic=topic, status=SessionStatus.IN_PROGRESS)
        self.db.add(session)
        self.db.flush()
        return session

    def count_messages(self, session_id: str) -> int:
        return self.db.query(func.count(Message.id)).filter(Message.session_id == session_id).scalar() or 0

    def list_messages_ordered(self, session_id: str) -> List[Message]:
        return (
            self.db.query(Message)
            .filter(Message.session_id == session_id)
            .order_by(Message.order.asc())
            .all()
        )

    def append_message(
        self,
        session_id: str,
        role: Role,
        content: str,
        order: int,
        is_correct: Optional[bool] = None,
        improvement: Optional[str] = None,
    ) -> Message:
        """Append at `order`, which must be exactly count + 1. Raises OrderConflict otherwise."""
        session = self._require_session(session_id)
        if session.status == SessionStatus.COMPLETED:
            raise SessionClosed()
        current = self.count_messages(session_id)
        if order != current + 1:
            logger.info("Order conflict on session %s: expected %s, got %s", session_id, current + 1, order)
            raise OrderConflict(session_id=session_id, order=order)
        message = Message(
            session_id=session_id,
            role=role,
            content=content,
            order=order,
            is_correct=is_correct,
            improvement=improvement,
        )
        self.db.add(message)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info("Order %s on session %s already claimed by a concurrent writer", order, session_id)
            raise OrderConflict(session_id=session_id, order=order)
        return message

    def append_mistake(self, session_id: str, original: str, correction: str, explanation: str) -> Mistake:
        self._require_session(session_id)
        mistake = Mistake(
            session_id=session_id,
            original=original,
            correction=correction,
            explanation=explanation,
        )
        self.db.add(mistake)
        self.db.flush()
        return mistake

    def mark_completed(self, session_id: str) -> None:
        """IN_PROGRESS -> COMPLETED. Completing a completed session is a no-op."""
        self._require_session(session_id)
        self.db.execute(
            update(WritingSession)
            .where(WritingSession.id == session_id, WritingSession.status == SessionStatus.IN_PROGRESS)
            .values(status=SessionStatus.COMPLETED)
            .execution_options(synchronize_session="fetch")
        )

    def commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise OrderConflict()

    def rollback(self) -> None:
        self.db.rollback()
