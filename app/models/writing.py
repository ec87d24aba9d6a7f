"""Writing sessions and their ledger: ordered messages and recorded mistakes."""
import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.models.base import Base


class SessionStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Role(str, enum.Enum):
    AI = "AI"
    USER = "USER"


def _new_id() -> str:
    return str(uuid.uuid4())


class WritingSession(Base):
    """A topic-bound writing conversation owned by one user."""
    __tablename__ = "writing_sessions"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    topic = Column(Text, nullable=False)
    status = Column(
        Enum(SessionStatus, name="session_status", native_enum=False),
        default=SessionStatus.IN_PROGRESS,
        nullable=False,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="sessions")
    messages = relationship(
        "Message",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="Message.order",
    )
    mistakes = relationship("Mistake", back_populates="session", cascade="all, delete-orphan")


class Message(Base):
    """One turn in a session. `order` is the only sequencing authority."""
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("writing_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(Role, name="message_role", native_enum=False), nullable=False)
    content = Column(Text, nullable=False)
    order = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=True)  # USER messages only
    improvement = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    session = relationship("WritingSession", back_populates="messages")

    __table_args__ = (
        # Backs compare-and-append: two writers racing for one order cannot both commit
        UniqueConstraint("session_id", "order", name="uq_messages_session_order"),
    )


class Mistake(Base):
    """A graded-incorrect submission. Only `reviewed` changes after creation."""
    __tablename__ = "mistakes"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, ForeignKey("writing_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    original = Column(Text, nullable=False)
    correction = Column(Text, nullable=False, default="")
    explanation = Column(Text, nullable=False, default="")
    reviewed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    session = relationship("WritingSession", back_populates="mistakes")
