"""Users, login sessions, flashcards and practice goals."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.models.base import Base


class User(Base):
    """Registered learner."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    auth_sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("WritingSession", back_populates="user", cascade="all, delete-orphan")
    flashcards = relationship("Flashcard", back_populates="user", cascade="all, delete-orphan")
    goal = relationship("UserGoal", back_populates="user", uselist=False, cascade="all, delete-orphan")


class AuthSession(Base):
    """Login token. Only the sha256 of the cookie value is stored."""
    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="auth_sessions")


class Flashcard(Base):
    """Saved vocabulary item."""
    __tablename__ = "flashcards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    source_text = Column(Text, nullable=False)
    translation = Column(Text, nullable=True)
    source_lang = Column(String(16), default="en", nullable=False)
    target_lang = Column(String(16), default="vi", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="flashcards")

    __table_args__ = (
        UniqueConstraint("user_id", "source_text", name="uq_flashcards_user_source"),
    )


class UserGoal(Base):
    """Weekly practice goal and reminder preferences (one row per user)."""
    __tablename__ = "user_goals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    weekly_session_goal = Column(Integer, default=3, nullable=False)
    reminder_enabled = Column(Boolean, default=False, nullable=False)
    reminder_time = Column(String(5), default="19:00", nullable=False)
    reminder_timezone = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="goal")
