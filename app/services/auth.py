"""Password hashing and cookie-token login sessions."""
import hashlib
import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

import bcrypt
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, InvalidArgument, Unauthorized
from app.models.user import AuthSession, User

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
# bcrypt only looks at the first 72 bytes
PASSWORD_MAX_BYTES = 72
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def register_user(db: Session, email: str, password: str, name: Optional[str] = None) -> User:
    email = normalize_email(email)
    password = password or ""
    if not email or not password:
        raise InvalidArgument("Email and password are required")
    if not EMAIL_RE.match(email):
        raise InvalidArgument("Invalid email format")
    if len(password) < settings.password_min_length:
        raise InvalidArgument(f"Password must be at least {settings.password_min_length} characters")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise InvalidArgument("Password is too long")
    if db.query(User).filter(User.email == email).first():
        raise Conflict("Email is already registered")

    user = User(email=email, name=(name or "").strip() or None, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s registered", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    email = normalize_email(email)
    if not email or not password:
        raise InvalidArgument("Email and password are required")
    user = db.query(User).filter(User.email == email).first()
    if user is None or not verify_password(password, user.password_hash):
        raise Unauthorized("Invalid email or password")
    return user


def create_login_session(db: Session, user: User) -> Tuple[str, datetime]:
    """Issue a new token. Returns (token, expires_at); only its hash is stored."""
    token = secrets.token_hex(TOKEN_BYTES)
    expires_at = datetime.utcnow() + timedelta(hours=settings.auth_session_ttl_hours)
    db.add(AuthSession(user_id=user.id, token_hash=hash_token(token), expires_at=expires_at))
    db.commit()
    return token, expires_at


def user_from_token(db: Session, token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    auth_session = db.query(AuthSession).filter(AuthSession.token_hash == hash_token(token)).first()
    if auth_session is None or auth_session.revoked_at is not None:
        return None
    if auth_session.expires_at <= datetime.utcnow():
        db.delete(auth_session)
        db.commit()
        return None
    return auth_session.user


def revoke_token(db: Session, token: Optional[str]) -> None:
    if not token:
        return
    (
        db.query(AuthSession)
        .filter(AuthSession.token_hash == hash_token(token), AuthSession.revoked_at.is_(None))
        .update({AuthSession.revoked_at: datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
