"""Shared FastAPI dependencies: current user and the oracle client."""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Unauthorized
from app.database import get_db
from app.models.user import User
from app.services.auth import user_from_token
from app.services.oracle import GeminiOracle


@lru_cache(maxsize=1)
def get_oracle() -> GeminiOracle:
    """One oracle per process; override in tests via app.dependency_overrides."""
    return GeminiOracle()


def get_request_token(request: Request) -> Optional[str]:
    """Session cookie, or an `Authorization: Bearer` header for non-browser clients."""
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        return token
    auth_header = request.headers.get("authorization", "")
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = user_from_token(db, get_request_token(request))
    if user is None:
        raise Unauthorized()
    return user
