"""Registration, login and logout. The login token travels in an HttpOnly cookie."""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_request_token
from app.core.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.auth import LoginRequest, LogoutResponse, RegisterRequest, UserOut, UserResponse
from app.services.auth import authenticate, create_login_session, register_user, revoke_token

router = APIRouter()


def _set_session_cookie(response: Response, token: str, expires_at: datetime) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.auth_session_ttl_hours * 3600,
        expires=expires_at.replace(tzinfo=timezone.utc),
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


def _user_response(user: User) -> UserResponse:
    return UserResponse(user=UserOut(id=user.id, email=user.email, name=user.name))


@router.post("/register", response_model=UserResponse)
async def register(request: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    user = register_user(db, request.email, request.password, request.name)
    token, expires_at = create_login_session(db, user)
    _set_session_cookie(response, token, expires_at)
    return _user_response(user)


@router.post("/login", response_model=UserResponse)
async def login(request: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = authenticate(db, request.email, request.password)
    token, expires_at = create_login_session(db, user)
    _set_session_cookie(response, token, expires_at)
    return _user_response(user)


@router.post("/logout", response_model=LogoutResponse)
async def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    revoke_token(db, get_request_token(request))
    response.delete_cookie(settings.auth_cookie_name, path="/")
    return LogoutResponse(ok=True)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return _user_response(user)
