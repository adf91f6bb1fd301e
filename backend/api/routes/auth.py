from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from api.deps import get_current_actor, get_current_user
from core.config import settings
from core.database import get_db
from core.security import create_access_token
from core.timeutils import utcnow
from models.user import User
from schemas.auth import ChangePasswordRequest, LoginRequest, LoginResponse, MeResponse, RegisterRequest
from schemas.common import ApiResponse, ok
from services import account_service
from services.access import Actor, resolve_actor


router = APIRouter()

logger = logging.getLogger(__name__)


# Simple in-memory rate limiting for login.
# NOTE: In multi-worker deployments this is per-worker.
_LOGIN_WINDOW_SECONDS = 60
_LOGIN_MAX_ATTEMPTS_PER_KEY = 12
_login_attempts: dict[str, list[float]] = {}


def _rate_limit_key(request: Request, email: str) -> str:
    ip = request.client.host if request.client else "unknown"
    return f"{ip}:{email.lower().strip()}"


def _enforce_login_rate_limit(request: Request, email: str) -> None:
    key = _rate_limit_key(request, email)
    now = time.time()
    history = _login_attempts.get(key, [])
    history = [t for t in history if now - t < _LOGIN_WINDOW_SECONDS]
    history.append(now)
    _login_attempts[key] = history
    if len(history) > _LOGIN_MAX_ATTEMPTS_PER_KEY:
        logger.warning("Login rate limited key=%s", key)
        raise HTTPException(status_code=429, detail="RATE_LIMITED")


def _me_payload(user: User, actor: Actor) -> MeResponse:
    return MeResponse(
        id=user.id,
        email=user.email,
        role=user.role,
        is_active=user.is_active,
        is_verified=user.is_verified,
        organization_id=actor.organization_id,
        company_id=actor.company_id,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


def _issue_token(response: Response, user: User, actor: Actor) -> str:
    token = create_access_token(
        user_id=str(user.id),
        email=user.email,
        role=user.role.value,
        organization_id=str(actor.organization_id) if actor.organization_id else None,
        company_id=str(actor.company_id) if actor.company_id else None,
    )
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
    )
    return token


@router.post("/register", response_model=ApiResponse[LoginResponse], status_code=201)
def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> dict:
    if settings.is_production and not settings.allow_signup:
        raise HTTPException(status_code=403, detail="SIGNUP_DISABLED")
    _enforce_login_rate_limit(request, payload.email)

    user = account_service.register_user(db, payload)
    actor = resolve_actor(db, user)
    token = _issue_token(response, user, actor)

    ip = request.client.host if request.client else "unknown"
    logger.info("Signup success ip=%s email=%r role=%s", ip, user.email, user.role.value)
    return ok(LoginResponse(access_token=token, user=_me_payload(user, actor)), "Account created")


@router.post("/login", response_model=ApiResponse[LoginResponse])
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> dict:
    _enforce_login_rate_limit(request, payload.email)

    user = account_service.authenticate(db, payload.email, payload.password)
    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)

    actor = resolve_actor(db, user)
    token = _issue_token(response, user, actor)
    return ok(LoginResponse(access_token=token, user=_me_payload(user, actor)), "Logged in")


@router.post("/logout", response_model=ApiResponse[None])
def logout(response: Response) -> dict:
    response.delete_cookie(key="access_token", path="/")
    return ok(message="Logged out")


@router.get("/me", response_model=ApiResponse[MeResponse])
def me(
    current_user: User = Depends(get_current_user),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    return ok(_me_payload(current_user, actor))


@router.post("/change-password", response_model=ApiResponse[None])
def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    account_service.change_password(db, current_user, payload.current_password, payload.new_password)
    return ok(message="Password updated")
