import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.auth import (
    AuthContext, Identity, REFRESH_COOKIE, SESSION_KEY, TOKEN_COOKIE,
    get_auth_context, require_user,
)
from storefront.database import get_db
from storefront.models import User
from storefront.security import hash_password, verify_password

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


class SignupRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


def _cookie_options(request: Request) -> dict:
    settings = request.app.state.settings
    return {"httponly": True, "secure": settings.cookie_secure, "samesite": "none"}


def _start_session(request: Request, response: Response, auth: AuthContext, user: User) -> None:
    settings = request.app.state.settings
    options = _cookie_options(request)
    response.set_cookie(TOKEN_COOKIE, auth.tokens.issue(user), max_age=settings.session_max_age, **options)
    response.set_cookie(
        REFRESH_COOKIE,
        auth.tokens.issue_refresh(user),
        max_age=int(auth.tokens.refresh_ttl.total_seconds()),
        **options,
    )
    request.session[SESSION_KEY] = {"id": user.id, "role": user.role}


@router.post("/signup", status_code=201)
def signup(
    body: SignupRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    email = body.email.strip().lower()
    if not email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    if db.query(User).filter_by(email=email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    salt, key = hash_password(body.password)
    user = User(email=email, name=(body.name or "").strip() or None, password=key, salt=salt)
    db.add(user)
    db.commit()
    db.refresh(user)

    _start_session(request, response, auth, user)
    logger.info("user signed up id=%s", user.id)
    return user.as_api()


@router.post("/login")
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    user = db.query(User).filter_by(email=body.email.strip().lower()).first()
    if not user or not verify_password(body.password, user.salt, user.password):
        raise HTTPException(status_code=401, detail="invalid credentials")

    _start_session(request, response, auth, user)
    return {"id": user.id, "role": user.role}


@router.get("/check")
def check(identity: Identity = Depends(require_user)):
    return {"id": identity.id, "role": identity.role, "email": identity.email}


@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
):
    claims = auth.tokens.decode(request.cookies.get(REFRESH_COOKIE), kind="refresh")
    user = db.get(User, claims["id"]) if claims else None
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    settings = request.app.state.settings
    response.set_cookie(
        TOKEN_COOKIE, auth.tokens.issue(user), max_age=settings.session_max_age, **_cookie_options(request)
    )
    return {"id": user.id, "role": user.role}


@router.get("/logout")
def logout(request: Request, response: Response):
    options = _cookie_options(request)
    response.delete_cookie(TOKEN_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)
    request.session.clear()
    return {"ok": True}
