"""Authentication context and the authorization gate for protected routers."""
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional, Tuple

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.config import Settings
from storefront.database import get_db
from storefront.models import User
from storefront.security import TokenIssuer

TOKEN_COOKIE = "jwt"
REFRESH_COOKIE = "refresh"
SESSION_KEY = "user"


@dataclass(frozen=True)
class Identity:
    id: str
    role: str
    email: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class Credentials:
    cookie_token: Optional[str]
    bearer_token: Optional[str]
    session_user: Optional[dict]


def extract_credentials(request: Request) -> Credentials:
    bearer = None
    header = request.headers.get("authorization") or ""
    parts = header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        bearer = parts[1]
    session = request.session if "session" in request.scope else {}
    return Credentials(
        cookie_token=request.cookies.get(TOKEN_COOKIE),
        bearer_token=bearer,
        session_user=session.get(SESSION_KEY),
    )


class AuthContext:
    """Built once at startup and shared by every request through ``app.state.auth``."""

    def __init__(self, tokens: TokenIssuer):
        self.tokens = tokens
        self.authenticators: Tuple[Callable[[Credentials], Optional[dict]], ...] = (
            self.from_cookie,
            self.from_bearer,
            self.from_session,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthContext":
        return cls(TokenIssuer(
            settings.jwt_secret,
            access_ttl=timedelta(minutes=settings.access_token_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_days),
        ))

    def from_cookie(self, creds: Credentials) -> Optional[dict]:
        return self.tokens.decode(creds.cookie_token)

    def from_bearer(self, creds: Credentials) -> Optional[dict]:
        return self.tokens.decode(creds.bearer_token)

    def from_session(self, creds: Credentials) -> Optional[dict]:
        user = creds.session_user
        if isinstance(user, dict) and user.get("id"):
            return user
        return None

    def authenticate(self, creds: Credentials, db: Session) -> Optional[Identity]:
        for authenticator in self.authenticators:
            claims = authenticator(creds)
            if claims is None:
                continue
            user = db.get(User, claims["id"])
            if user is None:
                # Stale identity; the next variant may still hold a live one
                continue
            return Identity(id=user.id, role=user.role, email=user.email)
        return None


def get_auth_context(request: Request) -> AuthContext:
    return request.app.state.auth


def require_user(
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> Identity:
    identity = auth.authenticate(extract_credentials(request), db)
    if identity is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return identity


def require_admin(identity: Identity = Depends(require_user)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return identity
