"""Password hashing and signed bearer tokens."""
import hashlib
import hmac
import os
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from jose import JWTError, jwt

PBKDF2_ITERATIONS = 310000
PBKDF2_KEY_LENGTH = 32
PBKDF2_DIGEST = "sha256"
SALT_BYTES = 16

ALGORITHM = "HS256"


def _derive(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac(
        PBKDF2_DIGEST, password.encode("utf-8"), salt, PBKDF2_ITERATIONS, PBKDF2_KEY_LENGTH
    )


def hash_password(password: str, salt: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    """Return ``(salt, derived_key)`` for storage on the user record."""
    if salt is None:
        salt = os.urandom(SALT_BYTES)
    return salt, _derive(password, salt)


def verify_password(password: str, salt: bytes, stored: bytes) -> bool:
    """Recompute the salted key and compare it to ``stored`` in constant time."""
    if not password or not salt or not stored:
        return False
    return hmac.compare_digest(_derive(password, bytes(salt)), bytes(stored))


def sanitize_user(user) -> dict:
    """Token-safe identity. Credential material never leaves the record."""
    return {"id": user.id, "role": user.role, "email": user.email}


class TokenIssuer:
    """Mints and decodes HS256 tokens carrying a sanitized user."""

    def __init__(self, secret: str, access_ttl: timedelta, refresh_ttl: timedelta):
        self.secret = secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _encode(self, user, kind: str, ttl: timedelta) -> str:
        claims = sanitize_user(user)
        claims["typ"] = kind
        claims["exp"] = datetime.now(timezone.utc) + ttl
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def issue(self, user) -> str:
        return self._encode(user, "access", self.access_ttl)

    def issue_refresh(self, user) -> str:
        return self._encode(user, "refresh", self.refresh_ttl)

    def decode(self, token: Optional[str], kind: str = "access") -> Optional[dict]:
        # Expired, tampered or wrong-typed tokens all decode to None
        if not token:
            return None
        try:
            claims = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except JWTError:
            return None
        if claims.get("typ") != kind or not claims.get("id"):
            return None
        return claims
