import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Force-load .env from the project root
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

DEV_SECRET = "dev-secret-change-me"


def _split(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


@dataclass
class Settings:
    """Runtime configuration, read once at process start."""

    session_secret: str = DEV_SECRET
    jwt_secret: str = DEV_SECRET
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    frontend_urls: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    currency: str = "usd"
    access_token_minutes: int = 60
    refresh_token_days: int = 7
    session_max_age: int = 60 * 60
    cookie_secure: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            session_secret=os.getenv("SESSION_SECRET_KEY", DEV_SECRET),
            jwt_secret=os.getenv("JWT_SECRET", DEV_SECRET),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            frontend_urls=_split(os.getenv("FRONTEND_URLS", "http://localhost:3000")),
            currency=os.getenv("PAYMENT_CURRENCY", "usd").lower(),
            access_token_minutes=int(os.getenv("ACCESS_TOKEN_MINUTES", "60")),
            refresh_token_days=int(os.getenv("REFRESH_TOKEN_DAYS", "7")),
            cookie_secure=os.getenv("COOKIE_SECURE", "true").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
