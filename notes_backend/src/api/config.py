import logging
import os
import secrets
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

MIN_BCRYPT_ROUNDS = 10


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, built once at startup and passed to create_app.
    """
    secret_key: str
    database_url: str = "sqlite:///./notes.db"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    cookie_name: str = "token"
    cookie_cross_site: bool = False
    bcrypt_rounds: int = 12
    db_timeout_seconds: float = 5.0
    frontend_origins: Tuple[str, ...] = field(default=("http://localhost:5173",))
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.secret_key:
            raise ValueError("secret_key must not be empty")
        if self.access_token_expire_minutes <= 0:
            raise ValueError("access_token_expire_minutes must be positive")
        if self.bcrypt_rounds < MIN_BCRYPT_ROUNDS:
            raise ValueError(f"bcrypt_rounds must be at least {MIN_BCRYPT_ROUNDS}")
        if self.db_timeout_seconds <= 0:
            raise ValueError("db_timeout_seconds must be positive")

    @property
    def session_max_age(self) -> int:
        """Lifetime in seconds shared by the session token and its cookie."""
        return self.access_token_expire_minutes * 60

    # PUBLIC_INTERFACE
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        A missing SECRET_KEY falls back to a random per-process secret, which
        invalidates every session on restart.

        Raises:
            ValueError if a variable holds an unusable value.
        """
        env = os.environ if environ is None else environ

        secret = env.get("SECRET_KEY", "")
        if not secret:
            logger.warning("SECRET_KEY is not set; using a random secret for this process")
            secret = secrets.token_urlsafe(32)

        origins = tuple(
            o.strip() for o in env.get("FRONTEND_ORIGINS", "http://localhost:5173").split(",") if o.strip()
        )

        raw_timeout = env.get("DB_TIMEOUT_SECONDS", "5")
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ValueError(f"DB_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}")

        return cls(
            secret_key=secret,
            database_url=env.get("DATABASE_URL", "sqlite:///./notes.db"),
            algorithm=env.get("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_env_int(env, "ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24),
            cookie_name=env.get("SESSION_COOKIE_NAME", "token"),
            cookie_cross_site=_env_bool(env.get("COOKIE_CROSS_SITE", "false")),
            bcrypt_rounds=_env_int(env, "BCRYPT_ROUNDS", 12),
            db_timeout_seconds=timeout,
            frontend_origins=origins,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
