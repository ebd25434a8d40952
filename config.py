"""Settings loaded from environment variables (+ optional .env).

One Settings object for the whole app, built explicitly at startup. The JWT
signing secret has no default: a missing secret is a startup error.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from errors import ConfigError

DEFAULT_DATABASE_URL = "mongodb://localhost:27017"
DEFAULT_DATABASE_NAME = "tasktracker"
DEFAULT_TOKEN_TTL_SECONDS = 3600
DEFAULT_BCRYPT_ROUNDS = 10


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- Document store ----
    database_url: str
    database_name: str

    # ---- Auth ----
    jwt_secret: str
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS

    # ---- HTTP ----
    cors_origins: tuple = ("*",)
    host: str = "0.0.0.0"
    port: int = 8000

    # ---- Logging ----
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.jwt_secret:
            raise ConfigError("JWT_SECRET must be set to a non-empty value")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ConfigError(f"BCRYPT_ROUNDS must be between 4 and 31, got {self.bcrypt_rounds}")
        if self.token_ttl_seconds <= 0:
            raise ConfigError("TOKEN_TTL_SECONDS must be positive")

    @staticmethod
    def from_env(dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(override=False)

        jwt_secret = _env("JWT_SECRET").strip()
        if not jwt_secret:
            raise ConfigError("JWT_SECRET is not set; refusing to start without a signing secret")

        return Settings(
            database_url=_first_env("DATABASE_URL", "MONGO_URI", default=DEFAULT_DATABASE_URL)
            or DEFAULT_DATABASE_URL,
            database_name=_env("DATABASE_NAME", DEFAULT_DATABASE_NAME).strip() or DEFAULT_DATABASE_NAME,
            jwt_secret=jwt_secret,
            token_ttl_seconds=_env_int("TOKEN_TTL_SECONDS", DEFAULT_TOKEN_TTL_SECONDS),
            bcrypt_rounds=_env_int("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS),
            cors_origins=tuple(_env_list("CORS_ORIGINS", ["*"])),
            host=_env("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_dir=_first_env("LOG_DIR", default=None),
        )
