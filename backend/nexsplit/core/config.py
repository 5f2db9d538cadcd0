"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Placeholder signing key for local runs only; production must provide its own.
DEV_JWT_SECRET: Final[str] = "dev-only-insecure-jwt-signing-key-change-me-0123456789"


# Load .env in development (no-op when missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``.

    Blank values are treated as unset. Non-numeric values raise ``ValueError``
    so misconfiguration surfaces at startup instead of at request time.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val.strip())


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    JWT_SECRET_KEY: str | None
        Symmetric key signing access tokens. Must be at least 32 bytes; the
        application factory refuses to start otherwise.
    ACCESS_TOKEN_EXPIRES_MINUTES: int
        Lifetime of access tokens (15 minutes by default).
    REFRESH_TOKEN_EXPIRES_DAYS: int
        Lifetime of refresh tokens (7 days by default).
    ROTATION_BURST_THRESHOLD: int
        Maximum tokens a family may mint inside the burst window.
    ROTATION_BURST_WINDOW_SECONDS: int
        Length of the burst window.
    ROTATION_MAX_USER_AGENTS: int
        Maximum distinct user agents among the active tokens of a family.
    ROTATION_MAX_ACTIVE_TOKENS: int
        Maximum active (unused, unrevoked) tokens in a family.
    REFRESH_TOKEN_STORE: str
        Backend for refresh tokens: ``"sqlalchemy"``, ``"redis"`` or ``"memory"``.
    REDIS_URL: str | None
        Connection URL, required when the Redis backend is selected.
    REFRESH_COOKIE_*:
        Attributes of the HTTP-only cookie transporting refresh tokens.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    USE_PROXYFIX: bool
        Trust one hop of ``X-Forwarded-*`` headers (client IP capture).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")

    # Token lifetimes
    ACCESS_TOKEN_EXPIRES_MINUTES = env_int("ACCESS_TOKEN_EXPIRES_MINUTES", 15)
    REFRESH_TOKEN_EXPIRES_DAYS = env_int("REFRESH_TOKEN_EXPIRES_DAYS", 7)

    # Theft-detection thresholds
    ROTATION_BURST_THRESHOLD = env_int("ROTATION_BURST_THRESHOLD", 5)
    ROTATION_BURST_WINDOW_SECONDS = env_int("ROTATION_BURST_WINDOW_SECONDS", 60)
    ROTATION_MAX_USER_AGENTS = env_int("ROTATION_MAX_USER_AGENTS", 1)
    ROTATION_MAX_ACTIVE_TOKENS = env_int("ROTATION_MAX_ACTIVE_TOKENS", 1)

    # Refresh token storage
    REFRESH_TOKEN_STORE = os.getenv("REFRESH_TOKEN_STORE", "sqlalchemy")
    REDIS_URL = os.getenv("REDIS_URL")

    # Refresh cookie
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", True)
    REFRESH_COOKIE_SAMESITE = os.getenv("REFRESH_COOKIE_SAMESITE", "Strict")
    REFRESH_COOKIE_PATH = os.getenv("REFRESH_COOKIE_PATH", "/api/v1/auth")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & proxy
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default, falls back to a placeholder signing key
    and sends the refresh cookie over plain HTTP.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", DEV_JWT_SECRET)
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", False)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = DEV_JWT_SECRET
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    REFRESH_TOKEN_STORE = "sqlalchemy"
    REFRESH_COOKIE_SECURE = False
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled. ``JWT_SECRET_KEY`` has no default:
    a missing or short key aborts startup.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
