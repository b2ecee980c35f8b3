"""
Order Workflow Service
Configuration classes, selected by name in ``create_app``.

Environment variables:
    APP_ENV                        development | testing | production
    DATABASE_URL                   SQLAlchemy URL (postgres:// accepted)
    SECRET_KEY                     required in production
    REDIS_URL                      rate-limit storage; unset → in-memory
    CORS_ORIGINS                   comma-separated origins, "*" in dev
    LOG_LEVEL                      overrides the per-environment default
    ASSIGNMENT_STRICT_TRANSITIONS  "false" re-enables permissive transitions
    ACTOR_HEADER                   header carrying the caller's user id
    DEFAULT_PAGE_LIMIT             list endpoint page size
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'orderflow_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Per-process key; sessions do not survive a restart in development
_DEV_SECRET = secrets.token_hex(32)


def _env_bool(name, default):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _database_url(fallback):
    # SQLAlchemy 2.x only accepts the postgresql:// scheme
    raw = os.getenv("DATABASE_URL", "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else fallback


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # Flask-Limiter storage
    REDIS_URL = os.getenv("REDIS_URL", "")

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "")

    # Workflow
    ASSIGNMENT_STRICT_TRANSITIONS = _env_bool("ASSIGNMENT_STRICT_TRANSITIONS", "true")
    ACTOR_HEADER = os.getenv("ACTOR_HEADER", "X-User-Id")
    DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "50"))
    MAX_PAGE_LIMIT = 500


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    ASSIGNMENT_STRICT_TRANSITIONS = True


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _database_url(None)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# APP_ENV value → config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
