# goalpost/config/config.py
# Canonical Goalpost configuration (env-first, production-safe)

from __future__ import annotations

import os
from typing import Optional


# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def _int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - every setting can be overridden via environment variables
    - safe defaults for local dev
    """

    ENV = (_env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    # Security
    SECRET_KEY = _env("SECRET_KEY", "dev-change-me")

    # URLs / scheme
    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", ""))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", False)
    CORS_ORIGINS = _env("CORS_ORIGINS", "*")

    # Logging
    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    WERKZEUG_LOG_LEVEL = _env("WERKZEUG_LOG_LEVEL", "WARNING")

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = _env("SQLALCHEMY_DATABASE_URI", "sqlite:///goalpost-dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    AUTO_CREATE_SQLITE = _bool("AUTO_CREATE_SQLITE", True)

    # Live updates
    SOCKET_ASYNC_MODE = _env("SOCKET_ASYNC_MODE", "threading")

    # Stripe
    STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY", "")
    STRIPE_PUBLISHABLE_KEY = _env("STRIPE_PUBLISHABLE_KEY", "")
    STRIPE_WEBHOOK_SECRET = _env("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_MAX_NETWORK_RETRIES = _int("STRIPE_MAX_NETWORK_RETRIES", 2)

    # Donations / goals
    DEFAULT_CURRENCY = (_env("DEFAULT_CURRENCY", "usd") or "usd").lower()
    MIN_DONATION_CENTS = _int("MIN_DONATION_CENTS", 100)
    MAX_DONATION_CENTS = _int("MAX_DONATION_CENTS", 50_000 * 100)
    MILESTONE_TOLERANCE_CENTS = _int("MILESTONE_TOLERANCE_CENTS", 1)
    EDIT_SECRET_BYTES = _int("EDIT_SECRET_BYTES", 24)
    MAX_TARGET_CENTS = _int("MAX_TARGET_CENTS", 1_000_000_000 * 100)
    DONATION_FEED_LIMIT = _int("DONATION_FEED_LIMIT", 50)

    @classmethod
    def init_app(cls, app) -> None:
        """Boot hardening hook, called from create_app() after from_object()."""
        uri = str(app.config.get("SQLALCHEMY_DATABASE_URI") or "")

        # SQLite: concurrent writers wait on the file lock instead of failing fast
        if uri.startswith("sqlite:"):
            opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
            connect_args = dict(opts.get("connect_args") or {})
            connect_args.setdefault("check_same_thread", False)
            connect_args.setdefault("timeout", 15)
            opts["connect_args"] = connect_args
            opts.setdefault("pool_pre_ping", True)
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")
    LOG_LEVEL = _env("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    PUBLIC_BASE_URL = "http://goalpost.test"
    PREFERRED_URL_SCHEME = "http"
    WTF_CSRF_ENABLED = False

    STRIPE_SECRET_KEY = "sk_test_goalpost"
    STRIPE_PUBLISHABLE_KEY = "pk_test_goalpost"
    STRIPE_WEBHOOK_SECRET = "whsec_goalpost_testing"
    STRIPE_MAX_NETWORK_RETRIES = 0


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", True)

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        # ---- Production guardrails (fail fast) ----
        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base and base.startswith("http://"):
            raise RuntimeError("PUBLIC_BASE_URL must be https:// in production.")

        if not app.config.get("STRIPE_WEBHOOK_SECRET"):
            raise RuntimeError("STRIPE_WEBHOOK_SECRET is required in production (webhooks are signed).")

        if _bool("FLASK_DEBUG", False):
            raise RuntimeError("FLASK_DEBUG must be 0 in production.")
