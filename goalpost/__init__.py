# goalpost/__init__.py
# Goalpost: Flask app factory
# - deterministic blueprint registration (goals API + Stripe payments)
# - proxy-correct behind a reverse proxy
# - JSON error shape everywhere: {"ok": false, "error": {"code", "message", ...}}

from __future__ import annotations

import logging
import os
import time
from typing import Any, List, Optional, Type, Union
from uuid import uuid4

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask, g, request
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.utils import import_string

# never override real env vars
load_dotenv(override=False)

from goalpost.blueprints.responses import json_error  # noqa: E402
from goalpost.config import CONFIG_BY_NAME, DevelopmentConfig, ProductionConfig  # noqa: E402
from goalpost.exceptions import GoalpostError  # noqa: E402
from goalpost.extensions import cors, csrf, db, init_stripe, migrate, socketio  # noqa: E402

ConfigLike = Union[str, Type[Any]]

__version__ = "1.0.0"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _env_mode() -> str:
    for key in ("APP_ENV", "ENV", "FLASK_ENV"):
        val = (os.getenv(key) or "").strip().lower()
        if val:
            if val == "prod":
                return "production"
            if val == "dev":
                return "development"
            return val
    return "development"


def _resolve_config(target: Optional[ConfigLike]) -> ConfigLike:
    """
    Choose the config class.
    - explicit argument wins (class or dotted path)
    - then FLASK_CONFIG (dotted path)
    - then APP_ENV / ENV / FLASK_ENV by name
    """
    if target is not None:
        return target

    explicit = (os.getenv("FLASK_CONFIG") or "").strip()
    if explicit:
        return explicit

    env = _env_mode()
    return CONFIG_BY_NAME.get(env) or (ProductionConfig if env == "production" else DevelopmentConfig)


def _parse_cors_origins(raw: Optional[str]) -> Union[str, List[str]]:
    raw = (raw or "*").strip()
    if raw in {"", "*"}:
        return "*"
    if "," in raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return raw


def _wants_json_response() -> bool:
    path = request.path or ""
    if path.startswith(("/api/", "/payments/")):
        return True
    accept = (request.headers.get("Accept") or "").lower()
    return ("application/json" in accept) or bool(request.is_json)


# -----------------------------------------------------------------------------
# Logging with request_id
# -----------------------------------------------------------------------------
class _RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.request_id = getattr(g, "request_id", "-")
        except RuntimeError:
            # outside an app/request context
            record.request_id = "-"
        return True


def _configure_logging(app: Flask) -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_RequestIDFilter())
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if not any(isinstance(f, _RequestIDFilter) for f in h.filters):
                h.addFilter(_RequestIDFilter())
            if not getattr(h, "formatter", None) or "%(request_id)s" not in getattr(h.formatter, "_fmt", ""):
                h.setFormatter(logging.Formatter(fmt))

    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL", "WARNING")).upper())
    app.logger.info("Loaded config: ENV=%s DEBUG=%s", app.config.get("ENV", "?"), app.debug)


# -----------------------------------------------------------------------------
# Integrations
# -----------------------------------------------------------------------------
def _apply_proxyfix(app: Flask) -> None:
    if not app.config.get("TRUST_PROXY"):
        return
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)  # type: ignore[method-assign]
    app.logger.info("ProxyFix enabled (trusting X-Forwarded-* headers).")


def _init_sentry(app: Flask) -> None:
    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        return
    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            FlaskIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        send_default_pii=False,
        environment=app.config.get("ENV", "development"),
        release=os.getenv("GIT_COMMIT"),
    )
    app.logger.info("Sentry initialized")


def _init_cors(app: Flask, cors_origins: Union[str, List[str]]) -> None:
    cors.init_app(
        app,
        resources={
            r"/api/*": {"origins": cors_origins},
            r"/payments/*": {"origins": cors_origins},
        },
        expose_headers=["X-Request-ID"],
        allow_headers=["Content-Type", "Stripe-Signature", "X-Request-ID"],
        methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    )


def _init_socketio(app: Flask, cors_origins: Union[str, List[str]]) -> None:
    from goalpost.services.live import init_live

    socketio.init_app(
        app,
        async_mode=app.config.get("SOCKET_ASYNC_MODE") or "threading",
        cors_allowed_origins=cors_origins,
    )
    init_live(app)


def _maybe_create_sqlite_tables(app: Flask) -> None:
    uri = (app.config.get("SQLALCHEMY_DATABASE_URI") or "").strip()
    if not uri.startswith("sqlite"):
        return
    if app.config.get("AUTO_CREATE_SQLITE", True) is not True:
        return
    import goalpost.models  # noqa: F401  (register tables on db.metadata)

    with app.app_context():
        db.create_all()


# -----------------------------------------------------------------------------
# Blueprints
# -----------------------------------------------------------------------------
def _register_blueprints(app: Flask) -> None:
    from goalpost.blueprints.goals import bp as goals_bp
    from goalpost.blueprints.payments import bp as payments_bp

    for blueprint, prefix in ((goals_bp, "/api/goals"), (payments_bp, "/payments")):
        app.register_blueprint(blueprint, url_prefix=prefix)
        app.logger.info("Registered blueprint: %-10s → %s", blueprint.name, prefix)


# -----------------------------------------------------------------------------
# Request lifecycle + errors
# -----------------------------------------------------------------------------
def _register_request_lifecycle(app: Flask) -> None:
    @app.before_request
    def _bootstrap_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g._start_ts = time.perf_counter()

    @app.after_request
    def _attach_request_headers(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        start = getattr(g, "_start_ts", None)
        if start:
            resp.headers["X-Response-Time-ms"] = str(int((time.perf_counter() - start) * 1000))
        return resp


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(GoalpostError)
    def _goalpost_err(err: GoalpostError):
        if err.status_code >= 500:
            app.logger.warning("%s: %s", err.code, err.message)
        body = err.to_dict()
        body["type"] = body.pop("code")
        message = body.pop("message")
        return json_error(message, err.status_code, request_id=getattr(g, "request_id", "-"), **body)

    @app.errorhandler(HTTPException)
    def _http_err(err: HTTPException):
        if _wants_json_response():
            return json_error(err.description or err.name, err.code or 500, request_id=getattr(g, "request_id", "-"))
        return err

    @app.errorhandler(Exception)
    def _uncaught(err: Exception):
        app.logger.exception("Unhandled error")

        # let Stripe redeliver
        if (request.path or "").startswith("/payments/stripe/webhook"):
            return ("", 500)

        return json_error("Internal Server Error", 500, request_id=getattr(g, "request_id", "-"))


def _register_health_endpoints(app: Flask) -> None:
    @app.get("/healthz")
    def _healthz():
        return {
            "status": "ok",
            "env": app.config.get("ENV", "unknown"),
            "request_id": getattr(g, "request_id", "-"),
        }

    @app.get("/version")
    def _version():
        return {
            "version": os.getenv("GIT_COMMIT") or __version__,
            "env": app.config.get("ENV"),
            "public_base_url": app.config.get("PUBLIC_BASE_URL") or "",
        }


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigLike] = None) -> Flask:
    app = Flask(__name__)

    cfg = _resolve_config(config_class)
    if isinstance(cfg, str):
        cfg = import_string(cfg)
    app.config.from_object(cfg)
    cfg.init_app(app)

    app.url_map.strict_slashes = False
    app.config.setdefault("JSON_SORT_KEYS", False)

    # ---- Proxy handling first
    _apply_proxyfix(app)

    # ---- Logging / integrations
    _configure_logging(app)
    _init_sentry(app)
    cors_origins = _parse_cors_origins(app.config.get("CORS_ORIGINS"))
    _init_cors(app, cors_origins)

    # ---- Core extensions
    csrf.init_app(app)
    db.init_app(app)
    _maybe_create_sqlite_tables(app)
    migrate.init_app(app, db, compare_type=True, render_as_batch=True)
    init_stripe(app)
    _init_socketio(app, cors_origins)

    # ---- Request lifecycle / errors
    _register_request_lifecycle(app)
    _register_error_handlers(app)

    # ---- Blueprints + health
    _register_blueprints(app)
    _register_health_endpoints(app)

    # ---- CLI
    from goalpost.cli import register_cli

    register_cli(app)

    return app
