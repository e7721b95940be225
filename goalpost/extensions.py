import logging
import os
import time
from typing import Any, Callable, Optional

import stripe
from blinker import Namespace
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from sqlalchemy.exc import OperationalError

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=os.getenv("SOCKET_ASYNC_MODE", "threading"))
csrf = CSRFProtect()
cors = CORS()


# ─────────────────────────────────────────────────────────────
# Signals
# ─────────────────────────────────────────────────────────────
_signals = Namespace()

# Sent only after a successful commit that changed a goal's public state.
# Receivers get: sender=app, goal_id=<str>, reason=<str>
goal_changed = _signals.signal("goal-changed")


# ─────────────────────────────────────────────────────────────
# Safe DB helpers
# ─────────────────────────────────────────────────────────────
def _is_db_locked(err: Exception) -> bool:
    msg = str(err).lower()
    return ("database is locked" in msg) or ("sqlite_busy" in msg) or ("database table is locked" in msg)


def retry_on_db_lock(fn: Callable[[], Any], *, attempts: int = 6, backoff: float = 0.05) -> Any:
    """
    Run fn(); on SQLite lock contention roll back and try again with linear backoff.
    Any other error is rolled back and re-raised unchanged.
    """
    for i in range(attempts):
        try:
            return fn()
        except OperationalError as e:
            db.session.rollback()
            if _is_db_locked(e) and i < attempts - 1:
                log.debug("db locked, retrying (%s/%s)", i + 1, attempts)
                time.sleep(backoff * (i + 1))
                continue
            raise
        except Exception:
            db.session.rollback()
            raise


def tx_commit() -> None:
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# ─────────────────────────────────────────────────────────────
# Safe socket emit
# ─────────────────────────────────────────────────────────────
def emit_socket(event: str, data: Optional[dict] = None, room: Optional[str] = None) -> bool:
    try:
        socketio.emit(event, data or {}, to=room)
        return True
    except Exception as e:
        log.warning("socket emit failed: %s", e)
        return False


# ─────────────────────────────────────────────────────────────
# Stripe initialization
# ─────────────────────────────────────────────────────────────
def _guess_stripe_mode(api_key: Optional[str]) -> str:
    if not api_key:
        return "disabled"
    if api_key.startswith(("sk_live_", "rk_live_")):
        return "live"
    if api_key.startswith(("sk_test_", "rk_test_")):
        return "test"
    return "unknown"


def init_stripe(app: Any) -> None:
    api_key = (app.config.get("STRIPE_SECRET_KEY") or "").strip()

    if not api_key:
        app.logger.warning("Stripe NOT initialized: missing STRIPE_SECRET_KEY")
        return

    stripe.api_key = api_key
    stripe.max_network_retries = int(app.config.get("STRIPE_MAX_NETWORK_RETRIES", 2) or 0)
    app.logger.info("Stripe initialized (%s mode)", _guess_stripe_mode(api_key))


__all__ = [
    "db",
    "migrate",
    "socketio",
    "csrf",
    "cors",
    "goal_changed",
    "retry_on_db_lock",
    "tx_commit",
    "emit_socket",
    "init_stripe",
]
