"""
Pytest configuration and fixtures.

Every test gets its own app bound to a temporary SQLite file (not :memory:),
so worker threads in the concurrency tests see the same database.
"""
import hashlib
import hmac
import json
import time
from decimal import Decimal

import pytest
import stripe

from goalpost import create_app
from goalpost.config import TestingConfig
from goalpost.extensions import db, socketio
from goalpost.services import goal_store


@pytest.fixture
def app(tmp_path):
    """Fresh application + schema per test."""
    config = type(
        "TmpTestingConfig",
        (TestingConfig,),
        {"SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'goalpost.db'}"},
    )
    app = create_app(config)
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    """Pushed app context for service-level tests."""
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def socket_client(app, client):
    sc = socketio.test_client(app, flask_test_client=client)
    yield sc
    if sc.is_connected():
        sc.disconnect()


@pytest.fixture
def make_goal(app):
    """
    Create a goal through the store and return (goal_id, edit_secret).
    Default: target 3000 with milestones 1000 / 1500 / 500.
    """

    def _make(target=Decimal("3000"), milestones=None, payout_account_id="acct_test_creator", name="Team trip"):
        if milestones is None:
            milestones = [
                {"name": "Jerseys", "target_amount": Decimal("1000")},
                {"name": "Travel", "target_amount": Decimal("1500")},
                {"name": "Tournament fees", "target_amount": Decimal("500")},
            ]
        with app.app_context():
            goal, secret = goal_store.create_goal(name, "Demo goal", target, payout_account_id, milestones=milestones)
            return goal.id, secret

    return _make


# ----------------------------
# Stripe helpers
# ----------------------------
def sign_payload(payload: bytes, secret: str = TestingConfig.STRIPE_WEBHOOK_SECRET, timestamp=None) -> str:
    """Build a Stripe-Signature header the way Stripe does (HMAC-SHA256 over "<t>.<payload>")."""
    ts = int(timestamp if timestamp is not None else time.time())
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def checkout_completed_event(
    goal_id,
    amount_cents,
    *,
    event_id="evt_test_1",
    payment_intent="pi_test_1",
    donor_name="",
    message="",
    payment_status="paid",
):
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "livemode": False,
        "data": {
            "object": {
                "id": f"cs_{event_id}",
                "object": "checkout.session",
                "amount_total": amount_cents,
                "currency": "usd",
                "payment_intent": payment_intent,
                "payment_status": payment_status,
                "metadata": {"goal_id": goal_id, "donor_name": donor_name, "message": message},
            }
        },
    }


@pytest.fixture
def post_webhook(client):
    """POST an event dict to the webhook with a valid signature (or a custom header)."""

    def _post(event, *, sig_header=None, sign=True):
        payload = json.dumps(event).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if sig_header is not None:
            headers["Stripe-Signature"] = sig_header
        elif sign:
            headers["Stripe-Signature"] = sign_payload(payload)
        return client.post("/payments/stripe/webhook", data=payload, headers=headers)

    return _post


@pytest.fixture
def fake_stripe(monkeypatch):
    """
    Replace the Stripe API calls used by the checkout/connect relay.
    Tweak `state` in a test to change account activation or inject failures.
    """
    state = {
        "charges_enabled": True,
        "details_submitted": True,
        "fail_with": None,
        "sessions": [],
        "links": [],
    }

    def _maybe_fail():
        if state["fail_with"] is not None:
            raise state["fail_with"]

    def account_create(**kwargs):
        _maybe_fail()
        return {"id": "acct_new_creator"}

    def account_retrieve(account_id, **kwargs):
        _maybe_fail()
        return {
            "id": account_id,
            "charges_enabled": state["charges_enabled"],
            "details_submitted": state["details_submitted"],
        }

    def account_link_create(**kwargs):
        _maybe_fail()
        state["links"].append(kwargs)
        return {"url": f"https://connect.stripe.test/setup/{kwargs['account']}"}

    def session_create(**kwargs):
        _maybe_fail()
        state["sessions"].append(kwargs)
        return {"id": "cs_test_123", "url": "https://checkout.stripe.test/pay/cs_test_123"}

    monkeypatch.setattr(stripe.Account, "create", account_create)
    monkeypatch.setattr(stripe.Account, "retrieve", account_retrieve)
    monkeypatch.setattr(stripe.AccountLink, "create", account_link_create)
    monkeypatch.setattr(stripe.checkout.Session, "create", session_create)
    return state


@pytest.fixture
def checkout_event():
    return checkout_completed_event


@pytest.fixture
def signer():
    return sign_payload
