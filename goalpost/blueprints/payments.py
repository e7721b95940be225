#!/usr/bin/env python3
"""
Goalpost Payments Blueprint (Stripe)

Mount: /payments

  GET  /payments/health            db + stripe components (?strict=1 -> 503 when not ok)
  GET  /payments/config            publishable key, currency, donation bounds
  POST /payments/checkout          {goal_id, amount, donor_name?, message?} -> {url}
  POST /payments/connect           {action: create|verify, account_id?}
  POST /payments/stripe/webhook    signed provider notifications

Checkout writes nothing locally. The webhook is the only path that records a
donation, and only after the Stripe-Signature header checks out.
"""

from __future__ import annotations

import time
from typing import Any, Dict

from flask import Blueprint, current_app, request
from sqlalchemy import text

from goalpost.blueprints.responses import json_ok, json_response, request_payload
from goalpost.exceptions import AuthenticityFailure, ValidationFailed
from goalpost.extensions import csrf, db
from goalpost.forms.goal_forms import CheckoutForm, validate_json
from goalpost.helpers import to_cents
from goalpost.services import payments
from goalpost.services.goal_store import get_goal

bp = Blueprint("payments", __name__)
csrf.exempt(bp)

_PROCESS_START = time.time()


def _truthy(v: Any) -> bool:
    return str(v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


# ----------------------------
# Health checks
# ----------------------------
def _db_check() -> Dict[str, Any]:
    t0 = time.perf_counter()
    out: Dict[str, Any] = {"ok": True}
    try:
        db.session.execute(text("SELECT 1"))
    except Exception as e:
        db.session.rollback()
        out = {"ok": False, "error": f"{type(e).__name__}: {str(e)[:200]}"}
    out["latencyMs"] = int((time.perf_counter() - t0) * 1000)
    return out


def _stripe_check(s: payments.Settings) -> Dict[str, Any]:
    wh_present = bool(s.stripe_whsec)
    out: Dict[str, Any] = {
        "ok": s.stripe_keys_present,
        "mode": s.stripe_mode,
        "webhookSecretPresent": wh_present,
    }
    if not s.stripe_keys_present:
        out["warning"] = "missing_keys"
    elif not wh_present:
        out["warning"] = "missing_webhook_secret"
    return out


def _health_status(components: Dict[str, Any]) -> str:
    if not components["db"]["ok"]:
        return "error"
    if not components["stripe"]["ok"] or components["stripe"].get("warning"):
        return "degraded"
    return "ok"


# ----------------------------
# Routes
# ----------------------------
@bp.get("/health")
def payments_health():
    strict = _truthy(request.args.get("strict"))
    s = payments.Settings.load()

    components = {"db": _db_check(), "stripe": _stripe_check(s)}
    status = _health_status(components)
    code = 200 if (not strict or status == "ok") else 503

    return json_response(
        {
            "ok": True,
            "status": status,
            "strict": strict,
            "env": s.env,
            "uptimeS": int(time.time() - _PROCESS_START),
            "components": components,
        },
        code,
    )


@bp.get("/config")
def payments_config():
    s = payments.Settings.load()
    return json_ok(
        {
            "publishableKey": s.stripe_pk,
            "mode": s.stripe_mode,
            "currency": s.currency,
            "minAmountCents": s.min_amount_cents,
            "maxAmountCents": s.max_amount_cents,
        }
    )


@bp.post("/checkout")
def checkout():
    form = validate_json(CheckoutForm, request_payload())
    try:
        amount_cents = to_cents(form.amount.data)
    except ValueError:
        raise ValidationFailed("Invalid input", errors={"amount": ["Please enter a valid amount."]})
    goal = get_goal(form.goal_id.data)

    url = payments.create_checkout(
        goal,
        amount_cents,
        donor_name=form.donor_name.data,
        message=form.message.data,
    )
    return json_ok({"url": url})


@bp.post("/connect")
def connect():
    data = request_payload()
    action = str(data.get("action") or "").strip().lower()

    if action == "create":
        account_id, url = payments.create_payout_account()
        return json_ok({"account_id": account_id, "url": url})

    if action == "verify":
        account_id = str(data.get("account_id") or "").strip()
        if not account_id:
            raise ValidationFailed("account_id is required", errors={"account_id": ["required"]})
        return json_ok(payments.payout_account_status(account_id))

    raise ValidationFailed("Invalid action", errors={"action": ["must be create or verify"]})


@bp.post("/stripe/webhook")
def stripe_webhook():
    payload = request.get_data(cache=False, as_text=False)
    sig = (request.headers.get("Stripe-Signature") or "").strip()

    try:
        event = payments.verify_notification(payload, sig)
    except AuthenticityFailure as e:
        current_app.logger.warning("stripe webhook rejected: %s", e.message)
        return ("", 400)

    result = payments.handle_event(event)
    if result is not None:
        current_app.logger.info(
            "stripe webhook %s -> donation id=%s (%s)",
            event.get("id"),
            result.donation.id,
            "duplicate" if result.duplicate else "created",
        )
    return ("", 200)
