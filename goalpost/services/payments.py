# goalpost/services/payments.py
"""
Stripe relay: payout-account onboarding, checkout creation, and the inbound
payment-confirmation boundary.

Donations go straight to the creator's connected account (destination charge,
no application fee). The only thing that writes to the ledger is a verified
`checkout.session.completed` notification.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError

from goalpost.exceptions import (
    AuthenticityFailure,
    NotFound,
    OnboardingIncomplete,
    UpstreamUnavailable,
    ValidationFailed,
)
from goalpost.extensions import db, tx_commit
from goalpost.models import (
    OUTCOME_DUPLICATE,
    OUTCOME_IGNORED,
    OUTCOME_RECORDED,
    OUTCOME_REJECTED,
    OUTCOME_UNPAID,
    Goal,
    PaymentEvent,
)
from goalpost.services.ledger import RecordResult, record_completed_donation

log = logging.getLogger(__name__)

DONATION_EVENT_TYPE = "checkout.session.completed"


# ----------------------------
# Settings
# ----------------------------
@dataclass(frozen=True)
class Settings:
    env: str
    currency: str
    min_amount_cents: int
    max_amount_cents: int
    public_base_url: str
    stripe_sk: str
    stripe_pk: str
    stripe_whsec: str

    @property
    def stripe_mode(self) -> str:
        k = (self.stripe_sk or self.stripe_pk or "").strip()
        if k.startswith(("sk_live_", "pk_live_")):
            return "live"
        if k.startswith(("sk_test_", "pk_test_")):
            return "test"
        return "unknown"

    @property
    def stripe_keys_present(self) -> bool:
        return bool(self.stripe_sk and self.stripe_pk)

    @classmethod
    def load(cls) -> "Settings":
        cfg = current_app.config
        currency = str(cfg.get("DEFAULT_CURRENCY") or "usd").lower().strip()
        return cls(
            env=str(cfg.get("ENV") or "development"),
            currency=currency if len(currency) == 3 and currency.isalpha() else "usd",
            min_amount_cents=int(cfg.get("MIN_DONATION_CENTS", 100)),
            max_amount_cents=int(cfg.get("MAX_DONATION_CENTS", 50_000 * 100)),
            public_base_url=str(cfg.get("PUBLIC_BASE_URL") or "").rstrip("/"),
            stripe_sk=str(cfg.get("STRIPE_SECRET_KEY") or "").strip(),
            stripe_pk=str(cfg.get("STRIPE_PUBLISHABLE_KEY") or "").strip(),
            stripe_whsec=str(cfg.get("STRIPE_WEBHOOK_SECRET") or "").strip(),
        )

    def goal_url(self, goal_id: str, suffix: str = "") -> str:
        return f"{self.public_base_url}/goal/{goal_id}{suffix}"


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _stripe_call(fn: Callable[[], Any], what: str) -> Any:
    """Run a Stripe API call, mapping provider failures onto the error taxonomy."""
    try:
        return fn()
    except stripe.InvalidRequestError as e:
        log.warning("stripe %s rejected: %s", what, getattr(e, "user_message", None) or e)
        raise ValidationFailed(f"Payment provider rejected the request ({what})", errors={"provider": [str(e)[:200]]})
    except stripe.StripeError as e:
        log.error("stripe %s failed: %s", what, e)
        raise UpstreamUnavailable() from e


# ----------------------------
# Payout accounts (Connect)
# ----------------------------
def create_payout_account() -> Tuple[str, str]:
    """Create an Express connected account and return (account_id, onboarding_url)."""
    s = Settings.load()
    account = _stripe_call(
        lambda: stripe.Account.create(
            type="express",
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
        ),
        "account create",
    )
    account_id = str(_get(account, "id"))
    link = _stripe_call(
        lambda: stripe.AccountLink.create(
            account=account_id,
            refresh_url=f"{s.public_base_url}/create?refresh=true",
            return_url=f"{s.public_base_url}/create?account={account_id}",
            type="account_onboarding",
            collection_options={"fields": "eventually_due"},
        ),
        "account link",
    )
    log.info("payout account created %s", account_id)
    return account_id, str(_get(link, "url"))


def payout_account_status(account_id: str) -> Dict[str, Any]:
    account = _stripe_call(lambda: stripe.Account.retrieve(account_id), "account retrieve")
    return {
        "account_id": str(_get(account, "id") or account_id),
        "charges_enabled": bool(_get(account, "charges_enabled", False)),
        "details_submitted": bool(_get(account, "details_submitted", False)),
    }


def ensure_payout_ready(goal: Goal) -> None:
    """Raise OnboardingIncomplete (with a resumable link) unless the account can take charges."""
    status = payout_account_status(goal.payout_account_id)
    if status["charges_enabled"] and status["details_submitted"]:
        return

    s = Settings.load()
    link = _stripe_call(
        lambda: stripe.AccountLink.create(
            account=goal.payout_account_id,
            refresh_url=s.goal_url(goal.id),
            return_url=s.goal_url(goal.id),
            type="account_onboarding",
            collection_options={"fields": "eventually_due"},
        ),
        "account link",
    )
    log.info("checkout blocked: payout account %s not activated (goal=%s)", goal.payout_account_id, goal.id)
    raise OnboardingIncomplete(goal.payout_account_id, str(_get(link, "url")))


# ----------------------------
# Checkout relay
# ----------------------------
def create_checkout(
    goal: Goal,
    amount_cents: int,
    donor_name: Optional[str] = None,
    message: Optional[str] = None,
) -> str:
    """Return a hosted checkout URL. Nothing is written locally."""
    s = Settings.load()
    if amount_cents < s.min_amount_cents or amount_cents > s.max_amount_cents:
        raise ValidationFailed(
            "Donation amount out of range",
            errors={"amount": [f"must be between {s.min_amount_cents / 100:.2f} and {s.max_amount_cents / 100:.2f}"]},
        )

    ensure_payout_ready(goal)

    metadata = {
        "goal_id": goal.id,
        "donor_name": (donor_name or "").strip()[:160],
        "message": (message or "").strip()[:480],
    }
    session = _stripe_call(
        lambda: stripe.checkout.Session.create(
            mode="payment",
            line_items=[
                {
                    "price_data": {
                        "currency": s.currency,
                        "product_data": {"name": "Donation"},
                        "unit_amount": int(amount_cents),
                    },
                    "quantity": 1,
                }
            ],
            success_url=s.goal_url(goal.id, "?success=true"),
            cancel_url=s.goal_url(goal.id),
            metadata=metadata,
            payment_intent_data={
                "application_fee_amount": 0,
                "transfer_data": {"destination": goal.payout_account_id},
                "metadata": metadata,
            },
        ),
        "checkout session",
    )
    url = _get(session, "url")
    if not url:
        raise UpstreamUnavailable("Payment provider returned no checkout URL")
    log.info("checkout session %s goal=%s amount_cents=%d", _get(session, "id"), goal.id, amount_cents)
    return str(url)


# ----------------------------
# Inbound notifications
# ----------------------------
def verify_notification(payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
    """
    Verify the Stripe-Signature header and return the event as a plain dict.
    Unsigned, mis-signed or malformed payloads raise AuthenticityFailure.
    """
    s = Settings.load()
    if not s.stripe_whsec:
        raise AuthenticityFailure("webhook secret not configured")
    if not sig_header:
        raise AuthenticityFailure("missing Stripe-Signature header")
    try:
        stripe.Webhook.construct_event(payload, sig_header, s.stripe_whsec)
        event = json.loads(payload.decode("utf-8") if isinstance(payload, bytes) else payload)
    except stripe.SignatureVerificationError as e:
        raise AuthenticityFailure("signature verification failed") from e
    except ValueError as e:
        raise AuthenticityFailure("malformed payload") from e
    if not isinstance(event, dict):
        raise AuthenticityFailure("malformed payload")
    return event


def on_payment_confirmed(
    provider_txn_id: str,
    goal_id: str,
    amount_minor_units: int,
    donor_name: Optional[str] = None,
    message: Optional[str] = None,
) -> RecordResult:
    """Inbound boundary: one confirmed payment -> at most one ledger row."""
    return record_completed_donation(
        goal_id,
        None,
        donor_name,
        message,
        provider_txn_id=provider_txn_id,
        amount_cents=int(amount_minor_units),
    )


def _event_object(event: Dict[str, Any]) -> Dict[str, Any]:
    """data.object of a provider event, or {} when the payload has another shape."""
    data = event.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    return obj if isinstance(obj, dict) else {}


def _known_goal_id(goal_id: Optional[str]) -> Optional[str]:
    if goal_id and db.session.get(Goal, goal_id) is not None:
        return goal_id
    return None


def _record_event(
    event: Dict[str, Any],
    outcome: str,
    goal_id: Optional[str] = None,
    donation_id: Optional[int] = None,
    detail: Optional[str] = None,
) -> None:
    event_id = str(event.get("id") or "")[:120]
    if not event_id:
        return
    etype = str(event.get("type") or "")[:120]
    session_id = str(_event_object(event).get("id") or "")[:120] if etype.startswith("checkout.session.") else ""
    db.session.add(
        PaymentEvent(
            event_id=event_id,
            type=etype,
            livemode=bool(event.get("livemode") or False),
            checkout_session_id=session_id or None,
            goal_id=goal_id,
            donation_id=donation_id,
            outcome=outcome,
            detail=(detail or "")[:255] or None,
        )
    )
    try:
        tx_commit()
    except IntegrityError:
        log.info("payment event %s already stored (redelivery)", event_id)


def handle_event(event: Dict[str, Any]) -> Optional[RecordResult]:
    """
    Dispatch a verified event. Only checkout.session.completed creates a donation;
    every other type is acknowledged and ignored.
    """
    etype = str(event.get("type") or "")
    obj = _event_object(event)
    metadata = obj.get("metadata") if isinstance(obj.get("metadata"), dict) else {}
    goal_id = str(metadata.get("goal_id") or "").strip() or None

    if etype != DONATION_EVENT_TYPE or not obj:
        log.debug("payment event %s ignored", etype)
        _record_event(event, OUTCOME_IGNORED, goal_id=_known_goal_id(goal_id))
        return None

    payment_status = obj.get("payment_status")
    txn = str(obj.get("payment_intent") or obj.get("id") or "").strip()
    amount = obj.get("amount_total")

    if payment_status not in (None, "paid"):
        log.info("checkout %s completed with payment_status=%s; not a donation yet", obj.get("id"), payment_status)
        _record_event(event, OUTCOME_UNPAID, goal_id=_known_goal_id(goal_id), detail=f"payment_status={payment_status}")
        return None

    if not goal_id or not txn or isinstance(amount, bool) or not isinstance(amount, int):
        log.error("checkout %s missing goal_id / payment id / amount_total; ignored", obj.get("id"))
        _record_event(event, OUTCOME_REJECTED, goal_id=_known_goal_id(goal_id), detail="incomplete checkout session")
        return None

    try:
        result = on_payment_confirmed(
            txn,
            goal_id,
            amount,
            metadata.get("donor_name") or None,
            metadata.get("message") or None,
        )
    except (NotFound, ValidationFailed) as e:
        # retrying cannot fix these; acknowledge so the provider stops redelivering
        log.error("payment %s for goal=%s not recorded: %s", txn, goal_id, e)
        _record_event(event, OUTCOME_REJECTED, goal_id=_known_goal_id(goal_id), detail=e.message)
        return None

    _record_event(
        event,
        OUTCOME_DUPLICATE if result.duplicate else OUTCOME_RECORDED,
        goal_id=result.donation.goal_id,
        donation_id=result.donation.id,
    )
    return result
