# goalpost/services/ledger.py
"""
Donation Ledger: append-only source of truth for raised amounts.

recordCompletedDonation is idempotent on the provider transaction id. The
uniqueness check and the insert are made atomic by the database itself: the
insert runs against a UNIQUE column, and a losing concurrent writer gets an
IntegrityError, after which the already-committed row is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import IntegrityError

from goalpost.exceptions import DuplicateTransaction, ValidationFailed
from goalpost.extensions import db, goal_changed, retry_on_db_lock, tx_commit
from goalpost.helpers import from_cents, to_cents
from goalpost.models import STATUS_COMPLETED, Donation
from goalpost.services.goal_store import get_goal

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordResult:
    donation: Donation
    created: bool

    @property
    def duplicate(self) -> bool:
        return not self.created


def _find_by_txn(provider_txn_id: str) -> Optional[Donation]:
    return db.session.execute(
        sa.select(Donation).where(Donation.provider_txn_id == provider_txn_id)
    ).scalar_one_or_none()


def _insert(donation: Donation) -> Donation:
    def _do() -> Donation:
        db.session.add(donation)
        try:
            tx_commit()
        except IntegrityError as e:
            raise DuplicateTransaction(donation.provider_txn_id) from e
        return donation

    return retry_on_db_lock(_do)


def record_completed_donation(
    goal_id: str,
    amount: Any,
    donor_name: Optional[str] = None,
    message: Optional[str] = None,
    *,
    provider_txn_id: str,
    amount_cents: Optional[int] = None,
) -> RecordResult:
    """
    Append one completed donation, or return the existing row for provider_txn_id.

    `amount` is a decimal currency amount; callers holding minor units pass
    `amount_cents` instead (amount is then ignored).
    """
    txn = str(provider_txn_id or "").strip()
    if not txn:
        raise ValidationFailed("provider transaction id is required", errors={"provider_txn_id": ["required"]})

    existing = _find_by_txn(txn)
    if existing is not None:
        if existing.goal_id != str(goal_id):
            log.warning("txn=%s already recorded for goal %s, not %s", txn, existing.goal_id, goal_id)
        log.info("duplicate confirmation txn=%s ignored (donation id=%s)", txn, existing.id)
        return RecordResult(existing, created=False)

    goal = get_goal(goal_id)

    if amount_cents is None:
        try:
            amount_cents = to_cents(amount)
        except ValueError:
            raise ValidationFailed("Invalid donation amount", errors={"amount": ["invalid"]})
    if int(amount_cents) <= 0:
        raise ValidationFailed("Donation amount must be positive", errors={"amount": ["must be > 0"]})

    donation = Donation(
        goal_id=goal.id,
        amount_cents=int(amount_cents),
        donor_name=((donor_name or "").strip()[:160] or None),
        message=((message or "").strip()[:1000] or None),
        provider_txn_id=txn[:255],
        status=STATUS_COMPLETED,
    )

    try:
        _insert(donation)
    except DuplicateTransaction:
        # lost the race against a concurrent delivery of the same transaction
        winner = _find_by_txn(txn)
        if winner is None:
            raise
        log.info("concurrent duplicate txn=%s collapsed onto donation id=%s", txn, winner.id)
        return RecordResult(winner, created=False)

    log.info("donation recorded goal=%s amount=%s txn=%s", goal.id, donation.amount, txn)
    goal_changed.send(current_app._get_current_object(), goal_id=goal.id, reason="donation")
    return RecordResult(donation, created=True)


def _completed_query(goal_id: str):
    return sa.select(Donation).where(
        Donation.goal_id == goal_id,
        Donation.status == STATUS_COMPLETED,
    )


def list_completed(goal_id: str, limit: Optional[int] = None) -> List[Donation]:
    """Completed donations for a goal, newest first."""
    stmt = _completed_query(goal_id).order_by(Donation.created_at.desc(), Donation.id.desc())
    if limit:
        stmt = stmt.limit(int(limit))
    return list(db.session.execute(stmt).scalars())


def completed_total_cents(goal_id: str) -> int:
    """SUM(amount) over completed donations of the goal, computed in the database."""
    stmt = sa.select(sa.func.coalesce(sa.func.sum(Donation.amount_cents), 0)).where(
        Donation.goal_id == goal_id,
        Donation.status == STATUS_COMPLETED,
    )
    return int(db.session.execute(stmt).scalar_one() or 0)


def current_amount(goal_id: str):
    return from_cents(completed_total_cents(goal_id))
