# goalpost/services/goal_store.py
"""
Goal Store: durable goals and their ordered milestones.

Mutations are authorized by the edit secret issued once at creation. Only a
salted hash of that secret is kept; checks go through werkzeug's
check_password_hash, which compares digests in constant time.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import sqlalchemy as sa
from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from goalpost.exceptions import InvalidSecret, MilestoneMismatch, NotFound, ValidationFailed
from goalpost.extensions import db, goal_changed, retry_on_db_lock, tx_commit
from goalpost.helpers import from_cents, to_cents
from goalpost.models import Goal, Milestone

log = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("name", "description", "target_amount")


@dataclass(frozen=True)
class MilestoneSpec:
    """One entry of an ordered milestone list, as supplied by the creator."""

    name: str
    target_amount_cents: int

    @property
    def target_amount(self) -> Decimal:
        return from_cents(self.target_amount_cents)

    @classmethod
    def coerce(cls, raw: Any) -> "MilestoneSpec":
        if isinstance(raw, MilestoneSpec):
            return raw
        if isinstance(raw, Mapping):
            name, amount = raw.get("name"), raw.get("target_amount")
        else:
            name, amount = raw
        try:
            cents = to_cents(amount)
        except ValueError:
            raise ValidationFailed("Invalid milestone amount", errors={"milestones": [f"invalid amount {amount!r}"]})
        return cls(name=str(name or "").strip(), target_amount_cents=cents)


# ----------------------------
# Secrets
# ----------------------------
def _new_edit_secret() -> str:
    nbytes = int(current_app.config.get("EDIT_SECRET_BYTES", 24) or 24)
    return secrets.token_urlsafe(max(16, nbytes))


def _hash_secret(secret: str) -> str:
    return generate_password_hash(secret)


def _secret_matches(goal: Goal, presented: Optional[str]) -> bool:
    if not presented:
        # still spend the hash cost so empty input is not a fast path
        check_password_hash(goal.edit_secret_hash, "\x00")
        return False
    return check_password_hash(goal.edit_secret_hash, presented)


# ----------------------------
# Validation
# ----------------------------
def _check_name(name: Any) -> str:
    s = str(name or "").strip()
    if not s:
        raise ValidationFailed("Goal name is required", errors={"name": ["required"]})
    return s


def _max_target_cents() -> int:
    return int(current_app.config.get("MAX_TARGET_CENTS") or 1_000_000_000 * 100)


def _check_target_cents(amount: Any) -> int:
    try:
        cents = to_cents(amount)
    except ValueError:
        raise ValidationFailed("Target amount must be a number", errors={"target_amount": ["invalid"]})
    if cents <= 0:
        raise ValidationFailed("Target amount must be greater than 0", errors={"target_amount": ["must be > 0"]})
    if cents > _max_target_cents():
        raise ValidationFailed(
            "Target amount is too large",
            errors={"target_amount": [f"must be at most {from_cents(_max_target_cents())}"]},
        )
    return cents


def validate_milestones(milestones: Iterable[Any], target_amount_cents: int) -> List[MilestoneSpec]:
    """
    Normalize and check a full milestone list against a target.

    Rules: at least one milestone, non-empty names, positive amounts, and the
    sum equal to the target within MILESTONE_TOLERANCE_CENTS. No single
    amount may exceed MAX_TARGET_CENTS.
    """
    specs = [MilestoneSpec.coerce(m) for m in milestones]
    if not specs:
        raise ValidationFailed("Add at least one milestone", errors={"milestones": ["at least one required"]})

    errors: Dict[str, List[str]] = {}
    for idx, spec in enumerate(specs):
        if not spec.name:
            errors.setdefault(f"milestones.{idx}.name", []).append("required")
        if spec.target_amount_cents <= 0:
            errors.setdefault(f"milestones.{idx}.target_amount", []).append("must be > 0")
        elif spec.target_amount_cents > _max_target_cents():
            errors.setdefault(f"milestones.{idx}.target_amount", []).append("too large")
    if errors:
        raise ValidationFailed("Invalid milestones", errors=errors)

    total = sum(s.target_amount_cents for s in specs)
    tolerance = int(current_app.config.get("MILESTONE_TOLERANCE_CENTS", 1))
    if abs(total - int(target_amount_cents)) > tolerance:
        raise MilestoneMismatch(from_cents(total), from_cents(target_amount_cents))
    return specs


def _install_milestones(goal: Goal, specs: Sequence[MilestoneSpec]) -> None:
    """Delete every milestone of the goal and insert the new list. No commit."""
    # Bulk delete first so the (goal_id, order) unique constraint never sees old + new rows.
    db.session.execute(sa.delete(Milestone).where(Milestone.goal_id == goal.id))
    db.session.expire(goal, ["milestones"])
    for order, spec in enumerate(specs):
        db.session.add(
            Milestone(
                goal_id=goal.id,
                name=spec.name[:200],
                target_amount_cents=spec.target_amount_cents,
                order=order,
            )
        )
    db.session.flush()


def _notify(goal_id: str, reason: str) -> None:
    goal_changed.send(current_app._get_current_object(), goal_id=goal_id, reason=reason)


# ----------------------------
# Public API
# ----------------------------
def create_goal(
    name: str,
    description: Optional[str],
    target_amount: Any,
    payout_account_id: str,
    milestones: Optional[Iterable[Any]] = None,
) -> Tuple[Goal, str]:
    """
    Create a goal and return (goal, edit_secret).
    The plaintext secret is returned here exactly once and never stored.
    """
    clean_name = _check_name(name)
    target_cents = _check_target_cents(target_amount)
    payout = str(payout_account_id or "").strip()
    if not payout:
        raise ValidationFailed("Payout account is required", errors={"payout_account_id": ["required"]})

    specs = validate_milestones(milestones, target_cents) if milestones is not None else []

    secret = _new_edit_secret()
    goal = Goal(
        name=clean_name[:200],
        description=(description or None),
        target_amount_cents=target_cents,
        payout_account_id=payout[:255],
        edit_secret_hash=_hash_secret(secret),
    )

    def _do() -> Goal:
        db.session.add(goal)
        db.session.flush()
        if specs:
            _install_milestones(goal, specs)
        tx_commit()
        return goal

    retry_on_db_lock(_do)
    log.info("goal created id=%s target=%s milestones=%d", goal.id, goal.target_amount, len(specs))
    return goal, secret


def get_goal(goal_id: str) -> Goal:
    goal = db.session.get(Goal, str(goal_id or ""))
    if goal is None:
        raise NotFound(goal_id)
    return goal


def authorize(goal_id: str, edit_secret: Optional[str]) -> Goal:
    """Return the goal if edit_secret is the one issued for it, else raise InvalidSecret."""
    goal = get_goal(goal_id)
    if not _secret_matches(goal, edit_secret):
        log.warning("invalid edit secret presented for goal=%s", goal_id)
        raise InvalidSecret(goal_id)
    return goal


def replace_milestones(goal_id: str, edit_secret: Optional[str], milestones: Iterable[Any]) -> List[Milestone]:
    """
    Atomically supersede every milestone of the goal with the given ordered list.
    On any failure the previously stored milestones are left untouched.
    """
    goal = authorize(goal_id, edit_secret)
    specs = validate_milestones(milestones, goal.target_amount_cents)

    def _do() -> None:
        _install_milestones(goal, specs)
        tx_commit()

    retry_on_db_lock(_do)
    db.session.refresh(goal)
    log.info("milestones replaced goal=%s count=%d", goal.id, len(specs))
    _notify(goal.id, "milestones")
    return goal.ordered_milestones


def update_goal(
    goal_id: str,
    edit_secret: Optional[str],
    fields: Mapping[str, Any],
    milestones: Optional[Iterable[Any]] = None,
) -> Goal:
    """
    Update name / description / target_amount.

    When `milestones` is supplied it is validated against the (possibly new)
    target and installed in the same transaction as the field changes.
    Without it, a target change may leave milestones temporarily mismatched.
    """
    goal = authorize(goal_id, edit_secret)

    unknown = sorted(set(fields) - set(_UPDATABLE_FIELDS))
    if unknown:
        raise ValidationFailed("Unknown fields", errors={k: ["not updatable"] for k in unknown})

    changes: Dict[str, Any] = {}
    if "name" in fields:
        changes["name"] = _check_name(fields["name"])[:200]
    if "description" in fields:
        changes["description"] = fields["description"] or None
    if "target_amount" in fields:
        changes["target_amount_cents"] = _check_target_cents(fields["target_amount"])

    new_target = changes.get("target_amount_cents", goal.target_amount_cents)
    specs = validate_milestones(milestones, new_target) if milestones is not None else None

    def _do() -> None:
        for attr, value in changes.items():
            setattr(goal, attr, value)
        if specs is not None:
            _install_milestones(goal, specs)
        tx_commit()

    retry_on_db_lock(_do)
    db.session.refresh(goal)
    log.info("goal updated id=%s fields=%s milestones=%s", goal.id, sorted(changes), specs is not None)
    _notify(goal.id, "goal")
    return goal
