from __future__ import annotations

# -----------------------------------------------------------------------------
# PaymentEvent: one row per authenticated provider notification.
# Unique on event_id, so a redelivered event never produces a second row.
# `outcome` records what the notification did to the ledger.
# -----------------------------------------------------------------------------
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from goalpost.extensions import db

from .mixins import CreatedAtMixin

OUTCOME_RECORDED = "recorded"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_UNPAID = "unpaid"
OUTCOME_REJECTED = "rejected"
OUTCOME_IGNORED = "ignored"
EVENT_OUTCOMES = (OUTCOME_RECORDED, OUTCOME_DUPLICATE, OUTCOME_UNPAID, OUTCOME_REJECTED, OUTCOME_IGNORED)


class PaymentEvent(db.Model, CreatedAtMixin):
    __tablename__ = "payment_events"
    __table_args__ = (
        sa.CheckConstraint(
            "outcome IN ('recorded', 'duplicate', 'unpaid', 'rejected', 'ignored')",
            name="ck_payment_events_outcome",
        ),
        sa.Index("ix_payment_events_goal_created", "goal_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(sa.String(120), nullable=False, unique=True)
    type: Mapped[str] = mapped_column(sa.String(120), nullable=False, index=True)
    livemode: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)

    checkout_session_id: Mapped[Optional[str]] = mapped_column(sa.String(120), nullable=True, index=True)

    # Only set for goals that exist; a notification naming an unknown goal keeps the claim in `detail`.
    goal_id: Mapped[Optional[str]] = mapped_column(
        sa.ForeignKey("goals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    donation_id: Mapped[Optional[int]] = mapped_column(
        sa.ForeignKey("donations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    outcome: Mapped[str] = mapped_column(sa.String(20), nullable=False, default=OUTCOME_IGNORED)
    detail: Mapped[Optional[str]] = mapped_column(sa.String(255), nullable=True)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "type": self.type,
            "livemode": self.livemode,
            "checkout_session_id": self.checkout_session_id,
            "goal_id": self.goal_id,
            "donation_id": self.donation_id,
            "outcome": self.outcome,
            "detail": self.detail,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<PaymentEvent {self.event_id} {self.type} {self.outcome}>"
