from __future__ import annotations

# -----------------------------------------------------------------------------
# Donation: append-only ledger row.
# Cents-based; only status == completed counts toward any total or feed.
# -----------------------------------------------------------------------------
from decimal import Decimal
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from goalpost.extensions import db
from goalpost.helpers import from_cents

from .mixins import CreatedAtMixin

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
DONATION_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_FAILED)

ANONYMOUS = "Anonymous"


class Donation(db.Model, CreatedAtMixin):
    __tablename__ = "donations"
    __table_args__ = (
        sa.CheckConstraint("amount_cents > 0", name="ck_donations_amount_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_donations_status",
        ),
        sa.Index("ix_donations_goal_status_created", "goal_id", "status", "created_at"),
    )

    # ---- Identifiers ----
    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True)
    goal_id: Mapped[str] = mapped_column(
        sa.ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider_txn_id: Mapped[str] = mapped_column(
        sa.String(255),
        nullable=False,
        unique=True,
        doc="Payment provider transaction id (pi_...); guards against double-counting",
    )

    # ---- Financials (cents) ----
    amount_cents: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    # ---- Donor ----
    donor_name: Mapped[Optional[str]] = mapped_column(sa.String(160), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(sa.String(1000), nullable=True)

    status: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
        default=STATUS_COMPLETED,
        index=True,
    )

    goal = relationship("Goal", back_populates="donations")

    # ==========================================================
    # Computed Properties
    # ==========================================================
    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def display_name(self) -> str:
        name = (self.donor_name or "").strip()
        return name or ANONYMOUS

    # ==========================================================
    # Serialization
    # ==========================================================
    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "goal_id": self.goal_id,
            "amount": self.amount,
            "donor_name": self.display_name,
            "message": self.message or "",
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Donation {self.provider_txn_id} {self.display_name} ${self.amount:,.2f} {self.status}>"
