from __future__ import annotations

import uuid as _uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from goalpost.extensions import db
from goalpost.helpers import from_cents

from .mixins import TimestampMixin


class Goal(db.Model, TimestampMixin):
    """
    A fundraising target owned by one creator.

    The raised amount is never stored here: it is always derived from the
    donation ledger (see goalpost.services.ledger / goalpost.services.progress).
    """

    __tablename__ = "goals"
    __table_args__ = (
        sa.CheckConstraint("target_amount_cents > 0", name="ck_goals_target_positive"),
    )

    # ── Keys ────────────────────────────────────────────────────
    id: Mapped[str] = mapped_column(
        sa.String(36),
        primary_key=True,
        default=lambda: str(_uuid.uuid4()),
        doc="Opaque public identifier (uuid4)",
    )

    # ── Content ─────────────────────────────────────────────────
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True, doc="Markdown")

    # ── Money (cents) ───────────────────────────────────────────
    target_amount_cents: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    # ── Payout / edit credential ────────────────────────────────
    payout_account_id: Mapped[str] = mapped_column(
        sa.String(255),
        nullable=False,
        doc="Connected payout account that receives donations directly (acct_...)",
    )
    edit_secret_hash: Mapped[str] = mapped_column(
        sa.String(255),
        nullable=False,
        doc="Salted one-way hash of the edit secret (never the secret itself)",
    )

    # ── Relationships ───────────────────────────────────────────
    milestones = relationship(
        "Milestone",
        back_populates="goal",
        order_by="Milestone.order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    donations = relationship(
        "Donation",
        back_populates="goal",
        lazy="dynamic",
        passive_deletes=True,
    )

    # ── Computed helpers ────────────────────────────────────────
    @property
    def target_amount(self) -> Decimal:
        return from_cents(self.target_amount_cents)

    @property
    def ordered_milestones(self) -> List["Milestone"]:  # noqa: F821
        return sorted(self.milestones, key=lambda m: m.order)

    # ── Serialization ───────────────────────────────────────────
    def as_dict(self, include_milestones: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "target_amount": self.target_amount,
            "target_amount_cents": int(self.target_amount_cents),
            "payout_account_id": self.payout_account_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_milestones:
            data["milestones"] = [m.as_dict() for m in self.ordered_milestones]
        return data

    def __repr__(self) -> str:
        return f"<Goal {self.id} {self.name!r} target=${self.target_amount:,.2f}>"
