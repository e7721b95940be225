from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from goalpost.extensions import db
from goalpost.helpers import from_cents

from .mixins import CreatedAtMixin


class Milestone(db.Model, CreatedAtMixin):
    """
    Incremental sub-target of a goal. Milestones are always replaced as a whole
    list, so `order` stays contiguous (0..n-1) within a goal.
    """

    __tablename__ = "milestones"
    __table_args__ = (
        sa.UniqueConstraint("goal_id", "sort_order", name="uq_milestones_goal_order"),
        sa.CheckConstraint("target_amount_cents > 0", name="ck_milestones_target_positive"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True)
    goal_id: Mapped[str] = mapped_column(
        sa.ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    target_amount_cents: Mapped[int] = mapped_column(
        sa.Integer,
        nullable=False,
        doc="Incremental amount for this step (not cumulative)",
    )
    # "order" is reserved in SQL, so the column gets a different name.
    order: Mapped[int] = mapped_column("sort_order", sa.Integer, nullable=False)

    goal = relationship("Goal", back_populates="milestones")

    @property
    def target_amount(self) -> Decimal:
        return from_cents(self.target_amount_cents)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "goal_id": self.goal_id,
            "name": self.name,
            "target_amount": self.target_amount,
            "order": int(self.order),
        }

    def __repr__(self) -> str:
        return f"<Milestone #{self.order} {self.name!r} ${self.target_amount:,.2f}>"
