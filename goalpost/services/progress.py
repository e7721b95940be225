# goalpost/services/progress.py
"""
Progress Calculator: pure functions, no I/O, no locking.

Milestones behave like a ladder: each one's cumulative threshold is the sum
of its own amount and every milestone before it in `order`, and it is reached
iff the raised amount is at least that threshold.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from goalpost.helpers import money_str, to_decimal
from goalpost.models.donation import STATUS_COMPLETED

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_PCT = Decimal("0.01")


@dataclass(frozen=True)
class MilestoneProgress:
    id: Optional[int]
    name: str
    order: int
    target_amount: Decimal
    cumulative_threshold: Decimal
    position_percent: Decimal
    reached: bool
    remaining: Decimal


@dataclass(frozen=True)
class GoalProgress:
    current_amount: Decimal
    target_amount: Decimal
    progress_percent: Decimal
    remaining: Decimal
    is_complete: bool
    donation_count: int
    milestones: List[MilestoneProgress] = field(default_factory=list)

    @property
    def next_milestone(self) -> Optional[MilestoneProgress]:
        for m in self.milestones:
            if not m.reached:
                return m
        return None

    def as_dict(self) -> Dict[str, Any]:
        nxt = self.next_milestone
        return {
            "current_amount": money_str(self.current_amount),
            "target_amount": money_str(self.target_amount),
            "progress_percent": float(self.progress_percent.quantize(_PCT)),
            "remaining": money_str(self.remaining),
            "is_complete": self.is_complete,
            "donation_count": self.donation_count,
            "milestones": [
                {
                    **asdict(m),
                    "target_amount": money_str(m.target_amount),
                    "cumulative_threshold": money_str(m.cumulative_threshold),
                    "position_percent": float(m.position_percent.quantize(_PCT)),
                    "remaining": money_str(m.remaining),
                }
                for m in self.milestones
            ],
            "next_milestone": (
                {"id": nxt.id, "name": nxt.name, "gap": money_str(nxt.remaining)} if nxt else None
            ),
        }


def _clamp_pct(value: Decimal) -> Decimal:
    return max(_ZERO, min(_HUNDRED, value))


def sum_completed(donations: Iterable[Any]) -> Decimal:
    """Sum `amount` over donations whose status is completed; everything else is inert."""
    total = _ZERO
    for d in donations:
        if getattr(d, "status", None) == STATUS_COMPLETED:
            total += to_decimal(d.amount)
    return total


def percent_of(amount: Decimal, target: Decimal) -> Decimal:
    if target <= 0:
        raise ValueError("target amount must be positive")
    return _clamp_pct(_HUNDRED * amount / target)


def milestone_ladder(milestones: Iterable[Any], current_amount: Decimal, target_amount: Decimal) -> List[MilestoneProgress]:
    """Walk milestones in ascending order, keeping a running cumulative threshold."""
    out: List[MilestoneProgress] = []
    running = _ZERO
    for m in sorted(milestones, key=lambda m: m.order):
        step = to_decimal(m.target_amount)
        running += step
        out.append(
            MilestoneProgress(
                id=getattr(m, "id", None),
                name=m.name,
                order=int(m.order),
                target_amount=step,
                cumulative_threshold=running,
                position_percent=percent_of(running, target_amount),
                reached=current_amount >= running,
                remaining=max(_ZERO, running - current_amount),
            )
        )
    return out


def compute_progress(target_amount: Any, milestones: Iterable[Any], donations: Iterable[Any]) -> GoalProgress:
    """
    Derive raised amount, percent complete and per-milestone state.

    `milestones` need name / target_amount / order; `donations` need status /
    amount. A non-positive target is a configuration error and raises ValueError.
    """
    target = to_decimal(target_amount)
    if target <= 0:
        raise ValueError("target amount must be positive")

    donations = list(donations)
    current = sum_completed(donations)
    return GoalProgress(
        current_amount=current,
        target_amount=target,
        progress_percent=percent_of(current, target),
        remaining=max(_ZERO, target - current),
        is_complete=current >= target,
        donation_count=sum(1 for d in donations if getattr(d, "status", None) == STATUS_COMPLETED),
        milestones=milestone_ladder(milestones, current, target),
    )


def goal_progress(goal: Any, donations: Iterable[Any]) -> GoalProgress:
    return compute_progress(goal.target_amount, goal.milestones, donations)
