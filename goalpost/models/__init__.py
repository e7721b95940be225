from __future__ import annotations

from goalpost.extensions import db

from .donation import (
    ANONYMOUS,
    DONATION_STATUSES,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    Donation,
)
from .goal import Goal
from .milestone import Milestone
from .payment_event import (
    EVENT_OUTCOMES,
    OUTCOME_DUPLICATE,
    OUTCOME_IGNORED,
    OUTCOME_RECORDED,
    OUTCOME_REJECTED,
    OUTCOME_UNPAID,
    PaymentEvent,
)

__all__ = [
    "db",
    "Goal",
    "Milestone",
    "Donation",
    "PaymentEvent",
    "ANONYMOUS",
    "DONATION_STATUSES",
    "STATUS_PENDING",
    "STATUS_COMPLETED",
    "STATUS_FAILED",
    "EVENT_OUTCOMES",
    "OUTCOME_RECORDED",
    "OUTCOME_DUPLICATE",
    "OUTCOME_UNPAID",
    "OUTCOME_REJECTED",
    "OUTCOME_IGNORED",
]
