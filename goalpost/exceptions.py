"""
Error taxonomy for the goal / donation core.

Every error carries an HTTP status and a short machine code so the app factory
can render it in the standard JSON error shape. None of these indicate corrupt
state: each failure path either wrote nothing or wrote one idempotent record.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional


class GoalpostError(Exception):
    """Base exception for the goalpost application"""

    status_code = 400
    code = "error"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra: Dict[str, Any] = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.extra}


class NotFound(GoalpostError):
    """Raised when a goal id is unknown"""

    status_code = 404
    code = "not_found"

    def __init__(self, goal_id: str):
        self.goal_id = goal_id
        super().__init__(f"Goal {goal_id} not found", goal_id=goal_id)


class InvalidSecret(GoalpostError):
    """Raised when the presented edit secret does not match the stored hash"""

    status_code = 403
    code = "invalid_secret"

    def __init__(self, goal_id: str):
        self.goal_id = goal_id
        super().__init__("The edit link is not valid for this goal")


class ValidationFailed(GoalpostError):
    """Raised when input data or the milestone/target relationship is invalid"""

    status_code = 422
    code = "validation_failed"

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None, **extra: Any):
        self.errors = errors or {}
        super().__init__(message, errors=self.errors, **extra)


class MilestoneMismatch(ValidationFailed):
    """Milestone amounts do not add up to the goal target."""

    def __init__(self, milestone_total: Decimal, target_amount: Decimal):
        self.milestone_total = milestone_total
        self.target_amount = target_amount
        self.discrepancy = target_amount - milestone_total
        super().__init__(
            f"Milestone amounts ({milestone_total:.2f}) must equal the target ({target_amount:.2f})",
            errors={"milestones": ["sum does not match target_amount"]},
            milestone_total=str(milestone_total),
            target_amount=str(target_amount),
            discrepancy=str(self.discrepancy),
        )


class DuplicateTransaction(GoalpostError):
    """
    A donation with this provider transaction id already exists.
    Internal signal only: the ledger answers it by returning the existing row.
    """

    status_code = 200
    code = "duplicate_transaction"

    def __init__(self, provider_txn_id: str):
        self.provider_txn_id = provider_txn_id
        super().__init__(f"Transaction {provider_txn_id} already recorded")


class AuthenticityFailure(GoalpostError):
    """Raised when an inbound payment notification is unsigned or mis-signed"""

    status_code = 400
    code = "authenticity_failure"

    def __init__(self, reason: str = "signature verification failed"):
        super().__init__(reason)


class UpstreamUnavailable(GoalpostError):
    """The payment provider could not be reached; nothing was committed, retry is safe."""

    status_code = 503
    code = "upstream_unavailable"

    def __init__(self, message: str = "Payment provider is temporarily unavailable. Please try again."):
        super().__init__(message, retryable=True)


class OnboardingIncomplete(GoalpostError):
    """The payout destination cannot receive funds yet."""

    status_code = 409
    code = "onboarding_incomplete"

    def __init__(self, account_id: str, onboarding_url: str):
        self.account_id = account_id
        self.onboarding_url = onboarding_url
        super().__init__("Account onboarding incomplete", onboarding_url=onboarding_url)
