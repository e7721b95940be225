from goalpost.services import goal_store, ledger, progress
from goalpost.services.goal_store import (
    MilestoneSpec,
    authorize,
    create_goal,
    get_goal,
    replace_milestones,
    update_goal,
)
from goalpost.services.ledger import RecordResult, current_amount, list_completed, record_completed_donation
from goalpost.services.progress import GoalProgress, MilestoneProgress, compute_progress
from goalpost.services.snapshot import build_snapshot

__all__ = [
    "goal_store",
    "ledger",
    "progress",
    "MilestoneSpec",
    "authorize",
    "create_goal",
    "get_goal",
    "replace_milestones",
    "update_goal",
    "RecordResult",
    "current_amount",
    "list_completed",
    "record_completed_donation",
    "GoalProgress",
    "MilestoneProgress",
    "compute_progress",
    "build_snapshot",
]
