# goalpost/services/snapshot.py
"""Full public state of one goal: what the public page and live viewers render."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app

from goalpost.helpers import json_sanitize
from goalpost.services.goal_store import get_goal
from goalpost.services.ledger import list_completed
from goalpost.services.progress import goal_progress


def build_snapshot(goal_id: str, feed_limit: Optional[int] = None) -> Dict[str, Any]:
    """
    {goal, milestones, donations, progress} read fresh from the store and ledger.
    Progress is computed over every completed donation; `feed_limit` only trims
    the donation feed.
    """
    goal = get_goal(goal_id)
    donations = list_completed(goal.id)
    progress = goal_progress(goal, donations)

    limit = feed_limit if feed_limit is not None else current_app.config.get("DONATION_FEED_LIMIT")
    feed = donations[: int(limit)] if limit else donations

    return json_sanitize(
        {
            "goal": goal.as_dict(),
            "milestones": [m.as_dict() for m in goal.ordered_milestones],
            "donations": [d.as_dict() for d in feed],
            "progress": progress.as_dict(),
        }
    )
