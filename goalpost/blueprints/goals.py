#!/usr/bin/env python3
"""
Goalpost Goals Blueprint

Mount: /api/goals

Public (no auth):
  POST  /api/goals                                   create goal (+ optional milestones)
  GET   /api/goals/<goal_id>                         {goal, milestones, donations, progress}
  GET   /api/goals/<goal_id>/donations?limit=N       completed donations, newest first

Edit surface (secret is a private URL path segment):
  GET   /api/goals/<goal_id>/edit/<secret>           verify + load editable goal
  PATCH /api/goals/<goal_id>/edit/<secret>           update fields (+ optional milestones, atomically)
  PUT   /api/goals/<goal_id>/edit/<secret>/milestones  replace the whole milestone list

Errors are raised as GoalpostError and rendered by the app-level handler.
"""

from __future__ import annotations

from typing import Any, Dict, cast

from flask import Blueprint, current_app, request

from goalpost.blueprints.responses import json_ok, request_payload
from goalpost.extensions import csrf
from goalpost.forms.goal_forms import GoalForm, GoalUpdateForm, parse_milestones, validate_json
from goalpost.helpers import json_sanitize
from goalpost.services import goal_store, ledger
from goalpost.services.snapshot import build_snapshot

bp = Blueprint("goals", __name__)
csrf.exempt(bp)


def _edit_url(goal_id: str, secret: str) -> str:
    base = str(current_app.config.get("PUBLIC_BASE_URL") or request.host_url or "").rstrip("/")
    return f"{base}/goal/{goal_id}/edit/{secret}"


def _editable(goal) -> Dict[str, Any]:
    return cast(Dict[str, Any], json_sanitize(goal.as_dict(include_milestones=True)))


@bp.post("")
def create_goal():
    data = request_payload()
    form = validate_json(GoalForm, data)
    milestones = parse_milestones(data["milestones"]) if data.get("milestones") is not None else None

    goal, secret = goal_store.create_goal(
        form.name.data,
        form.description.data,
        form.target_amount.data,
        form.payout_account_id.data,
        milestones=milestones,
    )
    return json_ok(
        {
            "goal": _editable(goal),
            "edit_secret": secret,
            "edit_url": _edit_url(goal.id, secret),
            "public_url": f"{str(current_app.config.get('PUBLIC_BASE_URL') or '').rstrip('/')}/goal/{goal.id}",
        },
        status=201,
    )


@bp.get("/<goal_id>")
def get_goal(goal_id: str):
    return json_ok(build_snapshot(goal_id))


@bp.get("/<goal_id>/donations")
def list_donations(goal_id: str):
    goal = goal_store.get_goal(goal_id)
    max_limit = int(current_app.config.get("DONATION_FEED_LIMIT") or 50)
    limit = request.args.get("limit", type=int)
    limit = max_limit if limit is None else min(max(limit, 1), max_limit)
    donations = ledger.list_completed(goal.id, limit=limit)
    return json_ok({"goal_id": goal.id, "donations": json_sanitize([d.as_dict() for d in donations])})


@bp.get("/<goal_id>/edit/<secret>")
def load_for_edit(goal_id: str, secret: str):
    goal = goal_store.authorize(goal_id, secret)
    return json_ok({"goal": _editable(goal)})


@bp.patch("/<goal_id>/edit/<secret>")
def update_goal(goal_id: str, secret: str):
    data = request_payload()
    form = validate_json(GoalUpdateForm, data)

    fields: Dict[str, Any] = {}
    for key in ("name", "description", "target_amount"):
        if key in data:
            fields[key] = getattr(form, key).data
    milestones = parse_milestones(data["milestones"]) if data.get("milestones") is not None else None

    goal = goal_store.update_goal(goal_id, secret, fields, milestones=milestones)
    return json_ok({"goal": _editable(goal)})


@bp.put("/<goal_id>/edit/<secret>/milestones")
def replace_milestones(goal_id: str, secret: str):
    data = request_payload()
    raw = data.get("milestones") if isinstance(data, dict) else None
    goal_store.replace_milestones(goal_id, secret, parse_milestones(raw))
    return json_ok({"goal": _editable(goal_store.get_goal(goal_id))})
