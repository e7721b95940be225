# goalpost/services/live.py
"""
Live View Synchronizer: one Socket.IO room per goal.

Write paths never emit directly: after a successful commit they send the
`goal-changed` blinker signal, and this module turns it into a `goal:changed`
event carrying a freshly read snapshot. Emits for one goal are serialized so
a higher `seq` always carries state at least as fresh as a lower one. Goals
never share a lock.

Viewers (re)subscribe with `subscribe {goal_id}` and are answered with the
full current state, so a dropped connection recovers by re-fetching rather
than replaying missed events.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Dict, Optional

from flask import request
from flask_socketio import emit, join_room, leave_room

from goalpost.exceptions import GoalpostError
from goalpost.extensions import emit_socket, goal_changed, socketio
from goalpost.services.snapshot import build_snapshot

log = logging.getLogger(__name__)

EVENT_STATE = "goal:state"
EVENT_CHANGED = "goal:changed"
EVENT_ERROR = "goal:error"


def room_for(goal_id: str) -> str:
    return f"goal:{goal_id}"


class GoalChannels:
    """Per-goal publish lock + sequence counter."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._seq: Dict[str, int] = defaultdict(int)

    def _lock_for(self, goal_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[goal_id]

    def publish(self, goal_id: str, reason: str) -> Optional[Dict[str, Any]]:
        with self._lock_for(goal_id):
            try:
                state = build_snapshot(goal_id)
            except GoalpostError as e:
                log.warning("live: snapshot for goal=%s failed: %s", goal_id, e)
                return None
            self._seq[goal_id] += 1
            payload = {
                "goal_id": goal_id,
                "reason": reason,
                "seq": self._seq[goal_id],
                "state": state,
            }
            emit_socket(EVENT_CHANGED, payload, room=room_for(goal_id))
            return payload

    def current_seq(self, goal_id: str) -> int:
        with self._lock_for(goal_id):
            return self._seq[goal_id]


channels = GoalChannels()


def _on_goal_changed(sender: Any, goal_id: str = "", reason: str = "changed", **_: Any) -> None:
    if not goal_id:
        return
    channels.publish(goal_id, reason)


# ----------------------------
# Socket.IO handlers
# ----------------------------
def _goal_id_from(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("goal_id") or "").strip()
    return str(data or "").strip()


@socketio.on("subscribe")
def _subscribe(data: Any = None):
    goal_id = _goal_id_from(data)
    try:
        state = build_snapshot(goal_id)
    except GoalpostError as e:
        emit(EVENT_ERROR, {"goal_id": goal_id, **e.to_dict()})
        return
    join_room(room_for(goal_id))
    log.debug("live: sid=%s subscribed goal=%s", getattr(request, "sid", "?"), goal_id)
    emit(EVENT_STATE, {"goal_id": goal_id, "seq": channels.current_seq(goal_id), "state": state})


@socketio.on("unsubscribe")
def _unsubscribe(data: Any = None):
    goal_id = _goal_id_from(data)
    if goal_id:
        leave_room(room_for(goal_id))


def init_live(app: Any) -> None:
    # weak=False: the receiver is a module-level function that must stay connected
    goal_changed.connect(_on_goal_changed, weak=False)
    app.logger.debug("live sync connected to goal-changed signal")


__all__ = ["channels", "room_for", "init_live", "EVENT_STATE", "EVENT_CHANGED"]
