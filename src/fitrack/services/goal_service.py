# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from fitrack.auth.session import SessionRecord
from fitrack.core.utils import blank_to_none, clean, days_remaining, iso, progress_percent, to_date, to_float
from fitrack.errors import NotFoundError, ValidationError
from fitrack.infra.db import Database, execute, fetch_all, fetch_one, goals, insert_row
from fitrack.permissions import ensure_owned

STATUSES = ("active", "completed", "abandoned")

GOAL_FIELDS = (
    "title",
    "description",
    "goal_type",
    "target_value",
    "current_value",
    "unit",
    "start_date",
    "target_date",
    "status",
)

_OWNED_GOAL_SQL = "SELECT * FROM goals WHERE id = :id AND user_id = :uid"


def goal_form_data(form: Mapping[str, Any]) -> Dict[str, str]:
    return {k: clean(form.get(k)) for k in GOAL_FIELDS}


def goal_errors(form: Mapping[str, Any], *, creating: bool) -> List[str]:
    errors: List[str] = []
    if not clean(form.get("title")):
        errors.append("Goal title is required")
    if creating:
        if not clean(form.get("goal_type")):
            errors.append("Goal type is required")
        if to_date(form.get("start_date")) is None:
            errors.append("Start date is required")
    status = clean(form.get("status"))
    if status and status not in STATUSES:
        errors.append("Unknown goal status")
    return errors


def with_progress(goal: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(goal)
    out["progress"] = progress_percent(goal.get("current_value"), goal.get("target_value"))
    return out


def list_goals(db: Database, user: SessionRecord, *, status: str = "") -> List[Dict[str, Any]]:
    sql = "SELECT * FROM goals WHERE user_id = :uid"
    params: Dict[str, Any] = {"uid": user.user_id}
    status = clean(status)
    if status:
        sql += " AND status = :status"
        params["status"] = status
    sql += (
        " ORDER BY CASE status WHEN 'active' THEN 0 WHEN 'completed' THEN 1"
        " WHEN 'abandoned' THEN 2 ELSE 3 END, target_date ASC, id ASC"
    )
    with db.begin() as conn:
        rows = fetch_all(conn, sql, params)
    return [with_progress(r) for r in rows]


def create_goal(db: Database, user: SessionRecord, form: Mapping[str, Any]) -> int:
    errors = goal_errors(form, creating=True)
    if errors:
        raise ValidationError(errors)
    with db.begin() as conn:
        return insert_row(
            conn,
            goals,
            {
                "user_id": user.user_id,
                "title": clean(form.get("title")),
                "description": blank_to_none(form.get("description")),
                "goal_type": clean(form.get("goal_type")),
                "target_value": to_float(form.get("target_value")),
                "current_value": to_float(form.get("current_value"), 0.0),
                "unit": blank_to_none(form.get("unit")),
                "start_date": to_date(form.get("start_date")),
                "target_date": to_date(form.get("target_date")),
                "status": "active",
            },
        )


def get_goal(db: Database, user: SessionRecord, goal_id: int, *, today: Optional[date] = None) -> Dict[str, Any]:
    with db.begin() as conn:
        goal = ensure_owned(user, fetch_one(conn, _OWNED_GOAL_SQL, {"id": goal_id, "uid": user.user_id}), "Goal")
    out = with_progress(goal)
    out["days_remaining"] = days_remaining(goal.get("target_date"), today=today)
    return out


def update_goal(db: Database, user: SessionRecord, goal_id: int, form: Mapping[str, Any]) -> None:
    with db.begin() as conn:
        existing = ensure_owned(user, fetch_one(conn, _OWNED_GOAL_SQL, {"id": goal_id, "uid": user.user_id}), "Goal")
        errors = goal_errors(form, creating=False)
        if errors:
            raise ValidationError(errors)
        execute(
            conn,
            """
            UPDATE goals
            SET title = :title, description = :description, goal_type = :goal_type,
                target_value = :target_value, current_value = :current_value, unit = :unit,
                start_date = :start_date, target_date = :target_date, status = :status
            WHERE id = :id AND user_id = :uid
            """,
            {
                "title": clean(form.get("title")),
                "description": blank_to_none(form.get("description")),
                "goal_type": clean(form.get("goal_type")) or existing.get("goal_type"),
                "target_value": to_float(form.get("target_value")),
                "current_value": to_float(form.get("current_value"), 0.0),
                "unit": blank_to_none(form.get("unit")),
                "start_date": iso(form.get("start_date")) or iso(existing.get("start_date")),
                "target_date": iso(form.get("target_date")),
                "status": clean(form.get("status")) or "active",
                "id": goal_id,
                "uid": user.user_id,
            },
        )


def update_progress(db: Database, user: SessionRecord, goal_id: int, current_value: Any) -> str:
    """Set the current value; reaching the target completes the goal. Returns the new status."""
    value = to_float(current_value)
    if value is None:
        raise ValidationError(["Please enter a number"])
    with db.begin() as conn:
        existing = ensure_owned(user, fetch_one(conn, _OWNED_GOAL_SQL, {"id": goal_id, "uid": user.user_id}), "Goal")
        status = existing.get("status") or "active"
        target = to_float(existing.get("target_value"))
        if target and value >= target:
            status = "completed"
        execute(
            conn,
            "UPDATE goals SET current_value = :cv, status = :status WHERE id = :id AND user_id = :uid",
            {"cv": value, "status": status, "id": goal_id, "uid": user.user_id},
        )
    return status


def delete_goal(db: Database, user: SessionRecord, goal_id: int) -> None:
    with db.begin() as conn:
        ensure_owned(user, fetch_one(conn, _OWNED_GOAL_SQL, {"id": goal_id, "uid": user.user_id}), "Goal")
        if execute(conn, "DELETE FROM goals WHERE id = :id AND user_id = :uid", {"id": goal_id, "uid": user.user_id}) == 0:
            raise NotFoundError("Goal not found")


def top_active_goals(db: Database, user: SessionRecord, *, limit: int = 5) -> List[Dict[str, Any]]:
    """Active goals with a target, best progress first (dashboard widget)."""
    with db.begin() as conn:
        rows = fetch_all(
            conn,
            """
            SELECT id, title, current_value, target_value, unit
            FROM goals
            WHERE user_id = :uid AND status = 'active' AND target_value > 0
            """,
            {"uid": user.user_id},
        )
    for r in rows:
        r["progress"] = round((to_float(r["current_value"], 0.0) or 0.0) / float(r["target_value"]) * 100, 1)
    rows.sort(key=lambda r: r["progress"], reverse=True)
    return rows[:limit]
