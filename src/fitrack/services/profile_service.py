# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Any, Dict, Mapping

from sqlalchemy.engine import Connection

from fitrack.auth.session import SessionRecord
from fitrack.auth.users import get_profile, profile_summary
from fitrack.core.utils import blank_to_none, clean, to_date, to_float
from fitrack.errors import ValidationError
from fitrack.infra.db import Database, execute, fetch_one, insert_row, user_profiles

GENDERS = ("male", "female", "other")
ACTIVITY_LEVELS = ("sedentary", "light", "moderate", "active", "very_active")
DEFAULT_ACTIVITY_LEVEL = "moderate"


def user_stats(conn: Connection, user_id: int) -> Dict[str, Any]:
    w = fetch_one(
        conn,
        """
        SELECT COUNT(*) AS total_workouts,
               COALESCE(SUM(duration_minutes), 0) AS total_minutes,
               COALESCE(SUM(total_calories), 0) AS total_calories,
               MAX(workout_date) AS last_workout_date
        FROM workouts WHERE user_id = :uid
        """,
        {"uid": user_id},
    ) or {}
    g = fetch_one(
        conn,
        """
        SELECT COALESCE(SUM(CASE WHEN status = 'active' THEN 1 ELSE 0 END), 0) AS active_goals,
               COALESCE(SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END), 0) AS completed_goals
        FROM goals WHERE user_id = :uid
        """,
        {"uid": user_id},
    ) or {}
    return {
        "total_workouts": int(w.get("total_workouts") or 0),
        "total_minutes": int(w.get("total_minutes") or 0),
        "total_calories": int(w.get("total_calories") or 0),
        "last_workout_date": w.get("last_workout_date"),
        "active_goals": int(g.get("active_goals") or 0),
        "completed_goals": int(g.get("completed_goals") or 0),
    }


def profile_page(db: Database, user: SessionRecord) -> Dict[str, Any]:
    with db.begin() as conn:
        return {"profile": get_profile(conn, user.user_id) or {}, "stats": user_stats(conn, user.user_id)}


def update_profile(db: Database, user: SessionRecord, form: Mapping[str, Any]) -> Dict[str, Any]:
    """Upsert the profile row. Returns the new session profile summary."""
    gender = clean(form.get("gender")).lower()
    activity = clean(form.get("activity_level")) or DEFAULT_ACTIVITY_LEVEL
    errors = []
    if gender and gender not in GENDERS:
        errors.append("Please choose a valid gender")
    if activity not in ACTIVITY_LEVELS:
        errors.append("Please choose a valid activity level")
    if errors:
        raise ValidationError(errors)

    values = {
        "first_name": blank_to_none(form.get("first_name")),
        "last_name": blank_to_none(form.get("last_name")),
        "date_of_birth": to_date(form.get("date_of_birth")),
        "gender": gender or None,
        "height_cm": to_float(form.get("height_cm")),
        "weight_kg": to_float(form.get("weight_kg")),
        "activity_level": activity,
    }
    with db.begin() as conn:
        if get_profile(conn, user.user_id):
            dob = values["date_of_birth"]
            execute(
                conn,
                """
                UPDATE user_profiles
                SET first_name = :first_name, last_name = :last_name, date_of_birth = :date_of_birth,
                    gender = :gender, height_cm = :height_cm, weight_kg = :weight_kg,
                    activity_level = :activity_level
                WHERE user_id = :uid
                """,
                {**values, "date_of_birth": dob.isoformat() if dob else None, "uid": user.user_id},
            )
        else:
            insert_row(conn, user_profiles, {**values, "user_id": user.user_id})
    return profile_summary(values) or {}
