# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Workouts and the exercises logged in them.

Every statement is scoped by the session user's id, and every single-row
lookup goes through ensure_owned, so a foreign workout looks exactly like a
missing one.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from fitrack.auth.session import SessionRecord
from fitrack.core.utils import blank_to_none, clean, iso, page_count, to_date, to_float, to_int
from fitrack.errors import NotFoundError, ValidationError
from fitrack.infra.db import Database, execute, fetch_all, fetch_one, fetch_value, insert_row, workout_exercises, workouts
from fitrack.permissions import ensure_owned

PAGE_SIZE = 10

WORKOUT_FIELDS = ("name", "workout_date", "duration_minutes", "total_calories", "notes", "rating")

_OWNED_WORKOUT_SQL = "SELECT * FROM workouts WHERE id = :id AND user_id = :uid"


def workout_form_data(form: Mapping[str, Any]) -> Dict[str, str]:
    return {k: clean(form.get(k)) for k in WORKOUT_FIELDS}


def workout_errors(form: Mapping[str, Any], *, require_date: bool = True) -> List[str]:
    errors: List[str] = []
    if not clean(form.get("name")):
        errors.append("Workout name is required")
    if require_date and to_date(form.get("workout_date")) is None:
        errors.append("Workout date is required")
    return errors


def _exercise_values(entry: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "exercise_id": to_int(entry.get("exercise_id")),
        "sets": to_int(entry.get("sets")),
        "reps": to_int(entry.get("reps")),
        "weight_kg": to_float(entry.get("weight_kg")),
        "duration_minutes": to_int(entry.get("duration_minutes")),
        "calories_burned": to_int(entry.get("calories_burned")),
        "notes": blank_to_none(entry.get("notes")),
    }


def list_workouts(db: Database, user: SessionRecord, *, page: int = 1) -> Dict[str, Any]:
    page = max(1, int(page or 1))
    with db.begin() as conn:
        rows = fetch_all(
            conn,
            """
            SELECT w.id, w.name, w.workout_date, w.duration_minutes, w.total_calories, w.notes, w.rating,
                   COUNT(we.id) AS exercise_count
            FROM workouts w
            LEFT JOIN workout_exercises we ON w.id = we.workout_id
            WHERE w.user_id = :uid
            GROUP BY w.id, w.name, w.workout_date, w.duration_minutes, w.total_calories, w.notes, w.rating
            ORDER BY w.workout_date DESC, w.id DESC
            LIMIT :limit OFFSET :offset
            """,
            {"uid": user.user_id, "limit": PAGE_SIZE, "offset": (page - 1) * PAGE_SIZE},
        )
        total = int(fetch_value(conn, "SELECT COUNT(*) FROM workouts WHERE user_id = :uid", {"uid": user.user_id}))
    return {
        "workouts": rows,
        "current_page": page,
        "total_pages": page_count(total, PAGE_SIZE),
        "total_workouts": total,
    }


def recent_workouts(db: Database, user: SessionRecord, *, limit: int = 5) -> List[Dict[str, Any]]:
    limit = max(1, min(int(limit or 5), 50))
    with db.begin() as conn:
        return fetch_all(
            conn,
            """
            SELECT w.id, w.name, w.workout_date, w.duration_minutes, w.total_calories, w.rating,
                   COUNT(we.id) AS exercise_count
            FROM workouts w
            LEFT JOIN workout_exercises we ON w.id = we.workout_id
            WHERE w.user_id = :uid
            GROUP BY w.id, w.name, w.workout_date, w.duration_minutes, w.total_calories, w.rating
            ORDER BY w.workout_date DESC, w.id DESC
            LIMIT :limit
            """,
            {"uid": user.user_id, "limit": limit},
        )


def create_workout(
    db: Database,
    user: SessionRecord,
    form: Mapping[str, Any],
    entries: Optional[Iterable[Mapping[str, Any]]] = None,
) -> int:
    errors = workout_errors(form)
    if errors:
        raise ValidationError(errors)

    with db.begin() as conn:
        workout_id = insert_row(
            conn,
            workouts,
            {
                "user_id": user.user_id,
                "name": clean(form.get("name")),
                "workout_date": to_date(form.get("workout_date")),
                "duration_minutes": to_int(form.get("duration_minutes")),
                "total_calories": to_int(form.get("total_calories")),
                "notes": blank_to_none(form.get("notes")),
                "rating": to_int(form.get("rating")),
            },
        )
        for entry in entries or []:
            values = _exercise_values(entry)
            if not values["exercise_id"]:
                continue
            insert_row(conn, workout_exercises, {"workout_id": workout_id, **values})
    return workout_id


def get_workout(db: Database, user: SessionRecord, workout_id: int) -> Dict[str, Any]:
    with db.begin() as conn:
        workout = ensure_owned(user, fetch_one(conn, _OWNED_WORKOUT_SQL, {"id": workout_id, "uid": user.user_id}), "Workout")
        entries = fetch_all(
            conn,
            """
            SELECT we.*, e.name AS exercise_name, e.muscle_group, c.name AS category_name
            FROM workout_exercises we
            JOIN exercises e ON we.exercise_id = e.id
            LEFT JOIN exercise_categories c ON e.category_id = c.id
            WHERE we.workout_id = :wid
            ORDER BY we.id
            """,
            {"wid": workout["id"]},
        )
    return {"workout": workout, "workout_exercises": entries}


def update_workout(db: Database, user: SessionRecord, workout_id: int, form: Mapping[str, Any]) -> None:
    with db.begin() as conn:
        existing = ensure_owned(user, fetch_one(conn, _OWNED_WORKOUT_SQL, {"id": workout_id, "uid": user.user_id}), "Workout")
        errors = workout_errors(form, require_date=False)
        if errors:
            raise ValidationError(errors)
        execute(
            conn,
            """
            UPDATE workouts
            SET name = :name, workout_date = :workout_date, duration_minutes = :duration_minutes,
                total_calories = :total_calories, notes = :notes, rating = :rating
            WHERE id = :id AND user_id = :uid
            """,
            {
                "name": clean(form.get("name")),
                "workout_date": iso(form.get("workout_date")) or iso(existing.get("workout_date")),
                "duration_minutes": to_int(form.get("duration_minutes")),
                "total_calories": to_int(form.get("total_calories")),
                "notes": blank_to_none(form.get("notes")),
                "rating": to_int(form.get("rating")),
                "id": workout_id,
                "uid": user.user_id,
            },
        )


def delete_workout(db: Database, user: SessionRecord, workout_id: int) -> None:
    with db.begin() as conn:
        ensure_owned(user, fetch_one(conn, _OWNED_WORKOUT_SQL, {"id": workout_id, "uid": user.user_id}), "Workout")
        execute(conn, "DELETE FROM workout_exercises WHERE workout_id = :wid", {"wid": workout_id})
        if execute(conn, "DELETE FROM workouts WHERE id = :id AND user_id = :uid", {"id": workout_id, "uid": user.user_id}) == 0:
            raise NotFoundError("Workout not found")


def add_exercise(db: Database, user: SessionRecord, workout_id: int, entry: Mapping[str, Any]) -> int:
    values = _exercise_values(entry)
    with db.begin() as conn:
        ensure_owned(user, fetch_one(conn, _OWNED_WORKOUT_SQL, {"id": workout_id, "uid": user.user_id}), "Workout")
        if not values["exercise_id"] or not fetch_one(
            conn, "SELECT id FROM exercises WHERE id = :id", {"id": values["exercise_id"]}
        ):
            raise ValidationError(["Please choose an exercise"])
        return insert_row(conn, workout_exercises, {"workout_id": workout_id, **values})


def remove_exercise(db: Database, user: SessionRecord, workout_id: int, entry_id: int) -> None:
    with db.begin() as conn:
        ensure_owned(
            user,
            fetch_one(
                conn,
                """
                SELECT we.id, w.user_id
                FROM workout_exercises we
                JOIN workouts w ON we.workout_id = w.id
                WHERE we.id = :eid AND we.workout_id = :wid AND w.user_id = :uid
                """,
                {"eid": entry_id, "wid": workout_id, "uid": user.user_id},
            ),
            "Exercise",
        )
        execute(conn, "DELETE FROM workout_exercises WHERE id = :eid", {"eid": entry_id})


def workouts_frame(db: Database, user: SessionRecord) -> pd.DataFrame:
    """All of the user's workouts as a dataframe, newest first (for CSV export)."""
    with db.begin() as conn:
        rows = fetch_all(
            conn,
            """
            SELECT w.workout_date, w.name, w.duration_minutes, w.total_calories, w.rating, w.notes,
                   COUNT(we.id) AS exercise_count
            FROM workouts w
            LEFT JOIN workout_exercises we ON w.id = we.workout_id
            WHERE w.user_id = :uid
            GROUP BY w.id, w.workout_date, w.name, w.duration_minutes, w.total_calories, w.rating, w.notes
            ORDER BY w.workout_date DESC, w.id DESC
            """,
            {"uid": user.user_id},
        )
    columns = ["workout_date", "name", "duration_minutes", "total_calories", "rating", "notes", "exercise_count"]
    return pd.DataFrame(rows, columns=columns)
