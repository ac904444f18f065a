# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exercise catalogue, search and site-wide counts.

The catalogue is shared by all users; only the workout search is scoped to
the caller.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fitrack.auth.session import SessionRecord
from fitrack.core.utils import clean, to_int
from fitrack.errors import NotFoundError
from fitrack.infra.db import Database, fetch_all, fetch_one, fetch_value

DEFAULT_CALORIES_PER_MINUTE = 5
SEARCH_TYPES = ("all", "exercises", "workouts", "users")


def _like(q: str) -> str:
    return f"%{q}%"


def list_exercises(db: Database, *, category: str = "", search: str = "", limit: int = 50) -> List[Dict[str, Any]]:
    sql = """
        SELECT e.id, e.name, e.calories_per_minute, e.muscle_group, e.difficulty, c.name AS category_name
        FROM exercises e
        LEFT JOIN exercise_categories c ON e.category_id = c.id
        WHERE 1 = 1
    """
    params: Dict[str, Any] = {"limit": limit}
    if clean(category):
        sql += " AND c.name = :category"
        params["category"] = clean(category)
    if clean(search):
        sql += " AND (e.name LIKE :q OR e.muscle_group LIKE :q)"
        params["q"] = _like(clean(search))
    sql += " ORDER BY e.name LIMIT :limit"
    with db.begin() as conn:
        return fetch_all(conn, sql, params)


def exercise_options(db: Database) -> Dict[str, List[Dict[str, Any]]]:
    """Exercises and categories for the workout form."""
    with db.begin() as conn:
        exercises = fetch_all(
            conn,
            """
            SELECT e.*, c.name AS category_name
            FROM exercises e
            LEFT JOIN exercise_categories c ON e.category_id = c.id
            ORDER BY c.name, e.name
            """,
        )
        categories = fetch_all(conn, "SELECT * FROM exercise_categories ORDER BY name")
    return {"exercises": exercises, "categories": categories}


def list_categories(db: Database) -> List[Dict[str, Any]]:
    with db.begin() as conn:
        return fetch_all(conn, "SELECT * FROM exercise_categories ORDER BY name")


def exercise_library(db: Database, *, category: str = "", difficulty: str = "") -> Dict[str, Any]:
    """The exercise library page: every exercise matching the filters, plus the categories to filter by."""
    category, difficulty = clean(category), clean(difficulty)
    sql = """
        SELECT e.*, c.name AS category_name
        FROM exercises e
        LEFT JOIN exercise_categories c ON e.category_id = c.id
        WHERE 1 = 1
    """
    params: Dict[str, Any] = {}
    if category:
        sql += " AND c.name = :category"
        params["category"] = category
    if difficulty:
        sql += " AND e.difficulty = :difficulty"
        params["difficulty"] = difficulty
    sql += " ORDER BY e.name"
    with db.begin() as conn:
        exercises = fetch_all(conn, sql, params)
        categories = fetch_all(conn, "SELECT * FROM exercise_categories ORDER BY name")
    return {
        "exercises": exercises,
        "categories": categories,
        "selected_category": category,
        "selected_difficulty": difficulty,
    }


def get_exercise(db: Database, exercise_id: int) -> Dict[str, Any]:
    with db.begin() as conn:
        row = fetch_one(
            conn,
            """
            SELECT e.*, c.name AS category_name, c.description AS category_description
            FROM exercises e
            LEFT JOIN exercise_categories c ON e.category_id = c.id
            WHERE e.id = :id
            """,
            {"id": exercise_id},
        )
    if row is None:
        raise NotFoundError("Exercise not found")
    return row


def exercise_calories(db: Database, exercise_id: int, duration: Any) -> int:
    minutes = to_int(duration, 0) or 0
    with db.begin() as conn:
        row = fetch_one(conn, "SELECT calories_per_minute FROM exercises WHERE id = :id", {"id": exercise_id})
    if row is None:
        raise NotFoundError("Exercise not found")
    per_minute = row["calories_per_minute"] or DEFAULT_CALORIES_PER_MINUTE
    return int(round(per_minute * minutes))


def search_exercises(db: Database, q: str, *, limit: int = 10) -> List[Dict[str, Any]]:
    q = clean(q)
    if not q:
        return []
    with db.begin() as conn:
        return fetch_all(
            conn,
            """
            SELECT e.id, e.name, e.muscle_group, c.name AS category
            FROM exercises e
            LEFT JOIN exercise_categories c ON e.category_id = c.id
            WHERE e.name LIKE :q OR e.muscle_group LIKE :q
            ORDER BY e.name
            LIMIT :limit
            """,
            {"q": _like(q), "limit": limit},
        )


def search(db: Database, q: str, *, kind: str = "all", user: Optional[SessionRecord] = None) -> Dict[str, List[Dict[str, Any]]]:
    """Site search. Workouts are only searched for a logged-in user, and only their own."""
    results: Dict[str, List[Dict[str, Any]]] = {"exercises": [], "workouts": [], "users": []}
    q = clean(q)
    kind = kind if kind in SEARCH_TYPES else "all"
    if not q:
        return results
    params = {"q": _like(q)}
    with db.begin() as conn:
        if kind in ("all", "exercises"):
            results["exercises"] = fetch_all(
                conn,
                """
                SELECT e.id, e.name, e.description, e.muscle_group, c.name AS category_name
                FROM exercises e
                LEFT JOIN exercise_categories c ON e.category_id = c.id
                WHERE e.name LIKE :q OR e.description LIKE :q OR e.muscle_group LIKE :q
                ORDER BY e.name
                LIMIT 20
                """,
                params,
            )
        if kind in ("all", "workouts") and user is not None:
            results["workouts"] = fetch_all(
                conn,
                """
                SELECT w.id, w.name, w.workout_date, w.duration_minutes, w.notes
                FROM workouts w
                WHERE w.user_id = :uid AND (w.name LIKE :q OR w.notes LIKE :q)
                ORDER BY w.workout_date DESC
                LIMIT 20
                """,
                {**params, "uid": user.user_id},
            )
        if kind in ("all", "users"):
            results["users"] = fetch_all(
                conn,
                """
                SELECT u.id, u.username, up.first_name, up.last_name
                FROM users u
                LEFT JOIN user_profiles up ON u.id = up.user_id
                WHERE u.username LIKE :q OR up.first_name LIKE :q OR up.last_name LIKE :q
                ORDER BY u.username
                LIMIT 20
                """,
                params,
            )
    return results


def site_counts(db: Database) -> Dict[str, int]:
    with db.begin() as conn:
        return {
            "total_users": int(fetch_value(conn, "SELECT COUNT(*) FROM users")),
            "total_workouts": int(fetch_value(conn, "SELECT COUNT(*) FROM workouts")),
            "total_exercises": int(fetch_value(conn, "SELECT COUNT(*) FROM exercises")),
        }
