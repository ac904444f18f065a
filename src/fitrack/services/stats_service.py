# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from fitrack.auth.session import SessionRecord
from fitrack.infra.db import Database, fetch_all
from fitrack.services.goal_service import top_active_goals
from fitrack.services.profile_service import user_stats

CHART_DAYS = 30


def daily_activity(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sum minutes and calories per workout date, oldest first."""
    if not rows:
        return []
    df = pd.DataFrame(rows, columns=["workout_date", "duration_minutes", "total_calories"])
    df["date"] = pd.to_datetime(df["workout_date"]).dt.date
    df["minutes"] = pd.to_numeric(df["duration_minutes"], errors="coerce").fillna(0)
    df["calories"] = pd.to_numeric(df["total_calories"], errors="coerce").fillna(0)
    daily = df.groupby("date", as_index=False)[["minutes", "calories"]].sum().sort_values("date")
    return [
        {"date": d.isoformat(), "minutes": int(m), "calories": int(c)}
        for d, m, c in zip(daily["date"], daily["minutes"], daily["calories"])
    ]


def dashboard(db: Database, user: SessionRecord, *, today: Optional[date] = None) -> Dict[str, Any]:
    since = (today or date.today()) - timedelta(days=CHART_DAYS)
    with db.begin() as conn:
        stats = user_stats(conn, user.user_id)
        rows = fetch_all(
            conn,
            """
            SELECT workout_date, duration_minutes, total_calories
            FROM workouts
            WHERE user_id = :uid AND workout_date >= :since
            """,
            {"uid": user.user_id, "since": since.isoformat()},
        )
    return {
        "stats": stats,
        "workout_data": daily_activity(rows),
        "goals": top_active_goals(db, user),
    }
