# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Relational storage: engine, tables and small query helpers.

Reads, updates and deletes are written as parameterized SQL (``text()``);
inserts go through the Core ``insert()`` construct so the generated id comes
back the same way on every backend.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    text,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from fitrack.errors import StorageFault

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("username", String(64), nullable=False, unique=True),
    Column("email", String(120), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("created_at", DateTime, server_default=func.current_timestamp()),
)

user_profiles = Table(
    "user_profiles",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False, unique=True),
    Column("first_name", String(64)),
    Column("last_name", String(64)),
    Column("date_of_birth", Date),
    Column("gender", String(16)),
    Column("height_cm", Float),
    Column("weight_kg", Float),
    Column("activity_level", String(32), server_default="moderate"),
)

exercise_categories = Table(
    "exercise_categories",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(64), nullable=False, unique=True),
    Column("description", Text),
)

exercises = Table(
    "exercises",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(128), nullable=False, unique=True),
    Column("category_id", Integer, ForeignKey("exercise_categories.id")),
    Column("description", Text),
    Column("calories_per_minute", Float),
    Column("muscle_group", String(64)),
    Column("difficulty", String(16)),
)

workouts = Table(
    "workouts",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False, index=True),
    Column("name", String(128), nullable=False),
    Column("workout_date", Date, nullable=False),
    Column("duration_minutes", Integer),
    Column("total_calories", Integer),
    Column("notes", Text),
    Column("rating", Integer),
    Column("created_at", DateTime, server_default=func.current_timestamp()),
)

workout_exercises = Table(
    "workout_exercises",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("workout_id", Integer, ForeignKey("workouts.id"), nullable=False, index=True),
    Column("exercise_id", Integer, ForeignKey("exercises.id"), nullable=False),
    Column("sets", Integer),
    Column("reps", Integer),
    Column("weight_kg", Float),
    Column("duration_minutes", Integer),
    Column("calories_burned", Integer),
    Column("notes", Text),
)

goals = Table(
    "goals",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False, index=True),
    Column("title", String(128), nullable=False),
    Column("description", Text),
    Column("goal_type", String(32), nullable=False),
    Column("target_value", Float),
    Column("current_value", Float, server_default="0"),
    Column("unit", String(32)),
    Column("start_date", Date, nullable=False),
    Column("target_date", Date),
    Column("status", String(16), nullable=False, server_default="active"),
    Column("created_at", DateTime, server_default=func.current_timestamp()),
)


def make_engine(url: str) -> Engine:
    u = make_url(url)
    if u.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if not u.database or u.database == ":memory:":
        # one shared connection, otherwise every checkout sees an empty db
        kwargs["poolclass"] = StaticPool
    else:
        Path(u.database).resolve().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, **kwargs)


def init_db(engine: Engine) -> None:
    try:
        metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise StorageFault("Could not initialise the database") from e


class Database:
    """Thin wrapper around an Engine that turns driver errors into StorageFault."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        """One transaction. Commits on success, rolls back on any exception."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise StorageFault(str(e.__class__.__name__)) from e


def fetch_all(conn: Connection, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    return [dict(r) for r in conn.execute(text(sql), dict(params or {})).mappings()]


def fetch_one(conn: Connection, sql: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
    row = conn.execute(text(sql), dict(params or {})).mappings().first()
    return dict(row) if row is not None else None


def fetch_value(conn: Connection, sql: str, params: Optional[Mapping[str, Any]] = None, default: Any = 0) -> Any:
    v = conn.execute(text(sql), dict(params or {})).scalar()
    return default if v is None else v


def execute(conn: Connection, sql: str, params: Optional[Mapping[str, Any]] = None) -> int:
    """Run a write statement and return the number of affected rows."""
    return conn.execute(text(sql), dict(params or {})).rowcount


def insert_row(conn: Connection, table: Table, values: Mapping[str, Any]) -> int:
    result = conn.execute(table.insert().values(**dict(values)))
    return int(result.inserted_primary_key[0])
