# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exercise catalogue seeding from a YAML file shipped with the package."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from fitrack.infra.db import Database, exercise_categories, exercises, fetch_one, insert_row

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "exercises.yml"


def load_catalog(path: Path = DEFAULT_CATALOG_PATH) -> Dict[str, Dict[str, Any]]:
    """Return {category_name: {"description": str, "exercises": [dict, ...]}}."""
    if not path.exists():
        return {}
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    cats = (raw.get("categories") or {}) if isinstance(raw, dict) else {}
    out: Dict[str, Dict[str, Any]] = {}
    for cname, cdata in cats.items():
        name = str(cname).strip()
        if not name or not isinstance(cdata, dict):
            continue
        items: List[Dict[str, Any]] = []
        for ex in cdata.get("exercises") or []:
            if not isinstance(ex, dict) or not str(ex.get("name") or "").strip():
                continue
            items.append(
                {
                    "name": str(ex["name"]).strip(),
                    "description": ex.get("description"),
                    "calories_per_minute": ex.get("calories_per_minute"),
                    "muscle_group": ex.get("muscle_group"),
                    "difficulty": ex.get("difficulty"),
                }
            )
        out[name] = {"description": cdata.get("description"), "exercises": items}
    return out


def seed_catalog(db: Database, *, path: Path = DEFAULT_CATALOG_PATH) -> int:
    """Insert missing categories and exercises. Returns the number of new exercises."""
    catalog = load_catalog(path)
    added = 0
    with db.begin() as conn:
        for cname, cdata in catalog.items():
            cat = fetch_one(conn, "SELECT id FROM exercise_categories WHERE name = :name", {"name": cname})
            if cat:
                cat_id = cat["id"]
            else:
                cat_id = insert_row(
                    conn, exercise_categories, {"name": cname, "description": cdata["description"]}
                )
            for ex in cdata["exercises"]:
                if fetch_one(conn, "SELECT id FROM exercises WHERE name = :name", {"name": ex["name"]}):
                    continue
                insert_row(conn, exercises, {**ex, "category_id": cat_id})
                added += 1
    if added:
        logger.info("Seeded %d exercises from %s", added, path)
    return added
