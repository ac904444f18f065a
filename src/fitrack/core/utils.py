# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import io
import math
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd
from fastapi.responses import StreamingResponse


def clean(v: Any) -> str:
    """Form value as a trimmed string ('' for None)."""
    return "" if v is None else str(v).strip()


def blank_to_none(v: Any) -> Optional[str]:
    s = clean(v)
    return s or None


def to_int(v: Any, default: Optional[int] = None) -> Optional[int]:
    s = clean(v)
    if not s:
        return default
    try:
        f = float(s)
    except ValueError:
        return default
    return int(f) if math.isfinite(f) else default


def to_float(v: Any, default: Optional[float] = None) -> Optional[float]:
    s = clean(v)
    if not s:
        return default
    try:
        f = float(s)
    except ValueError:
        return default
    return f if math.isfinite(f) else default


def to_date(v: Any) -> Optional[date]:
    """Accept date, datetime or an ISO 'YYYY-MM-DD[...]' string."""
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    s = clean(v)
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def iso(v: Any) -> Optional[str]:
    d = to_date(v)
    return d.isoformat() if d else None


def progress_percent(current: Any, target: Any) -> int:
    """Share of target reached, capped at 100. No target means 0."""
    t = to_float(target)
    if not t or t <= 0:
        return 0
    c = to_float(current, 0.0) or 0.0
    ratio = c / t * 100
    if not math.isfinite(ratio):
        return 100 if ratio > 0 else 0
    return min(100, int(math.floor(ratio + 0.5)))


def days_remaining(target_date: Any, *, today: Optional[date] = None) -> Optional[int]:
    d = to_date(target_date)
    if d is None:
        return None
    return (d - (today or date.today())).days


def page_count(total: int, per_page: int) -> int:
    return max(1, math.ceil(total / per_page)) if per_page > 0 else 1


def df_to_csv_stream(df: pd.DataFrame, filename: str = "") -> StreamingResponse:
    """Stream a dataframe as CSV without writing to disk."""
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    buf.seek(0)
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'} if filename else None
    return StreamingResponse(iter([buf.getvalue()]), media_type="text/csv", headers=headers)
