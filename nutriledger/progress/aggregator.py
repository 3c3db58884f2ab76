# -*- coding: utf-8 -*-
"""
Time-window aggregator.

Meal facts are bucketed by local wall time into a fixed-cardinality array:
24 hours (day), 7 days from Sunday (week), every day of the month (month),
6 months (6months) or 12 months (year). Monthly buckets hold the average of
the non-zero daily sums in that month.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, List, Mapping, Tuple, Union

import numpy as np
import pandas as pd

from ..ledger.models import MealFact, parse_ts
from .models import Bucket, DaySummary, TimeRange

Fact = Union[MealFact, Mapping[str, Any]]

_FREQ = {
    TimeRange.day: "h",
    TimeRange.week: "D",
    TimeRange.month: "D",
    TimeRange.six_months: "MS",
    TimeRange.year: "MS",
}
_MACROS = ("calories", "protein_g", "carbs_g", "fat_g")


def local_wall_time(value: Any) -> datetime:
    ts = value if isinstance(value, datetime) else parse_ts(value)
    if ts.tzinfo is not None:
        ts = ts.astimezone().replace(tzinfo=None)
    return ts


def _field(fact: Fact, name: str) -> Any:
    if isinstance(fact, Mapping):
        return fact.get(name)
    return getattr(fact, name, None)


def _frame(facts: Iterable[Fact], columns: Tuple[str, ...]) -> pd.DataFrame:
    records = []
    for fact in facts:
        raw_ts = _field(fact, "timestamp")
        if raw_ts is None:
            continue
        row = {"timestamp": local_wall_time(raw_ts)}
        for col in columns:
            row[col] = float(_field(fact, col) or 0.0)
        records.append(row)
    if not records:
        return pd.DataFrame(columns=list(columns), index=pd.DatetimeIndex([], name="timestamp"), dtype=float)
    df = pd.DataFrame.from_records(records)
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    return df.set_index("timestamp").sort_index()


def _add_months(day: date, months: int) -> date:
    return (pd.Timestamp(day) + pd.DateOffset(months=months)).date()


def window_bounds(range_: TimeRange, reference: date) -> Tuple[datetime, datetime, int]:
    """(start, end exclusive, bucket count) for the window containing ``reference``."""
    range_ = TimeRange(range_)
    if range_ == TimeRange.day:
        start = reference
        end = start + timedelta(days=1)
        count = 24
    elif range_ == TimeRange.week:
        # weekday(): Monday=0 .. Sunday=6
        start = reference - timedelta(days=(reference.weekday() + 1) % 7)
        end = start + timedelta(days=7)
        count = 7
    elif range_ == TimeRange.month:
        start = reference.replace(day=1)
        count = calendar.monthrange(start.year, start.month)[1]
        end = start + timedelta(days=count)
    elif range_ == TimeRange.six_months:
        start = _add_months(reference.replace(day=1), -5)
        end = _add_months(start, 6)
        count = 6
    else:
        start = date(reference.year, 1, 1)
        end = date(reference.year + 1, 1, 1)
        count = 12
    return datetime.combine(start, time()), datetime.combine(end, time()), count


def aggregate(
    range_: TimeRange,
    reference_date: date,
    facts: Iterable[Fact],
    *,
    metric: str = "calories",
) -> List[Bucket]:
    range_ = TimeRange(range_)
    start, end, count = window_bounds(range_, reference_date)
    freq = _FREQ[range_]
    index = pd.date_range(start=start, periods=count, freq=freq)

    df = _frame(facts, (metric,))
    window = df.loc[(df.index >= start) & (df.index < end), metric]

    if window.empty:
        values = pd.Series(0.0, index=index)
    elif freq == "MS":
        daily = window.resample("D").sum()
        daily = daily[daily != 0]
        values = daily.resample("MS").mean().round(2).reindex(index).fillna(0.0)
    else:
        values = window.resample(freq).sum().reindex(index, fill_value=0.0)

    values = values.astype(np.float64)
    return [
        Bucket(timestamp=ts.to_pydatetime(), value=float(v))
        for ts, v in zip(index, values.to_numpy())
    ]


def step(range_: TimeRange, reference: date, direction: int, now: datetime) -> date:
    """Move the window by one unit; a forward move past ``now`` leaves it unchanged."""
    range_ = TimeRange(range_)
    sign = 1 if direction > 0 else -1
    if range_ == TimeRange.day:
        moved = reference + timedelta(days=sign)
    elif range_ == TimeRange.week:
        moved = reference + timedelta(days=7 * sign)
    elif range_ == TimeRange.month:
        moved = _add_months(reference, sign)
    elif range_ == TimeRange.six_months:
        moved = _add_months(reference, 6 * sign)
    else:
        moved = _add_months(reference, 12 * sign)
    if sign > 0:
        start, _, _ = window_bounds(range_, moved)
        if start > local_wall_time(now):
            return reference
    return moved


def summarize_day(facts: Iterable[Fact], day: date) -> DaySummary:
    df = _frame(facts, _MACROS)
    start = datetime.combine(day, time())
    rows = df.loc[(df.index >= start) & (df.index < start + timedelta(days=1))]
    totals = rows.sum() if not rows.empty else pd.Series(0.0, index=list(_MACROS))
    return DaySummary(
        date=day,
        calories=round(float(totals["calories"]), 2),
        protein_g=round(float(totals["protein_g"]), 2),
        carbs_g=round(float(totals["carbs_g"]), 2),
        fat_g=round(float(totals["fat_g"]), 2),
        meal_count=int(len(rows)),
    )
