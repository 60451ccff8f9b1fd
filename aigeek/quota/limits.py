"""Window arithmetic and limit evaluation for the quota ledger.

Everything here is pure: callers pass the current time and counters in.
"""

from datetime import date, datetime, timezone
from typing import Optional

from aigeek.types import (
    DayWindow,
    HourWindow,
    LimitDimension,
    LimitFlags,
    LimitSet,
    MinuteWindow,
    UsagePercentages,
)

NEAR_LIMIT_THRESHOLD = 80.0
AT_LIMIT_THRESHOLD = 95.0


def minute_start(now: datetime) -> datetime:
    """Truncate to the start of the minute (UTC)."""
    return now.astimezone(timezone.utc).replace(second=0, microsecond=0)


def hour_start(now: datetime) -> datetime:
    """Truncate to the start of the hour (UTC)."""
    return now.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def utc_day(now: datetime) -> date:
    return now.astimezone(timezone.utc).date()


def percentage(current: float, limit: float) -> float:
    """Usage as a percentage of ``limit``, clamped to [0, 100].

    A limit of 0 means the dimension is untracked and reports 0.
    """
    if not limit or limit <= 0:
        return 0.0
    return max(0.0, min(current / limit * 100, 100.0))


def roll_windows(
    minute: MinuteWindow,
    hour: HourWindow,
    day: DayWindow,
    now: datetime,
) -> tuple[MinuteWindow, HourWindow, DayWindow]:
    """Return copies of the windows with stale ones zeroed.

    A window is stale when ``now`` falls in a later minute/hour/day than
    its stored marker. Fresh windows are returned unchanged.
    """
    current_minute = minute_start(now)
    current_hour = hour_start(now)
    today = utc_day(now)

    if minute.window_start is None or minute.window_start < current_minute:
        minute = MinuteWindow(window_start=current_minute)
    else:
        minute = minute.model_copy()

    if hour.window_start is None or hour.window_start < current_hour:
        hour = HourWindow(window_start=current_hour)
    else:
        hour = hour.model_copy()

    if day.window_date is None or day.window_date < today:
        day = DayWindow(window_date=today)
    else:
        day = day.model_copy()

    return minute, hour, day


def current_values(
    minute: MinuteWindow,
    hour: HourWindow,
    day: DayWindow,
) -> dict[LimitDimension, float]:
    """Map each limit dimension to the counter it is measured against."""
    return {
        LimitDimension.REQUESTS_PER_MINUTE: minute.requests,
        LimitDimension.REQUESTS_PER_DAY: day.requests,
        LimitDimension.TOKENS_PER_MINUTE: minute.tokens,
        LimitDimension.TOKENS_PER_DAY: day.tokens,
        LimitDimension.AUDIO_SECONDS_PER_HOUR: hour.audio_seconds,
        LimitDimension.AUDIO_SECONDS_PER_DAY: day.audio_seconds,
    }


def evaluate_limits(
    values: dict[LimitDimension, float],
    limits: LimitSet,
    near_threshold: float = NEAR_LIMIT_THRESHOLD,
    at_threshold: float = AT_LIMIT_THRESHOLD,
) -> tuple[UsagePercentages, LimitFlags, LimitFlags]:
    """Compute percentages plus near-limit and at-limit flags.

    Untracked dimensions (limit 0) are never flagged. At-limit always
    implies near-limit, whatever the configured thresholds.
    """
    percentages: dict[str, float] = {}
    near: dict[str, bool] = {}
    at: dict[str, bool] = {}

    for dimension in LimitDimension:
        limit = limits.get(dimension)
        pct = percentage(values.get(dimension, 0), limit)
        tracked = limit > 0
        is_at = tracked and pct >= at_threshold
        percentages[dimension.value] = pct
        at[dimension.value] = is_at
        near[dimension.value] = is_at or (tracked and pct >= near_threshold)

    return UsagePercentages(**percentages), LimitFlags(**near), LimitFlags(**at)


def critical_at_limit(
    at_limit: LimitFlags,
    critical: Optional[list[LimitDimension]] = None,
) -> list[LimitDimension]:
    """Critical dimensions currently at their limit."""
    dimensions = critical or list(LimitDimension)
    return [d for d in dimensions if at_limit.get(d)]
