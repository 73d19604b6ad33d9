"""Recurring fee due-date arithmetic.

Due dates are computed in the transaction's billing timezone, snapped to
the anchor day (clamped to the month's last day), pinned to a fixed local
hour so DST transitions never move a due date across midnight, and then
stored in UTC.
"""

import calendar
from datetime import datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from paygent_engine.common.clock import ensure_utc

MONTHS_PER_CYCLE = {"monthly": 1, "yearly": 12}


def validate_cycle(cycle: str) -> str:
    if cycle not in MONTHS_PER_CYCLE:
        raise ValueError(f"Unknown billing cycle: {cycle!r}")
    return cycle


def validate_anchor_day(day: int) -> int:
    if not 1 <= day <= 31:
        raise ValueError(f"Billing anchor day must be 1-31, got {day}")
    return day


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown billing timezone: {name!r}") from exc


def clamp_day(year: int, month: int, day: int) -> int:
    """Anchor 31 in February -> 28 (or 29); anchor 31 in April -> 30."""
    return min(day, calendar.monthrange(year, month)[1])


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def anchor_day_for(moment: datetime, tz_name: str = "UTC") -> int:
    """Day-of-month of ``moment`` as seen in the billing timezone."""
    return ensure_utc(moment).astimezone(resolve_timezone(tz_name)).day


def next_billing_date(
    start: datetime,
    cycle: str,
    anchor_day: int,
    tz_name: str = "UTC",
    hour: int = 12,
) -> datetime:
    """
    Advance ``start`` by one billing cycle and snap to the anchor day.

    The calendar month arithmetic happens on (year, month) only, so a start
    of Jan 31 never overflows into March before clamping.
    """
    validate_cycle(cycle)
    validate_anchor_day(anchor_day)
    tz = resolve_timezone(tz_name)

    local = ensure_utc(start).astimezone(tz)
    year, month = add_months(local.year, local.month, MONTHS_PER_CYCLE[cycle])
    day = clamp_day(year, month, anchor_day)

    due_local = datetime.combine(
        datetime(year, month, day).date(), time(hour=hour), tzinfo=tz
    )
    return ensure_utc(due_local)


def next_billing_date_after(
    previous_due: datetime,
    now: datetime,
    cycle: str,
    anchor_day: int,
    tz_name: str = "UTC",
    hour: int = 12,
) -> datetime:
    """
    Successor due date for a renewal.

    Advances from the predecessor's due date one cycle at a time until the
    result lies after ``now``. A sweep that ran late bills a single period
    and re-anchors forward rather than back-billing every missed cycle.
    """
    due = next_billing_date(previous_due, cycle, anchor_day, tz_name, hour)
    now = ensure_utc(now)
    while due <= now:
        due = next_billing_date(due, cycle, anchor_day, tz_name, hour)
    return due
