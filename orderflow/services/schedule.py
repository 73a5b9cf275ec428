"""
Schedule Evaluator

Decides whether the establishment is open at a given instant from the
weekly business hours configuration. Pure functions: no I/O, no state,
safe to call from any thread as often as needed.

The instant is resolved to a day-of-week key and a zero-padded "HH:MM"
string in the establishment's single configured timezone; the decision
depends on nothing else.

Known limitation: overnight windows (end earlier than start) are not
supported. Such a day is reported closed for its whole duration instead
of wrapping past midnight.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytz

from orderflow.schemas import BusinessHours, BusinessHoursConfig, DAY_KEYS

REASON_NOT_CONFIGURED = "day not configured"
REASON_MARKED_CLOSED = "day marked closed"
REASON_OVERNIGHT = "overnight window not supported"
REASON_NOT_YET_OPEN = "not yet open"
REASON_ALREADY_CLOSED = "already closed"
REASON_OPEN = "open"


@dataclass(frozen=True)
class ScheduleStatus:
    """
    Detailed open/closed decision.

    Attributes:
        is_open: Whether orders are admissible
        current_day: Day key in the establishment timezone (e.g. "friday")
        current_time: Local "HH:MM" used for the comparison
        local_time: Full local timestamp, ISO formatted
        reason: Human-readable reason for the decision
        today_hours: The configuration entry consulted, if any
    """
    is_open: bool
    current_day: str
    current_time: str
    local_time: str
    reason: str
    today_hours: Optional[BusinessHours] = None

    def to_dict(self) -> dict:
        return {
            "is_open": self.is_open,
            "current_day": self.current_day,
            "current_time": self.current_time,
            "local_time": self.local_time,
            "reason": self.reason,
            "today_hours": self.today_hours.model_dump() if self.today_hours else None,
        }


def resolve_local(now: datetime, tz_name: str) -> datetime:
    """Convert `now` to the establishment timezone. Naive values are taken as UTC."""
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(pytz.timezone(tz_name))


def evaluate(config: BusinessHoursConfig, now: datetime, tz_name: str) -> ScheduleStatus:
    """
    Evaluate the schedule at `now`.

    Args:
        config: Weekly business hours
        now: Instant to evaluate
        tz_name: Establishment timezone (pytz name)

    Returns:
        ScheduleStatus with the decision and its reason
    """
    local = resolve_local(now, tz_name)
    day = DAY_KEYS[local.weekday()]
    current_time = local.strftime("%H:%M")
    hours = config.for_day(day)

    if hours is None:
        is_open, reason = False, REASON_NOT_CONFIGURED
    elif not hours.open:
        is_open, reason = False, REASON_MARKED_CLOSED
    elif hours.end < hours.start:
        is_open, reason = False, REASON_OVERNIGHT
    elif current_time < hours.start:
        is_open, reason = False, REASON_NOT_YET_OPEN
    elif current_time > hours.end:
        is_open, reason = False, REASON_ALREADY_CLOSED
    else:
        is_open, reason = True, REASON_OPEN

    return ScheduleStatus(
        is_open=is_open,
        current_day=day,
        current_time=current_time,
        local_time=local.isoformat(),
        reason=reason,
        today_hours=hours,
    )


def is_open(config: BusinessHoursConfig, now: datetime, tz_name: str) -> bool:
    """Shortcut for `evaluate(...).is_open`."""
    return evaluate(config, now, tz_name).is_open
