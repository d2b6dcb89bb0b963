"""Real-time availability verdicts from a weekly agenda and a manual override."""

import logging
from datetime import datetime, timedelta
from typing import Any, Iterator, List, Optional, Tuple
from zoneinfo import ZoneInfo

from discovery.core.config import get_settings
from discovery.etl.schedule import MINUTES_PER_DAY, parse_schedule
from discovery.models import (
    AVAILABLE_NOW,
    SCHEDULED_LATER,
    UNAVAILABLE,
    UNKNOWN,
    AvailabilitySnapshot,
    WeeklySchedule,
)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MINUTES_PER_WEEK = 7 * MINUTES_PER_DAY
_BASE_HORIZON_DAYS = 8
_MAX_HORIZON_DAYS = 120


def _minute_of_week(moment: datetime) -> int:
    return moment.weekday() * MINUTES_PER_DAY + moment.hour * 60 + moment.minute


def _in_window(minute: int, start: int, end: int, period: int) -> bool:
    """Half-open ``[start, end)`` membership on a circular axis of length ``period``."""
    if end <= start:
        end += period
    return start <= minute < end or start <= minute + period < end


def _covered(schedule: WeeklySchedule, moment: datetime) -> bool:
    minute = _minute_of_week(moment)
    for slot in schedule.slots:
        start = slot.weekday * MINUTES_PER_DAY + slot.start_minute
        length = slot.end_minute - slot.start_minute
        if length <= 0:
            length += MINUTES_PER_DAY
        if _in_window(minute, start, (start + length) % _MINUTES_PER_WEEK, _MINUTES_PER_WEEK):
            return True
    return False


def _closed_periods(schedule: WeeklySchedule) -> List[Tuple[datetime, datetime]]:
    periods = list(schedule.absences)
    if schedule.pause is not None:
        periods.append(schedule.pause)
    return periods


def _blocked(schedule: WeeklySchedule, moment: datetime) -> bool:
    return any(start <= moment < end for start, end in _closed_periods(schedule))


def is_open(schedule: WeeklySchedule, moment: datetime) -> bool:
    return _covered(schedule, moment) and not _blocked(schedule, moment)


def _horizon_days(schedule: WeeklySchedule, now: datetime) -> int:
    days = _BASE_HORIZON_DAYS
    periods = _closed_periods(schedule)
    if periods:
        last_end = max(end for _, end in periods)
        days = max(days, (last_end - now).days + _BASE_HORIZON_DAYS)
    return min(days, _MAX_HORIZON_DAYS)


def _transitions(schedule: WeeklySchedule, now: datetime) -> Iterator[datetime]:
    """Yield, in order, every instant after ``now`` where openness may flip."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    candidates: List[datetime] = []
    for offset in range(-1, _horizon_days(schedule, now) + 1):
        day = midnight + timedelta(days=offset)
        for slot in schedule.slots:
            if slot.weekday != day.weekday():
                continue
            start = day + timedelta(minutes=slot.start_minute)
            end = day + timedelta(minutes=slot.end_minute)
            if end <= start:
                end += timedelta(days=1)
            candidates.extend((start, end))
    for start, end in _closed_periods(schedule):
        candidates.extend((start, end))
    for moment in sorted(set(candidates)):
        if moment > now:
            yield moment


def _format_return(moment: datetime, now: datetime) -> str:
    clock = moment.strftime("%H:%M")
    days_ahead = (moment.date() - now.date()).days
    if days_ahead == 0:
        return f"Back at {clock}"
    if days_ahead == 1:
        return f"Back tomorrow at {clock}"
    if days_ahead < 7:
        return f"Back on {WEEKDAY_NAMES[moment.weekday()]} at {clock}"
    return f"Back on {moment.strftime('%d.%m')} at {clock}"


def calculate_availability(
    now: datetime,
    schedule: Optional[WeeklySchedule],
    manual_override: bool = False,
) -> AvailabilitySnapshot:
    """Evaluate ``schedule`` at ``now``.

    A manual override always wins. Without one, an empty agenda is UNKNOWN,
    an open instant is AVAILABLE_NOW, and otherwise the next opening decides
    between SCHEDULED_LATER and UNAVAILABLE. Times use the wall clock of ``now``;
    returned datetimes keep its tzinfo.
    """
    if manual_override:
        return AvailabilitySnapshot(is_available=True, status=AVAILABLE_NOW, message="Available now")

    if schedule is None or not schedule.slots:
        return AvailabilitySnapshot(is_available=False, status=UNKNOWN, message="No schedule set")

    tzinfo = now.tzinfo
    local_now = now.replace(tzinfo=None)

    if is_open(schedule, local_now):
        closes_at = next((t for t in _transitions(schedule, local_now) if not is_open(schedule, t)), None)
        return AvailabilitySnapshot(
            is_available=True,
            status=AVAILABLE_NOW,
            message="Available now",
            next_change_at=closes_at.replace(tzinfo=tzinfo) if closes_at else None,
        )

    opens_at = next((t for t in _transitions(schedule, local_now) if is_open(schedule, t)), None)
    if opens_at is None:
        return AvailabilitySnapshot(is_available=False, status=UNAVAILABLE, message="Unavailable")

    return AvailabilitySnapshot(
        is_available=False,
        status=SCHEDULED_LATER,
        message=_format_return(opens_at, local_now),
        next_change_at=opens_at.replace(tzinfo=tzinfo),
    )


def availability_for(
    raw_schedule: Any,
    manual_override: bool = False,
    now: Optional[datetime] = None,
) -> AvailabilitySnapshot:
    """Decode a stored agenda and evaluate it; malformed agendas yield UNKNOWN."""
    if now is None:
        now = datetime.now(ZoneInfo(get_settings().schedule_timezone))
    if manual_override:
        return calculate_availability(now, None, manual_override=True)

    tz = now.tzinfo or ZoneInfo(get_settings().schedule_timezone)
    decoded = parse_schedule(raw_schedule, tz)
    if not decoded.ok:
        logger.warning("Unable to decode schedule: %s", decoded.error)
        return AvailabilitySnapshot(is_available=False, status=UNKNOWN, message="Schedule unavailable")
    return calculate_availability(now, decoded.value, manual_override=False)
