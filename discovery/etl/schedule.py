"""Normalization of the persisted weekly agenda blob.

The profile editor stores ``{"weekly": [...], "pause": {...}, "absences": [...]}``
either as a JSON string or as a native structure; older rows hold a bare list of
weekly entries. Weekday 0 is Monday. Weekly entries carry their hours either
inline (``start``/``end``) or nested under ``timeSlot``, and are switched off
by ``enabled: false`` or ``available: false``. The pause is an account-wide
dated period, like an absence.
"""

import json
import logging
import re
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from discovery.models import DecodeResult, ScheduleSlot, WeeklySchedule

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^(?P<hour>\d{1,2})[:hH](?P<minute>\d{2})$")
MINUTES_PER_DAY = 24 * 60

Period = Tuple[datetime, datetime]


def parse_hhmm(value: Any) -> Optional[int]:
    """Convert ``"HH:MM"`` to minutes after midnight; ``24:00`` is accepted as end of day."""
    if value is None:
        return None
    match = _HHMM.match(str(value).strip())
    if not match:
        return None
    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    if minute > 59 or hour > 24 or (hour == 24 and minute):
        return None
    return hour * 60 + minute


def _parse_weekday(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        weekday = int(value)
    except (TypeError, ValueError):
        return None
    return weekday if 0 <= weekday <= 6 else None


def _is_enabled(entry: Mapping[str, Any]) -> bool:
    for flag in ("enabled", "available"):
        if flag in entry and not entry[flag]:
            return False
    return True


def _parse_slots(entries: Iterable[Any]) -> Tuple[ScheduleSlot, ...]:
    slots: List[ScheduleSlot] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise ValueError(f"weekly entry must be an object, got {type(entry).__name__}")
        if not _is_enabled(entry):
            continue
        hours = entry.get("timeSlot")
        if not isinstance(hours, Mapping):
            hours = entry
        weekday = _parse_weekday(entry.get("weekday"))
        start = parse_hhmm(hours.get("start"))
        end = parse_hhmm(hours.get("end"))
        if weekday is None or start is None or end is None:
            raise ValueError(f"invalid weekly entry: {dict(entry)!r}")
        slots.append(ScheduleSlot(weekday=weekday, start_minute=start % MINUTES_PER_DAY, end_minute=end))
    return tuple(slots)


def _parse_moment(value: Any, *, is_end: bool, tz: Optional[tzinfo] = None) -> datetime:
    """Parse an ISO date or datetime into a naive wall-clock datetime.

    Offset-aware values are converted to ``tz`` first; without ``tz`` their own
    wall clock is kept.
    """
    text = str(value).strip()
    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        moment = None
    if moment is None or (len(text) == 10 and is_end):
        # Date-only ends cover the whole last day.
        day = date.fromisoformat(text[:10])
        moment = datetime.combine(day, datetime.min.time())
        if is_end:
            moment += timedelta(days=1)
    if moment.tzinfo is not None and tz is not None:
        moment = moment.astimezone(tz)
    return moment.replace(tzinfo=None)


def _parse_period(entry: Any, tz: Optional[tzinfo]) -> Optional[Period]:
    start = _parse_moment(entry["start"], is_end=False, tz=tz)
    end = _parse_moment(entry["end"], is_end=True, tz=tz)
    if end <= start:
        logger.debug("Ignoring empty period %s -> %s", start, end)
        return None
    return start, end


def _parse_pause(raw: Any, tz: Optional[tzinfo]) -> Optional[Period]:
    if not raw:
        return None
    if not isinstance(raw, Mapping):
        raise ValueError("pause must be an object")
    if not raw.get("start") or not raw.get("end"):
        # The editor saves an enabled pause with empty dates; treat it as no pause.
        return None
    return _parse_period(raw, tz)


def _parse_absences(entries: Any, tz: Optional[tzinfo]) -> Tuple[Period, ...]:
    if not entries:
        return ()
    if not isinstance(entries, list):
        raise ValueError("absences must be a list")
    absences = []
    for entry in entries:
        if not isinstance(entry, Mapping) or not entry.get("start") or not entry.get("end"):
            raise ValueError(f"invalid absence: {entry!r}")
        period = _parse_period(entry, tz)
        if period is not None:
            absences.append(period)
    return tuple(sorted(absences))


def parse_schedule(raw: Any, tz: Optional[tzinfo] = None) -> DecodeResult[WeeklySchedule]:
    """Decode a stored agenda; ``ok`` is False when the blob is present but malformed.

    Pause and absence bounds carrying an offset are converted to ``tz`` before
    being compared with the wall clock.
    """
    if raw is None:
        return DecodeResult(WeeklySchedule())
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return DecodeResult(WeeklySchedule())
        try:
            raw = json.loads(text)
        except ValueError as exc:
            return DecodeResult(WeeklySchedule(), ok=False, error=f"schedule is not valid JSON: {exc}")
        if raw is None:
            return DecodeResult(WeeklySchedule())

    try:
        if isinstance(raw, list):
            return DecodeResult(WeeklySchedule(slots=_parse_slots(raw)))
        if isinstance(raw, Mapping):
            weekly = raw.get("weekly") or []
            if not isinstance(weekly, list):
                raise ValueError("weekly must be a list")
            return DecodeResult(
                WeeklySchedule(
                    slots=_parse_slots(weekly),
                    pause=_parse_pause(raw.get("pause"), tz),
                    absences=_parse_absences(raw.get("absences"), tz),
                )
            )
    except ValueError as exc:
        return DecodeResult(WeeklySchedule(), ok=False, error=str(exc))

    return DecodeResult(WeeklySchedule(), ok=False, error=f"unsupported schedule encoding: {type(raw).__name__}")
