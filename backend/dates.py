"""
Due-date expressions.

resolve() tries each grammar in order and returns the first hit:

    today                    -> today 23:59:59
    tomorrow                 -> tomorrow at the default hour (12:00)
    today|tomorrow [at] 5pm  -> that day at the given time
    M/D[/YYYY]               -> that date at the default hour
    YYYY-MM-DD[THH:MM[:SS]]  -> ISO date (default hour) or timestamp

A message with no Due: label uses default_due(), which is the same as
"today". Results keep the tzinfo of `now`.
"""
import calendar
import re
from datetime import datetime, timedelta
from typing import Callable, Optional

from config import settings
from models import Repeat

END_OF_DAY = {"hour": 23, "minute": 59, "second": 59, "microsecond": 0}

_DAY_WORDS = {"today": 0, "tomorrow": 1}
_DAY_AT_TIME = re.compile(
    r"^(today|tomorrow)(?:\s+at)?\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)?$"
)
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{4}))?$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Grammar = Callable[[str, datetime], Optional[datetime]]


def _at_default_hour(day: datetime) -> datetime:
    return day.replace(hour=settings.DEFAULT_DUE_HOUR, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime) -> datetime:
    return moment.replace(**END_OF_DAY)


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def default_due(now: datetime) -> datetime:
    """Due date for a task created without a Due: label."""
    return end_of_day(now)


def _to_24h(hour: int, ampm: Optional[str]) -> Optional[int]:
    if ampm is None:
        return hour if 0 <= hour <= 23 else None
    if not 1 <= hour <= 12:
        return None
    if ampm == "am":
        return 0 if hour == 12 else hour
    return hour if hour == 12 else hour + 12


def match_today(fragment: str, now: datetime) -> Optional[datetime]:
    if fragment == "today":
        return end_of_day(now)
    return None


def match_tomorrow(fragment: str, now: datetime) -> Optional[datetime]:
    if fragment == "tomorrow":
        return _at_default_hour(now + timedelta(days=1))
    return None


def match_day_at_time(fragment: str, now: datetime) -> Optional[datetime]:
    m = _DAY_AT_TIME.match(fragment)
    if not m:
        return None
    day_word, hour_text, minute_text, ampm = m.groups()
    hour = _to_24h(int(hour_text), ampm)
    minute = int(minute_text) if minute_text else 0
    if hour is None or minute > 59:
        return None
    day = now + timedelta(days=_DAY_WORDS[day_word])
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def match_slash_date(fragment: str, now: datetime) -> Optional[datetime]:
    m = _SLASH_DATE.match(fragment)
    if not m:
        return None
    month, day = int(m.group(1)), int(m.group(2))
    year = int(m.group(3)) if m.group(3) else now.year
    try:
        return now.replace(
            year=year, month=month, day=day,
            hour=settings.DEFAULT_DUE_HOUR, minute=0, second=0, microsecond=0,
        )
    except ValueError:
        # 13/40, 02/30, 02/29 outside a leap year
        return None


def match_iso(fragment: str, now: datetime) -> Optional[datetime]:
    if not fragment[:1].isdigit() or "-" not in fragment:
        return None
    try:
        parsed = datetime.fromisoformat(fragment.upper())
        if _ISO_DATE.match(fragment):
            parsed = _at_default_hour(parsed)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=now.tzinfo)
        if now.tzinfo is not None:
            return parsed.astimezone(now.tzinfo)
        return parsed
    except (ValueError, OverflowError):
        # malformed, or shifted past year 1 or 9999
        return None


GRAMMARS: tuple[Grammar, ...] = (
    match_today,
    match_tomorrow,
    match_day_at_time,
    match_slash_date,
    match_iso,
)


def resolve(fragment: Optional[str], now: datetime) -> Optional[datetime]:
    """Resolve a due-date fragment against `now`. Never raises.

    Returns None for an empty fragment or one no grammar recognizes; the
    caller decides what that means.
    """
    if not fragment or not fragment.strip():
        return None
    text = " ".join(fragment.strip().lower().split())
    for grammar in GRAMMARS:
        try:
            result = grammar(text, now)
        except OverflowError:
            # "tomorrow" on the last day of year 9999
            continue
        if result is not None:
            return result
    return None


def _add_months(moment: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_occurrence(due: datetime, repeat: Repeat) -> Optional[datetime]:
    """Next due date for a repeating task.

    None when it does not repeat, or when the next date would fall after
    year 9999.
    """
    try:
        if repeat == Repeat.DAILY:
            return due + timedelta(days=1)
        if repeat == Repeat.WEEKLY:
            return due + timedelta(weeks=1)
        if repeat == Repeat.MONTHLY:
            return _add_months(due, 1)
        if repeat == Repeat.YEARLY:
            return _add_months(due, 12)
    except (ValueError, OverflowError):
        return None
    return None
