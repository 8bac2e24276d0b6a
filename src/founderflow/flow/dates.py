"""
Date Extraction

Finds natural-language date and time phrases in free text and resolves them
against a reference time. Each match reports its character span and whether
an hour was given explicitly, so callers can apply their own default time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional, Tuple

from founderflow.utils.logging import get_logger

logger = get_logger(__name__)

WEEKDAYS = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1, "tues": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3, "thur": 3, "thurs": 3,
    "friday": 4, "fri": 4,
    "saturday": 5,
    "sunday": 6,
}

MONTHS = {
    "january": 1, "jan": 1, "february": 2, "feb": 2, "march": 3, "mar": 3,
    "april": 4, "apr": 4, "may": 5, "june": 6, "jun": 6, "july": 7, "jul": 7,
    "august": 8, "aug": 8, "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10, "november": 11, "nov": 11, "december": 12, "dec": 12,
}

# Named parts of the day (hour)
DAYPARTS = {"morning": 9, "afternoon": 14, "evening": 18}
TONIGHT_HOUR = 20

NUMBER_WORDS = {"a": 1, "an": 1, "one": 1, "two": 2, "three": 3}

# Longer alternatives first so "monday" wins over "mon"
_WEEKDAY = (
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|tues|thurs|thur|mon|tue|wed|thu|fri"
)
_MONTH = (
    r"january|february|march|april|may|june|july|august|september|october"
    r"|november|december|sept|jan|feb|mar|apr|jun|jul|aug|sep|oct|nov|dec"
)
_ORDINAL = r"(?:st|nd|rd|th)?"

_DAY = (
    r"today|tonight|tomorrow|tmrw|tmr"
    r"|this\s+(?:morning|afternoon|evening)"
    r"|next\s+week"
    rf"|(?:next|this)\s+(?:{_WEEKDAY})|(?:{_WEEKDAY})"
    r"|in\s+half\s+an\s+hour"
    r"|in\s+(?:\d+|an?|one|two|three)\s+(?:minutes?|mins?|hours?|hrs?|days?|weeks?)"
    rf"|(?:{_MONTH})\.?\s+\d{{1,2}}{_ORDINAL}(?:,?\s+\d{{4}})?"
    rf"|\d{{1,2}}{_ORDINAL}\s+(?:{_MONTH})(?:\s+\d{{4}})?"
    r"|\d{4}-\d{2}-\d{2}"
    r"|\d{1,2}/\d{1,2}(?:/\d{2,4})?"
)
_TIME = r"\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.)|\d{1,2}:\d{2}|noon|midnight"

# A day phrase with an optional trailing time, or a time with an optional
# trailing day phrase. Gaps are short so masked tokens are not bridged.
DATE_EXPRESSION = re.compile(
    rf"(?<![\w/.-])"
    rf"(?:(?P<day>{_DAY})(?:\s{{1,3}}(?:at\s+)?(?P<time>{_TIME}))?"
    rf"|(?:at\s+)?(?P<lead_time>{_TIME})(?:\s{{1,3}}(?P<trail_day>{_DAY}))?)"
    rf"(?![\w/:])",
    re.IGNORECASE,
)

_RELATIVE = re.compile(
    r"in\s+(?P<count>\d+|an?|one|two|three)\s+(?P<unit>minute|min|hour|hr|day|week)s?",
    re.IGNORECASE,
)
_MONTH_FIRST = re.compile(
    rf"(?P<month>{_MONTH})\.?\s+(?P<day>\d{{1,2}}){_ORDINAL}(?:,?\s+(?P<year>\d{{4}}))?",
    re.IGNORECASE,
)
_DAY_FIRST = re.compile(
    rf"(?P<day>\d{{1,2}}){_ORDINAL}\s+(?P<month>{_MONTH})(?:\s+(?P<year>\d{{4}}))?",
    re.IGNORECASE,
)
_ISO = re.compile(r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})")
_SLASHED = re.compile(r"(?P<month>\d{1,2})/(?P<day>\d{1,2})(?:/(?P<year>\d{2,4}))?")
_CLOCK = re.compile(
    r"(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridiem>am|pm|a\.m\.|p\.m\.)?",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class DateMatch:
    """A resolved date phrase."""
    start: int
    end: int
    text: str
    value: datetime
    has_time: bool


class DateExtractor:
    """
    Regex-driven date/time recognizer.

    Dates resolve forward: a weekday means the next such day, a month/day
    without a year that already passed means next year, and a bare time
    that already passed today means tomorrow.
    """

    def extract(self, text: str, now: Optional[datetime] = None) -> list[DateMatch]:
        """All date phrases in text, left to right, non-overlapping."""
        return list(self.iter_matches(text, now or datetime.now()))

    def iter_matches(self, text: str, now: datetime) -> Iterator[DateMatch]:
        for match in DATE_EXPRESSION.finditer(text):
            day_text = match.group("day") or match.group("trail_day")
            time_text = match.group("time") or match.group("lead_time")
            try:
                resolved = self._resolve(day_text, time_text, now)
            except (ValueError, OverflowError) as e:
                # e.g. "Feb 30", "25:00" or an offset past year 9999
                logger.debug("date_phrase_rejected", text=match.group(0), error=str(e))
                continue
            if resolved is None:
                continue
            value, has_time = resolved
            yield DateMatch(
                start=match.start(),
                end=match.end(),
                text=match.group(0),
                value=value,
                has_time=has_time,
            )

    def _resolve(
        self, day_text: Optional[str], time_text: Optional[str], now: datetime
    ) -> Optional[Tuple[datetime, bool]]:
        clock = self._parse_clock(time_text) if time_text else None

        if day_text is None:
            if clock is None:
                return None
            value = datetime.combine(now.date(), clock)
            if value < now:
                value += timedelta(days=1)
            return value, True

        day = self._parse_day(" ".join(day_text.lower().split()), now)
        if day is None:
            return None
        value, has_time = day

        if clock is not None:
            return datetime.combine(value.date(), clock), True
        return value, has_time

    def _parse_day(self, phrase: str, now: datetime) -> Optional[Tuple[datetime, bool]]:
        """Resolve a normalized day phrase to (datetime, hour_is_explicit)."""
        midnight = datetime.combine(now.date(), time())

        if phrase == "today":
            return midnight, False
        if phrase == "tonight":
            return midnight.replace(hour=TONIGHT_HOUR), True
        if phrase in ("tomorrow", "tmrw", "tmr"):
            return midnight + timedelta(days=1), False
        if phrase == "next week":
            return midnight + timedelta(weeks=1), False
        if phrase == "in half an hour":
            return now + timedelta(minutes=30), True

        if phrase.startswith("this ") and phrase[5:] in DAYPARTS:
            hour = DAYPARTS[phrase[5:]]
            if phrase == "this morning" and now.hour >= 12:
                # Past noon, "this morning" can only mean tomorrow morning
                return (midnight + timedelta(days=1)).replace(hour=hour), True
            return midnight.replace(hour=hour), True

        words = phrase.split()
        if words[-1] in WEEKDAYS:
            modifier = words[0] if len(words) == 2 else None
            return midnight + timedelta(days=self._days_until(now, WEEKDAYS[words[-1]], modifier)), False

        relative = _RELATIVE.fullmatch(phrase)
        if relative:
            return self._relative(relative, now)

        calendar = (
            _MONTH_FIRST.fullmatch(phrase)
            or _DAY_FIRST.fullmatch(phrase)
            or _ISO.fullmatch(phrase)
            or _SLASHED.fullmatch(phrase)
        )
        if calendar:
            return self._calendar_date(calendar, now), False

        return None

    def _days_until(self, now: datetime, target: int, modifier: Optional[str]) -> int:
        current = now.weekday()
        if modifier == "this":
            return (target - current) % 7
        if modifier == "next":
            # The occurrence in the following Monday-based week
            return (7 - current) + target
        days_ahead = target - current
        if days_ahead <= 0:
            days_ahead += 7
        return days_ahead

    def _relative(self, match: re.Match, now: datetime) -> Tuple[datetime, bool]:
        raw = match.group("count").lower()
        count = int(raw) if raw.isdigit() else NUMBER_WORDS[raw]
        unit = match.group("unit").lower()

        if unit in ("minute", "min"):
            return now + timedelta(minutes=count), True
        if unit in ("hour", "hr"):
            return now + timedelta(hours=count), True

        days = count * 7 if unit == "week" else count
        return datetime.combine(now.date(), time()) + timedelta(days=days), False

    def _calendar_date(self, match: re.Match, now: datetime) -> datetime:
        month_raw = match.group("month")
        month = int(month_raw) if month_raw.isdigit() else MONTHS[month_raw.lower().rstrip(".")]
        day = int(match.group("day"))
        year_raw = match.group("year")

        if year_raw:
            year = int(year_raw)
            if year < 100:
                year += 2000
            return datetime(year, month, day)

        candidate = datetime(now.year, month, day)
        if candidate.date() < now.date():
            candidate = datetime(now.year + 1, month, day)
        return candidate

    def _parse_clock(self, text: str) -> time:
        """Parse '3pm', '3:30 p.m.', '15:00', 'noon' or 'midnight'."""
        lowered = text.lower().strip()
        if lowered == "noon":
            return time(12, 0)
        if lowered == "midnight":
            return time(0, 0)

        match = _CLOCK.fullmatch(lowered)
        if not match:
            raise ValueError(f"not a time: {text!r}")

        hour = int(match.group("hour"))
        minute = int(match.group("minute") or 0)
        meridiem = (match.group("meridiem") or "").replace(".", "")

        if meridiem:
            if not 1 <= hour <= 12:
                raise ValueError(f"hour out of range for {meridiem}: {hour}")
            if meridiem == "pm" and hour < 12:
                hour += 12
            elif meridiem == "am" and hour == 12:
                hour = 0

        return time(hour, minute)
