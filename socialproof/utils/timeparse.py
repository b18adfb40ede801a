"""
Timestamp and duration parsing for scraped data.

Scrapers return dates in whatever shape the upstream page rendered: ISO-8601
strings, epoch seconds or milliseconds, or relative text such as
"6 days ago". All timestamps produced here are naive UTC datetimes, matching
the columns in the store.

Unparsable input never aborts a sync. Timestamps fall back to "now" and
durations to 0, and the miss is logged.
"""
import calendar
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

_RELATIVE_PATTERN = re.compile(
    r"(\d+)\s*(second|sec|minute|min|hour|hr|day|week|month|year)s?\s+ago"
)
_ISO_DURATION_PATTERN = re.compile(
    r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?$"
)

# Epoch values above this are milliseconds (year 33658 in seconds)
_EPOCH_MS_THRESHOLD = 10 ** 12


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _shift_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 - months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _from_epoch(value: float) -> datetime:
    if value > _EPOCH_MS_THRESHOLD:
        value = value / 1000.0
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


def parse_relative_time(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse "<n> <unit>(s) ago" anywhere in ``text``; None if absent."""
    now = now or utcnow()
    match = _RELATIVE_PATTERN.search(text.lower())
    if not match:
        return None

    amount = int(match.group(1))
    unit = match.group(2)
    if unit in ("second", "sec"):
        return now - timedelta(seconds=amount)
    if unit in ("minute", "min"):
        return now - timedelta(minutes=amount)
    if unit in ("hour", "hr"):
        return now - timedelta(hours=amount)
    if unit == "day":
        return now - timedelta(days=amount)
    if unit == "week":
        return now - timedelta(weeks=amount)
    if unit == "month":
        return _shift_months(now, amount)
    return _shift_months(now, amount * 12)


def parse_timestamp(value: Any, now: Optional[datetime] = None) -> datetime:
    """
    Convert a scraped timestamp into a naive UTC datetime.

    Accepts datetimes, epoch seconds/milliseconds (int, float or digit
    strings), ISO-8601 strings (with or without a trailing ``Z``), Twitter's
    legacy ``"Wed Oct 10 20:19:24 +0000 2018"`` format and relative text
    like ``"6 days ago"`` or ``"Streamed 2 weeks ago"``.
    """
    now = now or utcnow()

    if value is None or value == "":
        logger.warning("[timeparse] Parse miss: empty timestamp, using current time")
        return now
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, bool):
        logger.warning("[timeparse] Parse miss: %r, using current time", value)
        return now
    if isinstance(value, (int, float)):
        try:
            return _from_epoch(float(value))
        except (OverflowError, OSError, ValueError):
            logger.warning("[timeparse] Parse miss: epoch %r out of range, using current time", value)
            return now

    text = str(value).strip()
    if text.isdigit():
        return parse_timestamp(int(text), now=now)

    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return to_naive_utc(datetime.fromisoformat(iso_text))
    except ValueError:
        pass

    try:
        return to_naive_utc(datetime.strptime(text, "%a %b %d %H:%M:%S %z %Y"))
    except ValueError:
        pass

    relative = parse_relative_time(text, now=now)
    if relative is not None:
        return relative

    logger.warning("[timeparse] Parse miss: could not parse date %r, using current time", text)
    return now


def parse_duration(value: Any) -> int:
    """
    Convert a duration into whole seconds.

    Supports plain numbers (seconds), ``"MM:SS"``, ``"HH:MM:SS"`` and
    ISO-8601 ``"PT1H2M3S"``. Anything else is 0.
    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)

    text = str(value).strip().upper()
    if text.isdigit():
        return int(text)

    if text.startswith("P"):
        match = _ISO_DURATION_PATTERN.match(text)
        if match:
            days, hours, minutes, seconds = (float(group or 0) for group in match.groups())
            return int(days * 86400 + hours * 3600 + minutes * 60 + seconds)
        logger.warning("[timeparse] Parse miss: bad ISO duration %r", value)
        return 0

    parts = text.split(":")
    if len(parts) in (2, 3) and all(part.isdigit() for part in parts):
        numbers = [int(part) for part in parts]
        if len(numbers) == 3:
            return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
        return numbers[0] * 60 + numbers[1]

    logger.warning("[timeparse] Parse miss: could not parse duration %r", value)
    return 0
