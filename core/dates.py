"""Calendar-day helpers for sync ranges and ledger timestamps.

Sync ranges are inclusive ``YYYY-MM-DD`` days in the business timezone.
The ledger wants epoch seconds; the import spreadsheets want dd/mm/yyyy.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Europe/Madrid"


def today(tz: str = DEFAULT_TIMEZONE) -> date:
    return datetime.now(ZoneInfo(tz)).date()


def days_ago(days: int, tz: str = DEFAULT_TIMEZONE) -> str:
    return (today(tz) - timedelta(days=days)).isoformat()


def yesterday(tz: str = DEFAULT_TIMEZONE) -> str:
    return days_ago(1, tz)


def default_range(days_back: int = 1, tz: str = DEFAULT_TIMEZONE) -> Tuple[str, str]:
    """``days_back`` days ago through yesterday."""
    return days_ago(days_back, tz), yesterday(tz)


def parse_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` day, raising ValueError on anything else."""
    return date.fromisoformat(value)


def day_bounds(date_from: str, date_to: str, tz: str = DEFAULT_TIMEZONE) -> Tuple[datetime, datetime]:
    """Aware datetimes covering ``date_from`` 00:00:00 to ``date_to`` 23:59:59."""
    zone = ZoneInfo(tz)
    start = datetime.combine(parse_day(date_from), time.min, tzinfo=zone)
    end = datetime.combine(parse_day(date_to), time(23, 59, 59), tzinfo=zone)
    return start, end


def localize(value: datetime, tz: str = DEFAULT_TIMEZONE) -> datetime:
    """Attach the business timezone to a naive datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(tz))
    return value


def to_epoch_seconds(value: datetime, tz: str = DEFAULT_TIMEZONE) -> int:
    """Epoch seconds for the ledger. Naive datetimes are read in ``tz``."""
    return int(localize(value, tz).timestamp())


def format_ledger_date(value: Optional[datetime], tz: str = DEFAULT_TIMEZONE) -> str:
    """dd/mm/yyyy in the business timezone, as the ledger's import sheets expect."""
    if value is None:
        return ""
    local = localize(value, tz).astimezone(ZoneInfo(tz))
    return local.strftime("%d/%m/%Y")
