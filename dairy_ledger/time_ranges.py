# dairy_ledger/time_ranges.py
"""
UTC date ranges and trend windows for the report endpoints.

All ranges are closed on both ends: `end` is the last millisecond that still
belongs to the range. Instants are naive datetimes in UTC, which is how the
database stores them.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

WEEKLY = "weekly"
MONTHLY = "monthly"
YEARLY = "yearly"

TREND_PERIOD_LABELS = {
    WEEKLY: "Weekly",
    MONTHLY: "Monthly",
    YEARLY: "Yearly",
}

DEFAULT_TREND_PERIOD = WEEKLY

DAY = "day"
MONTH = "month"

ONE_MS = timedelta(milliseconds=1)


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class MonthRange:
    year: int
    month: int
    start: datetime
    end: datetime


@dataclass(frozen=True)
class TrendWindow:
    period: str
    label: str
    unit: str
    length: int
    start: datetime
    end: datetime

    def bucket_start(self, index: int) -> datetime:
        if self.unit == MONTH:
            return shift_months(self.start, index)
        return self.start + timedelta(days=index)

    def format_label(self, instant: datetime) -> str:
        if self.unit == MONTH:
            return instant.strftime("%b")
        return f"{instant.day} {instant:%b}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc(instant: datetime) -> datetime:
    """
    Converts aware datetimes to naive UTC; naive ones are already UTC.

    Instants are truncated to whole milliseconds, the resolution ranges close on.
    """
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
    return instant.replace(microsecond=instant.microsecond // 1000 * 1000)


def bucket_key(instant: datetime, unit: str) -> str:
    instant = to_utc(instant)
    if unit == MONTH:
        return f"{instant.year:04d}-{instant.month:02d}"
    return instant.strftime("%Y-%m-%d")


def shift_months(instant: datetime, months: int) -> datetime:
    """Moves a first-of-month instant by whole calendar months."""
    index = instant.year * 12 + (instant.month - 1) + months
    return instant.replace(year=index // 12, month=index % 12 + 1, day=1)


def _coerce_int(value) -> Optional[int]:
    """Parses whole numbers, including forms like "3.0"; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    return int(number)


def normalize_trend_period(period) -> str:
    """Unknown or missing periods fall back to weekly."""
    normalized = str(period or "").strip().lower()
    if normalized in TREND_PERIOD_LABELS:
        return normalized
    return DEFAULT_TREND_PERIOD


def normalize_year_month(year=None, month=None, now: Optional[datetime] = None) -> Tuple[int, int]:
    """
    Resolves report year/month query values.

    Missing, non-numeric or out-of-range values become the current UTC
    year or month independently of each other.
    """
    now = to_utc(now or utcnow())
    parsed_year = _coerce_int(year)
    parsed_month = _coerce_int(month)
    if parsed_year is None or not 1 <= parsed_year <= 9999:
        parsed_year = now.year
    if parsed_month is None or not 1 <= parsed_month <= 12:
        parsed_month = now.month
    return parsed_year, parsed_month


def day_range(reference: datetime) -> DateRange:
    reference = to_utc(reference)
    start = datetime(reference.year, reference.month, reference.day)
    return DateRange(start=start, end=start + timedelta(days=1) - ONE_MS)


def month_range(year=None, month=None, now: Optional[datetime] = None) -> MonthRange:
    normalized_year, normalized_month = normalize_year_month(year, month, now)
    start = datetime(normalized_year, normalized_month, 1)
    if normalized_year == 9999 and normalized_month == 12:
        end = datetime.max.replace(microsecond=999000)
    else:
        end = shift_months(start, 1) - ONE_MS
    return MonthRange(year=normalized_year, month=normalized_month, start=start, end=end)


def month_to_date(today: DateRange) -> DateRange:
    return DateRange(start=today.start.replace(day=1), end=today.end)


def year_to_date(today: DateRange) -> DateRange:
    return DateRange(start=today.start.replace(month=1, day=1), end=today.end)


def trend_window(period, today: DateRange) -> TrendWindow:
    normalized = normalize_trend_period(period)
    label = TREND_PERIOD_LABELS[normalized]

    if normalized == YEARLY:
        start = shift_months(today.start.replace(day=1), -11)
        return TrendWindow(normalized, label, MONTH, 12, start, today.end)

    length = 30 if normalized == MONTHLY else 7
    start = today.start - timedelta(days=length - 1)
    return TrendWindow(normalized, label, DAY, length, start, today.end)
