"""Date arithmetic shared by schedule generation, previews and snapshots."""

from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

# Summary fields (warranty_end_date, next_service_date) count a month as 30 days.
DAYS_PER_FIXED_MONTH = 30


def add_months(anchor: date, months: int) -> date:
    """Calendar-month addition. Jan 31 + 1 month clamps to the end of February."""
    return anchor + relativedelta(months=months)


def add_fixed_months(anchor: date, months: int) -> date:
    """Add months as fixed 30-day blocks."""
    return anchor + timedelta(days=months * DAYS_PER_FIXED_MONTH)


def parse_date(value) -> date | None:
    """Coerce a date, datetime or ISO string (date or timestamp) to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
