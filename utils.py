"""Utility functions for money rounding, date parsing and transaction filtering."""
import datetime as dt
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

CENT = Decimal("0.01")


def round_money(dec: Decimal) -> float:
    """Round a Decimal to 2 decimal places with HALF_UP (normal money rounding)."""
    return float(dec.quantize(CENT, rounding=ROUND_HALF_UP))


def to_decimal(value: Any) -> Decimal:
    """Coerce a wire amount to Decimal; anything unusable counts as zero."""
    if isinstance(value, bool) or value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        dec = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return dec if dec.is_finite() else Decimal("0")


def format_money(value: Any) -> str:
    """Format an amount as "$12.50"."""
    return f"${to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)}"


def normalize_iso_date(value: Any) -> dt.date:
    """Normalize a value to a date or raise a ValueError."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value

    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise ValueError("Invalid date format. Expected YYYY-MM-DD.")

    raise ValueError("Invalid date format. Expected YYYY-MM-DD.")


def parse_timestamp(value: Any) -> Optional[dt.datetime]:
    """Parse an ISO timestamp from the server, or return None.

    Timezone-aware values are converted to local time so that the calendar
    day they fall on matches what the user sees.
    """
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def to_calendar_date(value: Any) -> Optional[dt.date]:
    """Lenient date normalization: timestamps become their local calendar day."""
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return value
    parsed = parse_timestamp(value)
    return parsed.date() if parsed else None


def month_key(day: dt.date) -> str:
    """"YYYY-MM" for a date."""
    return f"{day.year:04d}-{day.month:02d}"


def filter_transactions(
    transactions: Iterable[Any],
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
    query: Optional[str] = None,
    tx_type: Optional[str] = None,
) -> list:
    """Filter transactions by date range, text query, and type."""
    q = (query or "").strip().lower()
    results = []

    for t in transactions:

        if tx_type and t.type != tx_type:
            continue

        if isinstance(t.date, dt.date):
            if date_from and t.date < date_from:
                continue
            if date_to and t.date > date_to:
                continue
        elif date_from or date_to:
            continue

        if q:
            note = (t.note or "").lower()
            category = (t.category or "").lower()
            if q not in note and q not in category:
                continue

        results.append(t)

    return results
