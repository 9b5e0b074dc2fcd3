from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

# Monday..Saturday are collection days
COLLECTION_DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


def money(x) -> Decimal:
    """Always return 2-decimal Decimal with HALF_UP rounding."""
    if x is None:
        x = 0
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def week_start_of(d: date) -> date:
    """Monday of the week containing d."""
    return d - timedelta(days=d.weekday())


def day_name(d: date) -> str:
    return d.strftime("%A").lower()


def normalize_day(day: str) -> str:
    """
    Case-insensitive day name -> column prefix.

    Raises ValueError for Sunday or anything that is not a weekday name.
    """
    key = (day or "").strip().lower()
    if key not in COLLECTION_DAYS:
        raise ValueError(f"Invalid collection day: {day!r} (expected Monday..Saturday)")
    return key


def collection_dates(start: date, duration_days: int) -> list[date]:
    """
    Returns `duration_days` collection dates starting at `start`.

    Sundays are skipped, so a start on Sunday rolls to Monday.

    Example:
      start=Fri 2024-03-01, duration_days=3 => Fri 03-01, Sat 03-02, Mon 03-04
    """
    days = int(duration_days)
    if days <= 0:
        raise ValueError("duration_days must be > 0")

    out = []
    d = start
    while len(out) < days:
        if d.weekday() != 6:
            out.append(d)
        d += timedelta(days=1)
    return out


def expected_total(daily_payment, duration_days: int) -> Decimal:
    """Total repayable when every scheduled collection is made."""
    return money(money(daily_payment) * int(duration_days))
