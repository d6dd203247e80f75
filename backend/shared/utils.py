from datetime import datetime, timezone
from dateutil import parser as date_parser


def utcnow() -> datetime:
    """Current time as an aware UTC datetime, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def parse_timestamp(value: str | datetime | int | float | None) -> datetime | None:
    """Parse a timestamp from the store or a caller into an aware UTC datetime.

    Accepts datetimes, unix timestamps and any string dateutil understands.
    Naive values are taken to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, (int, float)):
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        else:
            dt = date_parser.parse(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).replace(microsecond=0)
    except (ValueError, OverflowError, TypeError):
        return None


def format_timestamp(value: datetime) -> str:
    """Format a datetime for storage (ISO 8601, UTC, second precision)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def print_summary(sent: int, skipped: int, failed: int) -> None:
    """Print dispatch summary."""
    print(f"\n{'=' * 60}")
    print(f"[{datetime.now()}] Notification Run Complete!")
    print(f"{'=' * 60}")
    print(f"✓ Sent:    {sent}")
    print(f"⊘ Skipped: {skipped}")
    print(f"✗ Failed:  {failed}")
    print(f"{'=' * 60}\n")
