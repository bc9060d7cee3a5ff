def format_distance(km: float) -> str:
    """
    Format kilometers for display.
    Example: 0.85 -> '850m', 3.24 -> '3.2km'
    """
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"


def format_duration(minutes: float) -> str:
    """
    Format minutes for display.
    Example: 45 -> '45min', 90 -> '1h 30m', 120 -> '2h'
    """
    if minutes < 60:
        return f"{round(minutes)}min"
    hours = int(minutes // 60)
    mins = round(minutes % 60)
    return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"


def format_long_date(dt) -> str:
    """Format a datetime as 'Saturday, May 4, 2024'."""
    return f"{dt.strftime('%A')}, {dt.strftime('%B')} {dt.day}, {dt.year}"


def ensure_utc(dt):
    """Attach UTC to naive datetimes; leave aware ones untouched."""
    from datetime import timezone

    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_local_datetime(dt, tz_name: str | None = None):
    """Convert a datetime from source tz (assume UTC if naive) to local or given tz.

    - If `tz_name` is 'local' or None: use system local timezone.
    - If `tz_name` is IANA tz name (e.g., 'America/New_York'): use that.
    - If `dt` has no tzinfo, assume UTC.
    """
    dt = ensure_utc(dt)
    if tz_name and tz_name != "local":
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            return dt.astimezone(ZoneInfo(tz_name))
        except ZoneInfoNotFoundError:
            return dt.astimezone()
    return dt.astimezone()
