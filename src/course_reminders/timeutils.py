"""Date and time helpers anchored to the organisation's UTC+8 civil calendar.

Course records carry plain "YYYY-MM-DD" / "HH:MM[:SS]" strings. Everything
that turns them into instants goes through here, so the host time zone never
leaks into session arithmetic. Parsers return None on malformed input.
"""

from datetime import date, datetime, time, timedelta, timezone

# Hong Kong time, no DST
ORG_TZ = timezone(timedelta(hours=8))

END_OF_DAY = "23:59:59"

_TIME_FORMATS = ("%H:%M:%S", "%H:%M")


def parse_date(value: str | None) -> date | None:
    """Parse a YYYY-MM-DD string, returning None if it is not one."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def parse_time(value: str | None) -> time | None:
    """Parse HH:MM or HH:MM:SS, returning None if it is neither."""
    if not value:
        return None
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    return None


def resolve_end_time(end_time: str | None, start_time: str | None) -> str:
    """End of a session: end_time, else start_time, else end of day."""
    return end_time or start_time or END_OF_DAY


def session_end_instant(session_date: date, end_time: str | None, start_time: str | None) -> datetime | None:
    """Aware datetime (UTC+8) at which a session ends, or None if unparseable."""
    t = parse_time(resolve_end_time(end_time, start_time))
    if t is None:
        return None
    return datetime.combine(session_date, t, tzinfo=ORG_TZ)


def to_org_time(moment: datetime) -> datetime:
    """Convert to UTC+8. Naive datetimes are taken as UTC+8 wall clock time."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=ORG_TZ)
    return moment.astimezone(ORG_TZ)


def now_org() -> datetime:
    return datetime.now(ORG_TZ)


def to_sunday_first(d: date) -> int:
    """Weekday index with Sunday=0 .. Saturday=6 (Python's weekday() is Monday=0)."""
    return (d.weekday() + 1) % 7


def format_date_ddmmyyyy(iso_date: str | date | None) -> str:
    """Convert "2026-03-01" to "01/03/2026"; anything not Y-M-D is returned as is."""
    if not iso_date:
        return ""
    if isinstance(iso_date, date):
        return iso_date.strftime("%d/%m/%Y")
    parts = iso_date.split("-")
    if len(parts) != 3:
        return iso_date
    return f"{parts[2]}/{parts[1]}/{parts[0]}"
