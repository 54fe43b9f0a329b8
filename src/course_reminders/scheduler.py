"""Reminder firing: when does a rule fire for a session, and is that now?

A rule fires days_before days and hours_before hours ahead of a session's
end instant. The cron job that drives dispatch runs every few minutes, so
"now" is matched against a closed window of +/- FIRING_TOLERANCE around the
fire instant. The tolerance has to be at least the cron cadence or firings
are missed; overlapping windows between runs are handled by the dedup gate.
"""

from datetime import datetime, timedelta

from course_reminders.models import Course, ReminderRule, Session
from course_reminders.progress import session_end
from course_reminders.sessions import iter_sessions
from course_reminders.timeutils import to_org_time

FIRING_TOLERANCE = timedelta(minutes=5)


def fire_instant(rule: ReminderRule, session: Session) -> datetime | None:
    """Instant at which *rule* should fire for *session*, or None if malformed."""
    end = session_end(session)
    if end is None:
        return None
    return end - timedelta(days=rule.days_before, hours=rule.hours_before)


def should_fire_now(
    rule: ReminderRule,
    session: Session,
    now: datetime,
    tolerance: timedelta = FIRING_TOLERANCE,
) -> bool:
    """True iff |now - fire instant| <= tolerance."""
    fire_at = fire_instant(rule, session)
    if fire_at is None:
        return False
    return abs(to_org_time(now) - fire_at) <= tolerance


def due_sessions(
    rule: ReminderRule,
    course: Course,
    now: datetime,
    tolerance: timedelta = FIRING_TOLERANCE,
) -> list[Session]:
    """Sessions of *course* whose fire window for *rule* contains *now*.

    Each session is tested on its own fire instant. Sessions that already
    ended have fire windows in the past and drop out by themselves.
    """
    if not rule.enabled:
        return []
    return [s for s in iter_sessions(course) if should_fire_now(rule, s, now, tolerance)]
