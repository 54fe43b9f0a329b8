"""Course progress derived from the clock.

completed_sessions on a Course is only a cache. The values computed here are
the source of truth; callers reconcile the cache whenever they read a course
(reconcile_completed_sessions), so a stale stored value is expected and is
corrected opportunistically rather than transactionally.
"""

from collections.abc import Iterable
from datetime import date, datetime

from course_reminders.logging import get_logger
from course_reminders.models import Course, Session
from course_reminders.sessions import expand_sessions, iter_sessions
from course_reminders.timeutils import session_end_instant, to_org_time

log = get_logger(__name__)


def session_end(session: Session) -> datetime | None:
    """End instant of *session* in UTC+8, or None if its times are malformed."""
    return session_end_instant(session.date, session.end_time, session.start_time)


def completed_count(course: Course, now: datetime) -> int:
    """Number of sessions whose end instant is strictly before *now*.

    Sessions with an unparseable end time never count as completed.
    """
    now = to_org_time(now)
    completed = 0
    for session in iter_sessions(course):
        end = session_end(session)
        if end is not None and end < now:
            completed += 1
    return max(0, min(completed, course.total_sessions))


def is_expired(course: Course, now: datetime) -> bool:
    """True once every session of the course has ended."""
    if course.is_recurring:
        return completed_count(course, now) == course.total_sessions

    sessions = expand_sessions(course)
    if not sessions:
        return False
    end = session_end(sessions[0])
    return end is not None and end < to_org_time(now)


def next_session_date(course: Course, now: datetime) -> date | None:
    """Date of the first session that has not ended yet.

    Returns None when every session is over; callers then fall back to the
    course's start_date for display.
    """
    now = to_org_time(now)
    for session in iter_sessions(course):
        end = session_end(session)
        if end is not None and end >= now:
            return session.date
    return None


def reconcile_completed_sessions(course: Course, now: datetime) -> Course:
    """Return *course* with completed_sessions brought up to date.

    The same object is returned when the cached value is already correct.
    """
    computed = completed_count(course, now)
    if computed == course.completed_sessions:
        return course
    log.info(
        "completed_sessions_reconciled",
        course_id=course.id,
        cached=course.completed_sessions,
        computed=computed,
    )
    return course.model_copy(update={"completed_sessions": computed})


def partition_courses(courses: Iterable[Course], now: datetime) -> tuple[list[Course], list[Course]]:
    """Split courses into (active, archived) by is_expired."""
    active: list[Course] = []
    archived: list[Course] = []
    for course in courses:
        (archived if is_expired(course, now) else active).append(course)
    return active, archived
