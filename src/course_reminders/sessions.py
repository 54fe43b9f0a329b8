"""Session expansion: turn a course's recurrence rule into concrete sessions.

A recurring course is expanded by walking the calendar forward one day at a
time from its start date and keeping every day whose weekday is in the
course's recurring_days, until total_sessions sessions have been collected.
"""

from collections.abc import Iterator
from datetime import timedelta

from course_reminders.logging import get_logger
from course_reminders.models import Course, Session
from course_reminders.timeutils import parse_date, to_sunday_first

log = get_logger(__name__)

# Two years of calendar days. Reaching it means the course is under-scheduled.
MAX_SCAN_DAYS = 365 * 2


def iter_sessions(course: Course) -> Iterator[Session]:
    """Yield the sessions of *course* in ascending date order.

    Non-recurring courses yield exactly one session on start_date. A start
    date that cannot be parsed yields nothing.
    """
    start = parse_date(course.start_date)
    if start is None:
        log.warning("course_start_date_invalid", course_id=course.id, start_date=course.start_date)
        return

    if not course.is_recurring:
        yield Session(date=start, start_time=course.start_time, end_time=course.end_time)
        return

    emitted = 0
    current = start
    for _ in range(MAX_SCAN_DAYS):
        if emitted >= course.total_sessions:
            return
        if to_sunday_first(current) in course.recurring_days:
            yield Session(date=current, start_time=course.start_time, end_time=course.end_time)
            emitted += 1
        current += timedelta(days=1)

    if emitted < course.total_sessions:
        log.warning(
            "course_under_scheduled",
            course_id=course.id,
            requested=course.total_sessions,
            expanded=emitted,
            max_scan_days=MAX_SCAN_DAYS,
        )


def expand_sessions(course: Course) -> tuple[Session, ...]:
    """All sessions of *course*, ascending. Pure; safe to call repeatedly."""
    return tuple(iter_sessions(course))


class SessionPlan:
    """Restartable, lazily evaluated view over a course's sessions.

    Every iteration starts again from the course's start date, so a plan can
    be passed around and consumed more than once.
    """

    def __init__(self, course: Course) -> None:
        self.course = course

    def __iter__(self) -> Iterator[Session]:
        return iter_sessions(self.course)

    def __repr__(self) -> str:
        return f"SessionPlan(course_id={self.course.id!r}, total_sessions={self.course.total_sessions})"
