"""Recurring-session scheduling and WhatsApp reminder engine for tutoring courses.

Expands course recurrence rules into sessions, derives course progress from
the clock, and decides which reminders are due each cron cycle.
"""

from course_reminders.dispatch import ReminderDispatcher
from course_reminders.models import Course, MessageTemplate, ReminderRule, Session, Student
from course_reminders.progress import completed_count, is_expired, next_session_date
from course_reminders.render import render
from course_reminders.scheduler import FIRING_TOLERANCE, fire_instant, should_fire_now
from course_reminders.sessions import expand_sessions

__all__ = [
    "Course",
    "FIRING_TOLERANCE",
    "MessageTemplate",
    "ReminderDispatcher",
    "ReminderRule",
    "Session",
    "Student",
    "completed_count",
    "expand_sessions",
    "fire_instant",
    "is_expired",
    "next_session_date",
    "render",
    "should_fire_now",
]
