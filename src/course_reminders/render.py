"""Placeholder substitution for WhatsApp message templates."""

from collections.abc import Iterable

from course_reminders.models import Course, MessageTemplate, Session, Student
from course_reminders.timeutils import format_date_ddmmyyyy

STUDENT_NAME = "{{學生名}}"
COURSE_NAME = "{{課程名}}"
DATE = "{{日期}}"
TIME = "{{時間}}"
LOCATION = "{{地點}}"

PLACEHOLDERS = (STUDENT_NAME, COURSE_NAME, DATE, TIME, LOCATION)

WEEKDAY_LABELS = ["日", "一", "二", "三", "四", "五", "六"]


def render(
    template: MessageTemplate | str,
    course: Course,
    student: Student,
    session: Session | None = None,
) -> str:
    """Fill every placeholder occurrence in *template*.

    The date token shows the session's date when one is given (reminders for
    recurring courses), otherwise the course start date, as DD/MM/YYYY.
    Tokens that are not recognised are left untouched.
    """
    content = template.content if isinstance(template, MessageTemplate) else template
    if session is not None:
        date_text = format_date_ddmmyyyy(session.date)
        time_text = session.start_time
    else:
        date_text = format_date_ddmmyyyy(course.start_date)
        time_text = course.start_time

    values = {
        STUDENT_NAME: student.name,
        COURSE_NAME: course.name,
        DATE: date_text,
        TIME: time_text or "",
        LOCATION: course.location or "",
    }
    for token, value in values.items():
        content = content.replace(token, value)
    return content


def format_recurring_days(recurring_days: str | Iterable[int] | None) -> str:
    """Display label for a weekday set, e.g. "1,3" -> 星期一、星期三."""
    if not recurring_days:
        return ""
    if isinstance(recurring_days, str):
        days = sorted({int(p) for p in recurring_days.split(",") if p.strip().isdigit()})
    else:
        days = sorted(set(recurring_days))
    return "、".join(f"星期{WEEKDAY_LABELS[d]}" for d in days if 0 <= d <= 6)
