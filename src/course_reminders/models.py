"""Pydantic models for courses, students, reminder rules and the sent log.

All data structures use Pydantic v2 for validation, serialization, and type
safety. Date and time fields of a Course stay in their wire format
("2026-03-02", "10:00") so that a corrupt record still loads and only the
computations touching it fail soft.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Course(BaseModel):
    """A tutoring course and its recurrence rule.

    A course with a non-empty recurring_days set and more than one session is
    recurring; anything else is a single-occurrence course held on start_date.
    completed_sessions is a cache of the value the progress evaluator derives
    from the clock; it is allowed to be stale.
    """

    id: str
    name: str
    category: str = ""  # "基礎", "進階", ...
    start_date: str  # YYYY-MM-DD
    start_time: str = ""  # HH:MM[:SS]
    end_time: str | None = None  # falls back to start_time
    location: str = ""  # room name or meeting URL
    total_sessions: int = Field(default=1, ge=1)
    completed_sessions: int = Field(default=0, ge=0)
    recurring_days: frozenset[int] = frozenset()  # 0=Sunday .. 6=Saturday

    @field_validator("recurring_days", mode="before")
    @classmethod
    def _parse_recurring_days(cls, value):
        """Accept "1,3", [1, 3] or None; drop entries that are not weekdays."""
        if value is None or value == "":
            return frozenset()
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",")]
        else:
            parts = list(value)
        days = set()
        for part in parts:
            try:
                day = int(part)
            except (TypeError, ValueError):
                continue
            if 0 <= day <= 6:
                days.add(day)
        return frozenset(days)

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurring_days) and self.total_sessions > 1


class Session(BaseModel):
    """One concrete meeting of a course. Derived, never persisted."""

    model_config = ConfigDict(frozen=True)

    date: date
    start_time: str = ""
    end_time: str | None = None


class Student(BaseModel):
    id: str
    name: str
    phone: str  # digits with country code, or a full chat id like "852...@c.us"
    email: str | None = None
    course_id: str


class MessageTemplate(BaseModel):
    id: str
    name: str
    content: str
    course_id: str | None = None


class ReminderRule(BaseModel):
    """Send template_id to every student of course_id before each session.

    The offsets are measured back from the session's end instant.
    """

    id: str
    course_id: str
    template_id: str
    days_before: int = Field(default=0, ge=0)
    hours_before: int = Field(default=0, ge=0)
    enabled: bool = True


class MessageStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class SentMessageRecord(BaseModel):
    """One dispatch attempt. Append-only; doubles as the dedup oracle."""

    model_config = ConfigDict(frozen=True)

    id: str
    course_id: str
    course_name: str = ""
    student_id: str
    student_name: str = ""
    student_phone: str = ""
    content: str
    status: MessageStatus
    timestamp: datetime
    queue_id: str | None = None  # transport reference when the gateway queued it
    error: str | None = None


class NotifierResult(BaseModel):
    """Outcome of one Notifier.send call."""

    ok: bool
    queued: bool = False
    queue_id: str | None = None
    detail: str | None = None


class Snapshot(BaseModel):
    """Everything one dispatch cycle reads, loaded up front."""

    courses: list[Course] = []
    students: list[Student] = []
    templates: list[MessageTemplate] = []
    rules: list[ReminderRule] = []

    def course(self, course_id: str) -> Course | None:
        return next((c for c in self.courses if c.id == course_id), None)

    def template(self, template_id: str) -> MessageTemplate | None:
        return next((t for t in self.templates if t.id == template_id), None)

    def students_of(self, course_id: str) -> list[Student]:
        return [s for s in self.students if s.course_id == course_id]


class RuleAction(BaseModel):
    """What one dispatch cycle did with one reminder rule."""

    rule_id: str
    course_id: str
    course_name: str = ""
    outcome: str  # "not_due", "dedup_skip", "dedup_unavailable", "sent", "missing_course", "error", ...
    session_dates: list[date] = []
    sent: int = 0
    failed: int = 0
    log_errors: int = 0  # attempts that could not be written to the sent log
    error: str | None = None


class CycleReport(BaseModel):
    cycle_id: str
    timestamp: datetime
    mode: str = "dry-run"
    rules_evaluated: int = 0
    rules_fired: int = 0
    messages_sent: int = 0
    messages_failed: int = 0
    skipped_dedup: int = 0
    skipped_log_unavailable: int = 0
    log_errors: int = 0
    rule_errors: int = 0
    actions: list[RuleAction] = []
