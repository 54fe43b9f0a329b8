"""Dispatch de-duplication against the sent-message log.

The check is per course: if anything was recorded for the course within the
trailing window, the whole batch for that course is skipped this cycle. This
assumes one fire event per course per window, which holds for a +/- 5 minute
firing tolerance and a cron cadence shorter than it.

Known limitation: two sessions of the same course whose fire windows land in
the same lookback window will only fire once.
"""

from datetime import datetime, timedelta
from enum import Enum

from course_reminders.errors import SentLogError
from course_reminders.logging import get_logger
from course_reminders.sent_log import SentLog
from course_reminders.timeutils import to_org_time

log = get_logger(__name__)

DEDUP_WINDOW_MINUTES = 10


class DedupFailurePolicy(str, Enum):
    """What to do with a rule when the sent log cannot be read.

    SKIP drops the rule for this cycle (never floods students). SEND treats
    the reminder as not yet sent (never misses a reminder).
    """

    SKIP = "skip"
    SEND = "send"


def already_sent_in_window(
    sent_log: SentLog,
    course_id: str,
    now: datetime,
    window_minutes: int = DEDUP_WINDOW_MINUTES,
) -> bool:
    """True if any record exists for *course_id* with timestamp >= now - window.

    Read-only. Raises SentLogError if the log cannot be read.
    """
    since = to_org_time(now) - timedelta(minutes=window_minutes)
    return bool(sent_log.records_since(course_id, since))


class DedupVerdict(str, Enum):
    SEND = "send"
    ALREADY_SENT = "already_sent"
    LOG_UNAVAILABLE = "log_unavailable"  # log unreadable and the policy says skip


def check_course(
    sent_log: SentLog,
    course_id: str,
    now: datetime,
    window_minutes: int = DEDUP_WINDOW_MINUTES,
    policy: DedupFailurePolicy = DedupFailurePolicy.SKIP,
) -> DedupVerdict:
    """Dedup gate for one course, applying *policy* when the log is unreadable."""
    try:
        if already_sent_in_window(sent_log, course_id, now, window_minutes):
            return DedupVerdict.ALREADY_SENT
        return DedupVerdict.SEND
    except SentLogError as e:
        log.error(
            "dedup_check_failed",
            course_id=course_id,
            policy=policy.value,
            error=str(e),
        )
        if policy is DedupFailurePolicy.SKIP:
            return DedupVerdict.LOG_UNAVAILABLE
        return DedupVerdict.SEND
