"""Reminder dispatch cycle.

One cycle is one cron invocation: evaluate every enabled reminder rule
against the clock, gate fired rules through the sent-log dedup check, render
the template for each student of the course, send it, and append one
SentMessageRecord per attempt. Rules are isolated from each other: a broken
course or a failing send never stops the rest of the cycle.

Per student the attempt goes PENDING -> SENT | QUEUED | FAILED. Only the
terminal state is recorded and nothing is retried here; the next cycle
re-evaluates, bounded by the dedup window.
"""

import uuid
from datetime import datetime, timedelta

from course_reminders.config import ReminderConfig
from course_reminders.dedup import DedupFailurePolicy, DedupVerdict, check_course
from course_reminders.errors import ReminderError, SentLogError
from course_reminders.logging import bind_cycle, clear_cycle, get_logger
from course_reminders.models import (
    Course,
    CycleReport,
    MessageStatus,
    MessageTemplate,
    NotifierResult,
    ReminderRule,
    RuleAction,
    SentMessageRecord,
    Session,
    Snapshot,
    Student,
)
from course_reminders.notifier import Notifier
from course_reminders.render import render
from course_reminders.scheduler import due_sessions
from course_reminders.sent_log import SentLog
from course_reminders.timeutils import to_org_time

log = get_logger(__name__)


class ReminderDispatcher:
    """Runs dispatch cycles against a notifier and a sent-message log."""

    def __init__(self, notifier: Notifier, sent_log: SentLog, config: ReminderConfig | None = None) -> None:
        config = config or ReminderConfig()
        self.notifier = notifier
        self.sent_log = sent_log
        self.tolerance = timedelta(minutes=config.firing_tolerance_minutes)
        self.dedup_window_minutes = config.dedup_window_minutes
        self.dedup_policy = DedupFailurePolicy(config.dedup_failure_policy)

    def run_cycle(self, snapshot: Snapshot, now: datetime, *, mode: str = "execute") -> CycleReport:
        """Evaluate every enabled rule in *snapshot* at *now* and send what is due."""
        now = to_org_time(now)
        cycle_id = uuid.uuid4().hex[:12]
        report = CycleReport(cycle_id=cycle_id, timestamp=now, mode=mode)
        bind_cycle(cycle_id)
        try:
            rules = [r for r in snapshot.rules if r.enabled]
            if not rules:
                log.info("no_active_reminders")
            for rule in rules:
                report.rules_evaluated += 1
                try:
                    action = self._evaluate_rule(rule, snapshot, now)
                except Exception as e:
                    # One bad rule must not take the cycle down with it
                    log.exception("rule_failed", rule_id=rule.id, course_id=rule.course_id)
                    action = RuleAction(
                        rule_id=rule.id,
                        course_id=rule.course_id,
                        outcome="error",
                        error=f"{type(e).__name__}: {e}",
                    )
                    report.rule_errors += 1

                if action.outcome == "dedup_skip":
                    report.skipped_dedup += 1
                if action.outcome == "dedup_unavailable":
                    report.skipped_log_unavailable += 1
                if action.outcome == "sent":
                    report.rules_fired += 1
                report.messages_sent += action.sent
                report.messages_failed += action.failed
                report.log_errors += action.log_errors
                report.actions.append(action)

            log.info(
                "cycle_complete",
                rules=report.rules_evaluated,
                fired=report.rules_fired,
                sent=report.messages_sent,
                failed=report.messages_failed,
                skipped_dedup=report.skipped_dedup,
                skipped_log_unavailable=report.skipped_log_unavailable,
                log_errors=report.log_errors,
                errors=report.rule_errors,
            )
        finally:
            clear_cycle()
        return report

    def _evaluate_rule(self, rule: ReminderRule, snapshot: Snapshot, now: datetime) -> RuleAction:
        course = snapshot.course(rule.course_id)
        template = snapshot.template(rule.template_id)
        if course is None or template is None:
            outcome = "missing_course" if course is None else "missing_template"
            log.warning(outcome, rule_id=rule.id, course_id=rule.course_id, template_id=rule.template_id)
            return RuleAction(rule_id=rule.id, course_id=rule.course_id, outcome=outcome)

        action = RuleAction(rule_id=rule.id, course_id=course.id, course_name=course.name, outcome="not_due")
        sessions = due_sessions(rule, course, now, self.tolerance)
        if not sessions:
            log.debug("reminder_not_due", rule_id=rule.id, course_id=course.id)
            return action
        action.session_dates = [s.date for s in sessions]

        verdict = check_course(self.sent_log, course.id, now, self.dedup_window_minutes, self.dedup_policy)
        if verdict is DedupVerdict.ALREADY_SENT:
            log.info("dedup_skip", rule_id=rule.id, course_id=course.id, window_minutes=self.dedup_window_minutes)
            action.outcome = "dedup_skip"
            return action
        if verdict is DedupVerdict.LOG_UNAVAILABLE:
            log.warning("dedup_unavailable", rule_id=rule.id, course_id=course.id)
            action.outcome = "dedup_unavailable"
            return action

        students = snapshot.students_of(course.id)
        log.info(
            "reminder_fired",
            rule_id=rule.id,
            course_id=course.id,
            course_name=course.name,
            sessions=[str(d) for d in action.session_dates],
            students=len(students),
        )
        action.outcome = "sent"
        # Per-course dedup: one batch per cycle, for the earliest due session
        session = sessions[0]
        for student in students:
            record, logged = self._deliver(course, student, render(template, course, student, session), now)
            if not logged:
                action.log_errors += 1
            if record.status is MessageStatus.FAILED:
                action.failed += 1
            else:
                action.sent += 1
        return action

    def _deliver(
        self, course: Course, student: Student, message: str, now: datetime
    ) -> tuple[SentMessageRecord, bool]:
        """Send one message and record the outcome.

        Never raises on send or log failure. Returns the record and whether it
        made it into the sent log.
        """
        try:
            result = self.notifier.send(student.phone, message)
        except ReminderError as e:
            log.error("message_failed", course_id=course.id, student_id=student.id, error=str(e))
            result = NotifierResult(ok=False, detail=str(e))
        except Exception as e:
            log.exception("message_failed", course_id=course.id, student_id=student.id)
            result = NotifierResult(ok=False, detail=f"{type(e).__name__}: {e}")

        if result.ok:
            status = MessageStatus.QUEUED if result.queued else MessageStatus.SENT
        else:
            status = MessageStatus.FAILED
            log.warning("message_not_delivered", course_id=course.id, student_id=student.id, detail=result.detail)

        record = SentMessageRecord(
            id=uuid.uuid4().hex,
            course_id=course.id,
            course_name=course.name,
            student_id=student.id,
            student_name=student.name,
            student_phone=student.phone,
            content=message,
            status=status,
            timestamp=now,
            queue_id=result.queue_id,
            error=None if result.ok else (result.detail or "Unknown error"),
        )
        try:
            self.sent_log.append(record)
        except SentLogError as e:
            # The message may already be out; keep going with the other students
            log.error(
                "sent_log_append_failed",
                course_id=course.id,
                student_id=student.id,
                status=status.value,
                error=str(e),
            )
            return record, False
        return record, True

    def send_manual(
        self,
        course: Course,
        students: list[Student],
        template: MessageTemplate | str,
        now: datetime,
        session: Session | None = None,
    ) -> list[SentMessageRecord]:
        """Send an ad-hoc message to selected students right away.

        No firing window and no dedup gate; outcomes are recorded like
        reminder sends.
        """
        now = to_org_time(now)
        records = [
            self._deliver(course, student, render(template, course, student, session), now)[0]
            for student in students
        ]
        log.info(
            "manual_send_complete",
            course_id=course.id,
            sent=sum(r.status is not MessageStatus.FAILED for r in records),
            total=len(records),
        )
        return records
