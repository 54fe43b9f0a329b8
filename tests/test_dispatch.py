"""Tests for the reminder dispatch cycle.

Covers firing, dedup across cycles, per-rule isolation and both dedup
failure policies.
"""

from datetime import timedelta

import pytest

from course_reminders.config import ReminderConfig
from course_reminders.dispatch import ReminderDispatcher
from course_reminders.errors import SentLogError, TransientError
from course_reminders.models import Course, MessageStatus, NotifierResult, ReminderRule
from course_reminders.notifier import DryRunNotifier
from course_reminders.sent_log import InMemorySentLog, JsonlSentLog, open_sent_log

from conftest import hkt

# The c1 fixture's first session ends 2026-03-02 11:30; the day-before rule fires at 03-01 11:30
FIRE_AT = hkt(2026, 3, 1, 11, 30)


class FlakyNotifier:
    """Fails for the phone numbers it is given, succeeds (queued) for the rest."""

    def __init__(self, raise_for=(), reject_for=()):
        self.raise_for = set(raise_for)
        self.reject_for = set(reject_for)
        self.calls = []

    def send(self, destination, message):
        self.calls.append(destination)
        if destination in self.raise_for:
            raise TransientError("gateway timed out")
        if destination in self.reject_for:
            return NotifierResult(ok=False, detail="[400] invalid chat id")
        return NotifierResult(ok=True, queued=True, queue_id=f"q-{destination}")


class UnreadableLog(InMemorySentLog):
    def records_since(self, course_id, since):
        raise SentLogError("sent_messages table unavailable")


class AppendFailsOnce(InMemorySentLog):
    def __init__(self):
        super().__init__()
        self.failed = False

    def append(self, record):
        if not self.failed:
            self.failed = True
            raise SentLogError("disk full")
        super().append(record)


class BrokenFor(InMemorySentLog):
    """Blows up with an unexpected error when asked about one course."""

    def __init__(self, course_id):
        super().__init__()
        self.bad_course = course_id

    def records_since(self, course_id, since):
        if course_id == self.bad_course:
            raise RuntimeError("index corrupted")
        return super().records_since(course_id, since)


@pytest.fixture
def config():
    return ReminderConfig(firing_tolerance_minutes=5, dedup_window_minutes=10, dedup_failure_policy="skip")


def test_due_reminder_is_sent_to_every_student(snapshot, config):
    notifier = DryRunNotifier()
    sent_log = InMemorySentLog()

    report = ReminderDispatcher(notifier, sent_log, config).run_cycle(snapshot, FIRE_AT)

    assert report.rules_evaluated == 1
    assert report.rules_fired == 1
    assert report.messages_sent == 2
    assert [d for d, _ in notifier.sent] == ["85291234567", "85298765432"]
    assert notifier.sent[0][1] == "你好 陳大文，提醒你 02/03/2026 10:00 有 基礎班 A\n地點：Room 101"
    assert {r.student_id for r in sent_log.records} == {"s1", "s2"}
    assert all(r.status is MessageStatus.SENT and r.timestamp == FIRE_AT for r in sent_log.records)


def test_not_due_sends_nothing(snapshot, config):
    sent_log = InMemorySentLog()
    report = ReminderDispatcher(DryRunNotifier(), sent_log, config).run_cycle(snapshot, FIRE_AT + timedelta(minutes=6))

    assert report.actions[0].outcome == "not_due"
    assert len(sent_log) == 0


def test_second_cycle_inside_dedup_window_inserts_nothing(snapshot, config):
    sent_log = InMemorySentLog()
    dispatcher = ReminderDispatcher(DryRunNotifier(), sent_log, config)

    first = dispatcher.run_cycle(snapshot, FIRE_AT - timedelta(minutes=4))
    second = dispatcher.run_cycle(snapshot, FIRE_AT + timedelta(minutes=5))

    assert first.messages_sent == 2
    assert second.skipped_dedup == 1
    assert second.messages_sent == 0
    assert len(sent_log) == 2


def test_later_session_of_same_course_fires_again(snapshot, config):
    sent_log = InMemorySentLog()
    dispatcher = ReminderDispatcher(DryRunNotifier(), sent_log, config)

    dispatcher.run_cycle(snapshot, FIRE_AT)
    report = dispatcher.run_cycle(snapshot, hkt(2026, 3, 3, 11, 30))

    assert report.messages_sent == 2
    assert report.actions[0].session_dates == [hkt(2026, 3, 4).date()]
    assert "04/03/2026" in sent_log.records[-1].content


def test_two_rules_for_one_course_in_one_cycle_send_once(snapshot, config):
    # Same fire instant expressed two ways
    snapshot.rules.append(ReminderRule(id="r2", course_id="c1", template_id="t1", hours_before=24))
    sent_log = InMemorySentLog()

    report = ReminderDispatcher(DryRunNotifier(), sent_log, config).run_cycle(snapshot, FIRE_AT)

    assert [a.outcome for a in report.actions] == ["sent", "dedup_skip"]
    assert len(sent_log) == 2


def test_notifier_failures_are_recorded_and_do_not_stop_the_batch(snapshot, config):
    notifier = FlakyNotifier(raise_for={"85291234567"})
    sent_log = InMemorySentLog()

    report = ReminderDispatcher(notifier, sent_log, config).run_cycle(snapshot, FIRE_AT)

    assert notifier.calls == ["85291234567", "85298765432"]
    assert report.messages_failed == 1
    assert report.messages_sent == 1
    failed, queued = sent_log.records
    assert failed.status is MessageStatus.FAILED
    assert failed.error == "gateway timed out"
    assert queued.status is MessageStatus.QUEUED
    assert queued.queue_id == "q-85298765432"


def test_rejected_send_is_recorded_with_detail(snapshot, config):
    sent_log = InMemorySentLog()
    ReminderDispatcher(FlakyNotifier(reject_for={"85298765432"}), sent_log, config).run_cycle(snapshot, FIRE_AT)

    assert sent_log.records[1].status is MessageStatus.FAILED
    assert sent_log.records[1].error == "[400] invalid chat id"


def test_failed_cycle_still_blocks_resend_inside_window(snapshot, config):
    sent_log = InMemorySentLog()
    dispatcher = ReminderDispatcher(FlakyNotifier(raise_for={"85291234567", "85298765432"}), sent_log, config)

    dispatcher.run_cycle(snapshot, FIRE_AT)
    report = dispatcher.run_cycle(snapshot, FIRE_AT + timedelta(minutes=3))

    assert report.skipped_dedup == 1
    assert len(sent_log) == 2


def test_unreadable_log_skips_rule_by_default(snapshot, config):
    notifier = DryRunNotifier()
    report = ReminderDispatcher(notifier, UnreadableLog(), config).run_cycle(snapshot, FIRE_AT)

    assert report.actions[0].outcome == "dedup_unavailable"
    assert report.skipped_log_unavailable == 1
    assert report.skipped_dedup == 0
    assert notifier.sent == []


def test_unreadable_log_sends_when_policy_is_send(snapshot):
    notifier = DryRunNotifier()
    config = ReminderConfig(dedup_failure_policy="send")

    report = ReminderDispatcher(notifier, UnreadableLog(), config).run_cycle(snapshot, FIRE_AT)

    assert report.messages_sent == 2
    assert len(notifier.sent) == 2


def test_failed_log_append_does_not_stop_the_batch(snapshot, config):
    notifier = DryRunNotifier()
    sent_log = AppendFailsOnce()

    report = ReminderDispatcher(notifier, sent_log, config).run_cycle(snapshot, FIRE_AT)

    assert [d for d, _ in notifier.sent] == ["85291234567", "85298765432"]
    assert report.actions[0].outcome == "sent"
    assert report.messages_sent == 2
    assert report.log_errors == 1
    assert report.rule_errors == 0
    assert [r.student_id for r in sent_log.records] == ["s2"]


def test_dry_run_never_writes_the_sent_log_file(snapshot, tmp_path):
    path = tmp_path / "sent_messages.jsonl"
    path.write_text("not json\n", encoding="utf-8")
    config = ReminderConfig(dedup_failure_policy="send")
    notifier = DryRunNotifier()

    report = ReminderDispatcher(notifier, open_sent_log(path, dry_run=True), config).run_cycle(
        snapshot, FIRE_AT, mode="dry-run"
    )

    assert report.messages_sent == 2
    assert len(notifier.sent) == 2
    assert path.read_text(encoding="utf-8") == "not json\n"


def test_dry_run_dedups_against_existing_file(snapshot, config, tmp_path):
    path = tmp_path / "sent_messages.jsonl"
    ReminderDispatcher(DryRunNotifier(), JsonlSentLog(path), config).run_cycle(snapshot, FIRE_AT)
    before = path.read_text(encoding="utf-8")

    report = ReminderDispatcher(DryRunNotifier(), open_sent_log(path, dry_run=True), config).run_cycle(
        snapshot, FIRE_AT + timedelta(minutes=2), mode="dry-run"
    )

    assert report.skipped_dedup == 1
    assert path.read_text(encoding="utf-8") == before

def test_one_broken_rule_does_not_stop_the_others(snapshot, config, single_course):
    # c2 is a one-off on 03-03 at 14:00; a 3-hours-before rule fires at 11:00
    snapshot.rules = [
        ReminderRule(id="bad", course_id="c2", template_id="t1", hours_before=3),
        ReminderRule(id="missing", course_id="nope", template_id="t1"),
    ]
    sent_log = BrokenFor("c2")
    report = ReminderDispatcher(DryRunNotifier(), sent_log, config).run_cycle(snapshot, hkt(2026, 3, 3, 11, 0))

    assert [a.outcome for a in report.actions] == ["error", "missing_course"]
    assert report.rule_errors == 1
    assert "index corrupted" in report.actions[0].error

    snapshot.rules.append(ReminderRule(id="ok", course_id="c1", template_id="t1", days_before=1))
    report = ReminderDispatcher(DryRunNotifier(), sent_log, config).run_cycle(snapshot, FIRE_AT)
    assert [a.outcome for a in report.actions] == ["not_due", "missing_course", "sent"]
    assert report.messages_sent == 2


def test_malformed_course_is_not_due(snapshot, config):
    snapshot.courses.append(Course(id="c3", name="壞資料", start_date="2026-13-45", total_sessions=4, recurring_days="1"))
    snapshot.rules.insert(0, ReminderRule(id="r3", course_id="c3", template_id="t1", days_before=1))

    report = ReminderDispatcher(DryRunNotifier(), InMemorySentLog(), config).run_cycle(snapshot, FIRE_AT)

    assert [a.outcome for a in report.actions] == ["not_due", "sent"]
    assert report.rule_errors == 0


def test_disabled_rules_are_not_evaluated(snapshot, config):
    snapshot.rules[0].enabled = False
    report = ReminderDispatcher(DryRunNotifier(), InMemorySentLog(), config).run_cycle(snapshot, FIRE_AT)

    assert report.rules_evaluated == 0
    assert report.actions == []


def test_send_manual_records_each_student(recurring_course, students, template, config):
    sent_log = InMemorySentLog()
    notifier = FlakyNotifier(reject_for={"85298765432"})

    records = ReminderDispatcher(notifier, sent_log, config).send_manual(
        recurring_course, students[:2], template, hkt(2026, 3, 1, 9, 0)
    )

    assert [r.status for r in records] == [MessageStatus.QUEUED, MessageStatus.FAILED]
    assert "02/03/2026" in records[0].content
    assert sent_log.records == records
