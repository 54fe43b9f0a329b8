"""Shared fixtures: a Mon/Wed recurring course, a one-off course, students."""

from datetime import datetime, timedelta, timezone

import pytest

from course_reminders.models import Course, MessageTemplate, ReminderRule, Snapshot, Student

HKT = timezone(timedelta(hours=8))


def hkt(year, month, day, hour=0, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=HKT)


@pytest.fixture
def recurring_course():
    # 2026-03-02 is a Monday
    return Course(
        id="c1",
        name="基礎班 A",
        category="基礎",
        start_date="2026-03-02",
        start_time="10:00",
        end_time="11:30",
        location="Room 101",
        total_sessions=3,
        recurring_days=[1, 3],
    )


@pytest.fixture
def single_course():
    return Course(
        id="c2",
        name="進階班 B",
        start_date="2026-03-03",
        start_time="14:00",
        location="https://zoom.us/j/123456",
    )


@pytest.fixture
def students():
    return [
        Student(id="s1", name="陳大文", phone="85291234567", course_id="c1"),
        Student(id="s2", name="李小明", phone="85298765432", course_id="c1"),
        Student(id="s3", name="王美玲", phone="85296543210", course_id="c2"),
    ]


@pytest.fixture
def template():
    return MessageTemplate(
        id="t1",
        name="標準上堂提示",
        content="你好 {{學生名}}，提醒你 {{日期}} {{時間}} 有 {{課程名}}\n地點：{{地點}}",
    )


@pytest.fixture
def day_before_rule():
    return ReminderRule(id="r1", course_id="c1", template_id="t1", days_before=1, hours_before=0)


@pytest.fixture
def snapshot(recurring_course, single_course, students, template, day_before_rule):
    return Snapshot(
        courses=[recurring_course, single_course],
        students=students,
        templates=[template],
        rules=[day_before_rule],
    )
