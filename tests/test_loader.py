import json

from course_reminders.config import ReminderConfig, get_config
from course_reminders.loader import load_snapshot


def write(path, records):
    path.write_text(json.dumps(records, ensure_ascii=False), encoding="utf-8")


def test_load_snapshot_skips_invalid_records(tmp_path):
    write(tmp_path / "courses.json", [
        {"id": "1", "name": "基礎班 A", "start_date": "2026-03-02", "start_time": "10:00",
         "total_sessions": 8, "recurring_days": "1,3"},
        {"id": "2", "name": "壞資料", "start_date": "2026-03-02", "total_sessions": 0},
    ])
    write(tmp_path / "students.json", [{"id": "s1", "name": "陳大文", "phone": "85291234567", "course_id": "1"}])
    write(tmp_path / "reminders.json", [{"id": "r1", "course_id": "1", "template_id": "t1", "days_before": -1}])

    snapshot = load_snapshot(tmp_path)

    assert [c.id for c in snapshot.courses] == ["1"]
    assert snapshot.courses[0].recurring_days == frozenset({1, 3})
    assert [s.id for s in snapshot.students_of("1")] == ["s1"]
    assert snapshot.templates == []
    assert snapshot.rules == []


def test_unparseable_file_loads_as_empty(tmp_path):
    (tmp_path / "courses.json").write_text('[{"id": "1", "name": ', encoding="utf-8")
    write(tmp_path / "students.json", [{"id": "s1", "name": "陳大文", "phone": "85291234567", "course_id": "1"}])
    write(tmp_path / "templates.json", {"id": "t1"})

    snapshot = load_snapshot(tmp_path)

    assert snapshot.courses == []
    assert snapshot.templates == []
    assert [s.id for s in snapshot.students] == ["s1"]


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv("FIRING_TOLERANCE_MINUTES", "7")
    monkeypatch.setenv("DEDUP_FAILURE_POLICY", "send")

    config = ReminderConfig()

    assert config.firing_tolerance_minutes == 7
    assert config.dedup_failure_policy == "send"
    assert config.dedup_window_minutes == 10


def test_get_config_is_a_singleton():
    assert get_config() is get_config()
