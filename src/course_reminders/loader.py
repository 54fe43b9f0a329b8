"""Load the record snapshot a dispatch cycle runs against.

data/
  courses.json     [{id, name, start_date, start_time, ...}, ...]
  students.json
  templates.json
  reminders.json

Each record is validated on its own; an invalid record is logged and
skipped so one corrupt row cannot block the whole cycle. A file that is
not a JSON list loads as empty.
"""

import json
from pathlib import Path

from pydantic import BaseModel, ValidationError

from course_reminders.logging import get_logger
from course_reminders.models import Course, MessageTemplate, ReminderRule, Snapshot, Student

log = get_logger(__name__)

SNAPSHOT_FILES: dict[str, tuple[str, type[BaseModel]]] = {
    "courses": ("courses.json", Course),
    "students": ("students.json", Student),
    "templates": ("templates.json", MessageTemplate),
    "rules": ("reminders.json", ReminderRule),
}


def _load_records(path: Path, model: type[BaseModel]) -> list:
    if not path.exists():
        log.warning("snapshot_file_missing", path=str(path))
        return []
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except ValueError as e:
        log.error("snapshot_file_invalid", path=str(path), error=str(e))
        return []
    if not isinstance(raw, list):
        log.error("snapshot_file_invalid", path=str(path), error="top level is not a list")
        return []

    records = []
    for index, item in enumerate(raw):
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            log.warning(
                "snapshot_record_invalid",
                path=str(path),
                index=index,
                record_id=item.get("id") if isinstance(item, dict) else None,
                errors=e.error_count(),
            )
    return records


def load_snapshot(data_dir: str | Path) -> Snapshot:
    """Read all snapshot files under *data_dir* into a Snapshot."""
    data_dir = Path(data_dir)
    loaded = {
        field: _load_records(data_dir / filename, model)
        for field, (filename, model) in SNAPSHOT_FILES.items()
    }
    snapshot = Snapshot(**loaded)
    log.info(
        "snapshot_loaded",
        data_dir=str(data_dir),
        courses=len(snapshot.courses),
        students=len(snapshot.students),
        templates=len(snapshot.templates),
        rules=len(snapshot.rules),
    )
    return snapshot
