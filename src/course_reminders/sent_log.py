"""Append-only sent-message log.

The log is the only state shared between dispatch cycles: the dedup gate
reads it and every dispatch attempt appends exactly one record to it.
Implementations must make an append visible to reads issued later in the
same process (read-your-own-writes within a cycle).
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from course_reminders.errors import SentLogError
from course_reminders.logging import get_logger
from course_reminders.models import SentMessageRecord

log = get_logger(__name__)


class SentLog(Protocol):
    def append(self, record: SentMessageRecord) -> None: ...

    def records_since(self, course_id: str, since: datetime) -> list[SentMessageRecord]: ...


class InMemorySentLog:
    """List-backed log, used by tests and dry runs."""

    def __init__(self, records: list[SentMessageRecord] | None = None) -> None:
        self._records: list[SentMessageRecord] = list(records or [])

    def append(self, record: SentMessageRecord) -> None:
        self._records.append(record)

    def records_since(self, course_id: str, since: datetime) -> list[SentMessageRecord]:
        return [r for r in self._records if r.course_id == course_id and r.timestamp >= since]

    @property
    def records(self) -> list[SentMessageRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)


class JsonlSentLog:
    """One JSON object per line in data/sent_messages.jsonl.

    Lines are only ever appended. A missing file is an empty log; an
    unreadable file or a corrupt line raises SentLogError.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def append(self, record: SentMessageRecord) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(record.model_dump_json() + "\n")
        except OSError as e:
            raise SentLogError(f"Cannot append to {self.path}: {e}") from e
        log.debug("sent_log_appended", path=str(self.path), record_id=record.id, status=record.status.value)

    def read_all(self) -> list[SentMessageRecord]:
        if not self.path.exists():
            return []
        records = []
        try:
            with open(self.path, encoding="utf-8") as f:
                for lineno, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        records.append(SentMessageRecord.model_validate(json.loads(line)))
                    except (ValueError, ValidationError) as e:
                        raise SentLogError(f"{self.path}:{lineno}: corrupt record: {e}") from e
        except OSError as e:
            raise SentLogError(f"Cannot read {self.path}: {e}") from e
        return records

    def records_since(self, course_id: str, since: datetime) -> list[SentMessageRecord]:
        return [r for r in self.read_all() if r.course_id == course_id and r.timestamp >= since]


class DryRunSentLog:
    """Reads through to the real log, keeps its own appends in memory.

    A read failure on the real log still surfaces as SentLogError so the
    dedup policy applies exactly as in a real run.
    """

    def __init__(self, source: SentLog) -> None:
        self.source = source
        self.pending = InMemorySentLog()

    def append(self, record: SentMessageRecord) -> None:
        self.pending.append(record)

    def records_since(self, course_id: str, since: datetime) -> list[SentMessageRecord]:
        return self.source.records_since(course_id, since) + self.pending.records_since(course_id, since)


def open_sent_log(path: str | Path, *, dry_run: bool) -> SentLog:
    """The sent log a cycle should use; a dry run never writes to *path*."""
    file_log = JsonlSentLog(path)
    if dry_run:
        return DryRunSentLog(file_log)
    return file_log
