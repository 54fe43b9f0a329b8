"""
Evaluate reminder rules and send the WhatsApp reminders that are due now.

Meant to be run by cron every few minutes (the cadence must stay below the
firing tolerance, 5 minutes by default). Reads the record snapshot from
data/, dedups against data/sent_messages.jsonl and writes a cycle report to
reports/.

Usage:
    python scripts/check_reminders.py                  # dry-run (default)
    python scripts/check_reminders.py --execute        # send through Periskope
    python scripts/check_reminders.py --now 2026-03-01T10:00:00+08:00

Pre-requisites:
    - pip install -e .
    - PERISKOPE_API_KEY and ORG_PHONE in .env for --execute
    - data/courses.json, students.json, templates.json, reminders.json
"""

import argparse
import io
import json
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from course_reminders.config import get_config
from course_reminders.credentials import StaticTokenProvider
from course_reminders.dispatch import ReminderDispatcher
from course_reminders.errors import ConfigurationError
from course_reminders.loader import load_snapshot
from course_reminders.logging import setup_logging
from course_reminders.notifier import DryRunNotifier, PeriskopeNotifier
from course_reminders.progress import reconcile_completed_sessions
from course_reminders.sent_log import open_sent_log
from course_reminders.timeutils import now_org, to_org_time

# Fix Windows console encoding for Chinese template text
if sys.platform == "win32":
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8", errors="replace")

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SENT_LOG_FILE = "sent_messages.jsonl"


def parse_now(value):
    """--now accepts an ISO timestamp; naive values are read as UTC+8."""
    if value is None:
        return now_org()
    return to_org_time(datetime.fromisoformat(value))


def main():
    parser = argparse.ArgumentParser(description="Send due course reminders")
    parser.add_argument(
        "--execute", action="store_true",
        help="Actually send through Periskope and append to the sent log",
    )
    parser.add_argument(
        "--now", default=None,
        help="Evaluate as if it were this ISO timestamp (default: current time)",
    )
    args = parser.parse_args()

    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    mode = "execute" if args.execute else "dry-run"
    now = parse_now(args.now)

    print("=" * 60)
    print(f"REMINDER CHECK [{mode.upper()}] at {now.isoformat()}")
    print("=" * 60)

    data_dir = PROJECT_ROOT / config.data_dir
    snapshot = load_snapshot(data_dir)
    snapshot.courses = [reconcile_completed_sessions(c, now) for c in snapshot.courses]

    sent_log = open_sent_log(data_dir / SENT_LOG_FILE, dry_run=not args.execute)
    if args.execute:
        try:
            token_provider = StaticTokenProvider(config.periskope_api_key)
            token_provider.get_token()
        except ConfigurationError:
            print("ERROR: PERISKOPE_API_KEY is not configured")
            sys.exit(1)
        notifier = PeriskopeNotifier(
            config.periskope_api_url,
            token_provider,
            config.org_phone,
            timeout=config.notifier_timeout_seconds,
            max_attempts=config.notifier_max_attempts,
        )
    else:
        notifier = DryRunNotifier()

    dispatcher = ReminderDispatcher(notifier, sent_log, config)
    report = dispatcher.run_cycle(snapshot, now, mode=mode)

    for action in report.actions:
        if action.outcome == "not_due":
            continue
        label = action.course_name or action.course_id
        dates = ", ".join(str(d) for d in action.session_dates)
        print(f"  [{action.outcome:>12}] {label:<30} {dates}  sent={action.sent} failed={action.failed}")

    reports_dir = PROJECT_ROOT / config.reports_dir
    reports_dir.mkdir(parents=True, exist_ok=True)
    ts = now.strftime("%Y-%m-%d_%H%M%S")
    report_path = reports_dir / f"reminders_{ts}.json"
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(report.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    print(f"\n{'=' * 60}")
    print("SUMMARY")
    print(f"{'=' * 60}")
    print(f"  Rules evaluated: {report.rules_evaluated}")
    print(f"  Rules fired:     {report.rules_fired}")
    print(f"  Sent:            {report.messages_sent}")
    print(f"  Failed:          {report.messages_failed}")
    print(f"  Dedup skips:     {report.skipped_dedup}")
    print(f"  Log unavailable: {report.skipped_log_unavailable}")
    print(f"  Log errors:      {report.log_errors}")
    print(f"  Rule errors:     {report.rule_errors}")
    print(f"\nReport: {report_path}")


if __name__ == "__main__":
    main()
