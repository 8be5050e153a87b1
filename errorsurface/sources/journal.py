"""systemd journal reader.

Reads the local journal through ``journalctl --output=json`` (one JSON object
per line) and turns each entry into a :class:`RawJournalRecord`. Only the
fields needed for classification and display are kept.
"""

import json
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..utils.logging import get_logger

logger = get_logger("sources.journal")

# Journal fields copied onto the raw record, keyed by attribute name
JOURNAL_FIELDS = {
    "message": "MESSAGE",
    "systemd_unit": "_SYSTEMD_UNIT",
    "syslog_identifier": "SYSLOG_IDENTIFIER",
    "pid": "_PID",
    "syslog_pid": "SYSLOG_PID",
    "exe": "_EXE",
    "cmdline": "_CMDLINE",
    "hostname": "_HOSTNAME",
    "boot_id": "_BOOT_ID",
    "message_id": "MESSAGE_ID",
    "transport": "_TRANSPORT",
    "cursor": "__CURSOR",
}


@dataclass
class RawJournalRecord:
    """A journal entry as journalctl reports it, before normalization."""

    realtime_usec: int
    priority: int
    message: str = ""
    systemd_unit: str = ""
    syslog_identifier: str = ""
    pid: str = ""
    syslog_pid: str = ""
    exe: str = ""
    cmdline: str = ""
    hostname: str = ""
    boot_id: str = ""
    message_id: str = ""
    transport: str = ""
    cursor: str = ""

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.realtime_usec // 1_000_000, tz=timezone.utc)


def _field_text(value) -> str:
    """Flatten a journal JSON value to text.

    Plain fields are strings. Fields that occur more than once come back as a
    list (first value wins), and binary fields as a list of byte values.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        if not value:
            return ""
        if all(isinstance(b, int) for b in value):
            try:
                return bytes(value).decode("utf-8", errors="replace")
            except ValueError:
                return ""
        return _field_text(value[0])
    return str(value)


def parse_journal_entry(entry: dict, since: datetime) -> Optional[RawJournalRecord]:
    """Build a raw record from one decoded journal object.

    Returns None for entries outside priority 0-4, with a missing or
    malformed timestamp, or older than ``since``.
    """
    try:
        priority = int(_field_text(entry.get("PRIORITY")))
    except ValueError:
        return None
    if not 0 <= priority <= 4:
        return None

    try:
        realtime_usec = int(_field_text(entry.get("__REALTIME_TIMESTAMP")))
    except ValueError:
        return None

    record = RawJournalRecord(realtime_usec=realtime_usec, priority=priority)
    # journalctl already seeks to since; entries straddling the boundary are still re-checked
    if record.timestamp < since:
        return None

    for attr, key in JOURNAL_FIELDS.items():
        setattr(record, attr, _field_text(entry.get(key)))
    return record


class JournalReader:
    """Collects priority 0-4 journal entries newer than a given instant."""

    def __init__(self, command: str = "journalctl", timeout: int = 60):
        self._command = command
        self._timeout = timeout
        self.last_error: Optional[str] = None

    def build_args(self, since: datetime) -> list[str]:
        return [
            self._command,
            "--output=json",
            "--no-pager",
            "--quiet",
            "--priority=0..4",
            f"--since=@{int(since.timestamp())}",
        ]

    def read(self, since: datetime, max_entries: int = 10_000) -> list[RawJournalRecord]:
        """Read entries from ``since`` forward, keep at most ``max_entries``, newest first.

        A journal that cannot be read yields an empty list and sets
        ``last_error``; it never raises.
        """
        self.last_error = None
        try:
            result = self._run_cmd(self.build_args(since))
        except FileNotFoundError:
            return self._fail(f"{self._command} not found; systemd journal unavailable")
        except subprocess.TimeoutExpired:
            return self._fail(f"{self._command} timed out after {self._timeout}s")
        except OSError as e:
            return self._fail(f"failed to open systemd journal: {e}")

        if result.returncode != 0 and not result.stdout.strip():
            stderr = (result.stderr or "").strip()
            return self._fail(f"failed to open systemd journal: {stderr or f'exit code {result.returncode}'}")

        records: list[RawJournalRecord] = []
        skipped = 0
        for line in result.stdout.splitlines():
            if len(records) >= max_entries:
                break
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                skipped += 1
                continue
            if not isinstance(entry, dict):
                skipped += 1
                continue
            record = parse_journal_entry(entry, since)
            if record is None:
                skipped += 1
                continue
            records.append(record)

        records.reverse()
        logger.debug("journal_read", collected=len(records), skipped=skipped, max_entries=max_entries)
        return records

    def _fail(self, message: str) -> list[RawJournalRecord]:
        self.last_error = message
        logger.warning("journal_unavailable", error=message)
        return []

    def _run_cmd(self, args: list[str]) -> subprocess.CompletedProcess:
        """Execute journalctl with an argument list (never shell=True)."""
        return subprocess.run(
            args,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=self._timeout,
        )
