"""Raw source records -> LogEvent.

Pure functions. Threat classification happens later in the collector, so
events leave here with an empty threat list.
"""

from typing import Optional, Union

from ..models.entities import SOURCE_JOURNAL, SOURCE_KERNEL, LogEvent, group_for_priority
from ..sources.journal import RawJournalRecord
from ..sources.kernel import RawKernelRecord

BOOT_ID_LENGTH = 8


def normalize_journal_record(raw: RawJournalRecord) -> Optional[LogEvent]:
    if not group_for_priority(raw.priority):
        return None
    return LogEvent(
        source=SOURCE_JOURNAL,
        timestamp=raw.timestamp,
        priority=raw.priority,
        unit=raw.systemd_unit or raw.syslog_identifier or "unknown",
        pid=raw.pid or raw.syslog_pid,
        exe=raw.exe,
        cmdline=raw.cmdline,
        hostname=raw.hostname,
        boot_id=raw.boot_id[:BOOT_ID_LENGTH],
        message=raw.message,
        message_id=raw.message_id,
        transport=raw.transport,
        cursor=raw.cursor,
    )


def normalize_kernel_record(raw: RawKernelRecord) -> Optional[LogEvent]:
    priority = raw.priority
    if not group_for_priority(priority):
        return None
    return LogEvent(
        source=SOURCE_KERNEL,
        timestamp=raw.timestamp.replace(microsecond=0),
        priority=priority,
        unit=raw.unit or "kernel",
        message=raw.message,
        transport=raw.transport or "kernel",
    )


def normalize(raw: Union[RawJournalRecord, RawKernelRecord]) -> Optional[LogEvent]:
    """Dispatch on the record type. Unknown record types are dropped."""
    if isinstance(raw, RawJournalRecord):
        return normalize_journal_record(raw)
    if isinstance(raw, RawKernelRecord):
        return normalize_kernel_record(raw)
    return None
