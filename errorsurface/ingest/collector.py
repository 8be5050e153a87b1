"""Batch collection: read both sources, normalize, classify, sort.

Collection is blocking (it waits on journalctl and dmesg), so workers call it
through ``run_in_executor``. A collector keeps the errors of its last pass in
``last_errors`` and must not be shared between workers.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from ..detection.threat_classifier import ThreatClassifier
from ..models.entities import LogEvent
from ..sources.journal import JournalReader
from ..sources.kernel import KernelLogReader
from ..utils.logging import get_logger
from .normalizer import normalize

logger = get_logger("ingest.collector")


class LogCollector:
    def __init__(
        self,
        journal_reader: Optional[JournalReader] = None,
        kernel_reader: Optional[KernelLogReader] = None,
        classifier: Optional[ThreatClassifier] = None,
        config=None,
    ):
        self._config = config
        self._journal = journal_reader or JournalReader(
            command=self._setting("journal_command", "journalctl"),
            timeout=self._setting("journal_timeout", 60),
        )
        self._kernel = kernel_reader or KernelLogReader(
            command=self._setting("kernel_log_command", "dmesg"),
            use_sudo=self._setting("kernel_log_use_sudo", True),
            timeout=self._setting("kernel_log_timeout", 15),
        )
        self._classifier = classifier or ThreatClassifier()
        self.last_errors: list[str] = []

    def _setting(self, name: str, default):
        return getattr(self._config, name, default) if self._config is not None else default

    def collect_all(self, lookback_days: Optional[int] = None) -> list[LogEvent]:
        """Everything at journal priority 0-4 and kernel emerg..warn from the last ``lookback_days``."""
        days = lookback_days if lookback_days is not None else self._setting("lookback_days", 7)
        since = datetime.now(timezone.utc) - timedelta(days=days)
        return self._collect(since, self._setting("journal_max_entries", 10_000))

    def collect_live(self, window_minutes: Optional[int] = None) -> list[LogEvent]:
        """The same collection restricted to the last ``window_minutes``."""
        minutes = window_minutes if window_minutes is not None else self._setting("live_window_minutes", 60)
        since = datetime.now(timezone.utc) - timedelta(minutes=minutes)
        return self._collect(since, self._setting("live_journal_max_entries", 5_000))

    def _collect(self, since: datetime, max_entries: int) -> list[LogEvent]:
        self.last_errors = []

        journal_records = self._journal.read(since, max_entries=max_entries)
        if self._journal.last_error:
            self.last_errors.append(self._journal.last_error)

        kernel_records = self._kernel.read(since)
        if self._kernel.last_error:
            self.last_errors.append(self._kernel.last_error)

        events = self._classify(journal_records) + self._classify(kernel_records)
        events.sort(key=lambda e: e.timestamp, reverse=True)

        logger.info(
            "collection_complete",
            since=since.isoformat(),
            journal=len(journal_records),
            kernel=len(kernel_records),
            events=len(events),
            threats=sum(1 for e in events if e.threats),
            errors=len(self.last_errors),
        )
        return events

    def _classify(self, records: Iterable) -> list[LogEvent]:
        events = []
        for raw in records:
            event = normalize(raw)
            if event is None:
                continue
            event.threats = self._classifier.detect(event.message, event.unit)
            events.append(event)
        return events
