"""Durable, deduplicated, TTL-scoped event store over SQLite.

Every event is keyed by a fingerprint of (event second, unit, message), so
overlapping scans and live polls can upsert the same records again and again
without creating duplicates. Each row carries an absolute ``expires_at``
computed from the retention that was configured when it was first written.

All public operations are serialized through one asyncio.Lock, so a batch
from the scan worker and a batch from the live monitor never interleave.
Failures never raise: they are logged, kept in ``last_error`` and, for open
and write failures, published as ``database_error``.
"""

import asyncio
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence, Union

from sqlalchemy import delete, func, insert, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..database import build_engine, create_tables, session_factory
from ..models.entities import LogEvent, StoredEvent, epoch_seconds, utc_from_epoch
from ..models.log_event import LogEventRow
from ..models.scan_run import ScanRun
from ..utils.event_bus import EventBus
from ..utils.logging import get_logger
from .threat_codec import decode_threats, encode_threats

logger = get_logger("storage.event_store")

SECONDS_PER_DAY = 86400
DEFAULT_RETENTION_DAYS = 30


def compute_fingerprint(timestamp: datetime, unit: str, message: str) -> str:
    """SHA-256 hex of ``"{epoch_seconds}|{unit}|{message}"``.

    Source and priority are deliberately not part of the key: a journal line
    and a kernel line with the same second, unit and text collapse into one
    row, and the first one written wins.
    """
    key = f"{epoch_seconds(timestamp)}|{unit}|{message}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _now() -> int:
    return int(datetime.now(timezone.utc).timestamp())


class EventStore:
    """The persisted event set shared by the scan worker and the live monitor."""

    def __init__(
        self,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        wal_mode: bool = True,
        busy_timeout: int = 5000,
        synchronous: str = "NORMAL",
        event_bus: Optional[EventBus] = None,
    ):
        self._retention_days = max(1, retention_days)
        self._wal_mode = wal_mode
        self._busy_timeout = busy_timeout
        self._synchronous = synchronous
        self._event_bus = event_bus
        self._engine: Optional[AsyncEngine] = None
        self._session_factory = None
        self._location: Optional[Path] = None
        self._lock = asyncio.Lock()
        self.last_error: Optional[str] = None

    @classmethod
    def from_config(cls, config, event_bus: Optional[EventBus] = None) -> "EventStore":
        return cls(
            retention_days=config.retention_days,
            wal_mode=config.db_wal_mode,
            busy_timeout=config.db_busy_timeout,
            synchronous=config.db_synchronous,
            event_bus=event_bus,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, location: Union[str, Path]) -> bool:
        """Open (creating if needed) the database at ``location``.

        Any previously open database is closed first, even if the new one
        then fails to open.
        """
        path = Path(location).expanduser()
        async with self._lock:
            await self._dispose()
            engine = None
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                engine = build_engine(
                    path,
                    wal_mode=self._wal_mode,
                    busy_timeout=self._busy_timeout,
                    synchronous=self._synchronous,
                )
                await create_tables(engine)
            except (OSError, SQLAlchemyError) as e:
                if engine is not None:
                    await engine.dispose()
                self._record_failure("open", e, location=str(path))
                return False

            self._engine = engine
            self._session_factory = session_factory(engine)
            self._location = path
            self.last_error = None

        logger.info("event_store_opened", location=str(path), retention_days=self._retention_days)
        self._publish("database_opened", {"location": str(path)})
        return True

    async def close(self) -> None:
        async with self._lock:
            await self._dispose()

    async def _dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("event_store_closed", location=str(self._location))
        self._engine = None
        self._session_factory = None
        self._location = None

    def is_open(self) -> bool:
        return self._engine is not None

    def current_location(self) -> str:
        return str(self._location) if self._location else ""

    def database_size_bytes(self) -> int:
        if self._location is None:
            return 0
        try:
            return self._location.stat().st_size
        except OSError:
            return 0

    @property
    def retention_days(self) -> int:
        return self._retention_days

    def set_retention_days(self, days: int) -> int:
        """Set the retention for rows written from now on. Existing rows keep their expiry."""
        self._retention_days = max(1, int(days))
        logger.info("retention_changed", retention_days=self._retention_days)
        return self._retention_days

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_one(self, event: LogEvent) -> bool:
        """Insert ``event`` unless its fingerprint is already stored. True iff a row was created.

        Events outside priorities 0-4 and collector diagnostics are refused.
        """
        async with self._lock:
            if not self._require_open("upsert"):
                return False
            try:
                async with self._engine.begin() as conn:
                    created = await self._insert_event(conn, event)
            except SQLAlchemyError as e:
                self._record_failure("upsert", e)
                return False
        self.last_error = None
        return created

    async def upsert_batch(self, events: Sequence[LogEvent], scan_days: int = 0) -> int:
        """Insert a batch in one transaction and record one audit row.

        Duplicates are skipped individually. Returns the number of rows
        created; on failure the whole batch is rolled back and 0 is returned.
        """
        async with self._lock:
            if not self._require_open("upsert_batch"):
                return 0
            if not events:
                self.last_error = None
                return 0
            try:
                async with self._engine.begin() as conn:
                    inserted = 0
                    for event in events:
                        if await self._insert_event(conn, event):
                            inserted += 1
                    await conn.execute(
                        insert(ScanRun.__table__).values(
                            run_at=_now(), new_events=inserted, scan_days=scan_days,
                        )
                    )
            except SQLAlchemyError as e:
                self._record_failure("upsert_batch", e, batch_size=len(events))
                return 0

        self.last_error = None
        logger.info("batch_upserted", batch_size=len(events), inserted=inserted, scan_days=scan_days)
        return inserted

    async def _insert_event(self, conn, event: LogEvent) -> bool:
        # Only priorities 0-4 and real log lines are stored
        if not event.severity_group or event.is_diagnostic:
            logger.debug("event_rejected", priority=event.priority, unit=event.unit)
            return False
        stmt = (
            sqlite_insert(LogEventRow.__table__)
            .values(**self._row_values(event))
            .on_conflict_do_nothing(index_elements=["fingerprint"])
        )
        result = await conn.execute(stmt)
        return result.rowcount == 1

    def _row_values(self, event: LogEvent) -> dict:
        event_ts = epoch_seconds(event.timestamp)
        return {
            "fingerprint": compute_fingerprint(event.timestamp, event.unit, event.message),
            "event_timestamp": event_ts,
            "expires_at": event_ts + self._retention_days * SECONDS_PER_DAY,
            "source": event.source,
            "severity_group": event.severity_group,
            "priority": event.priority,
            "unit": event.unit,
            "pid": event.pid,
            "exe": event.exe,
            "cmdline": event.cmdline,
            "hostname": event.hostname,
            "boot_id": event.boot_id,
            "message": event.message,
            "message_id": event.message_id,
            "transport": event.transport,
            "cursor": event.cursor,
            "threat_count": event.threat_count,
            "max_threat_sev": event.max_threat_severity,
            "threat_json": encode_threats(event.threats),
        }

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_active(self) -> list[StoredEvent]:
        """All rows whose expiry is still in the future, newest first."""
        async with self._lock:
            if not self._require_open("load_active"):
                return []
            try:
                async with self._session_factory() as session:
                    result = await session.execute(
                        select(LogEventRow)
                        .where(LogEventRow.expires_at > _now())
                        .order_by(LogEventRow.event_timestamp.desc())
                    )
                    rows = result.scalars().all()
            except SQLAlchemyError as e:
                self._record_failure("load_active", e, publish=False)
                return []
        self.last_error = None
        return [self._to_event(row) for row in rows]

    @staticmethod
    def _to_event(row: LogEventRow) -> StoredEvent:
        return StoredEvent(
            source=row.source,
            timestamp=utc_from_epoch(row.event_timestamp),
            priority=row.priority,
            unit=row.unit or "",
            pid=row.pid or "",
            exe=row.exe or "",
            cmdline=row.cmdline or "",
            hostname=row.hostname or "",
            boot_id=row.boot_id or "",
            message=row.message or "",
            message_id=row.message_id or "",
            transport=row.transport or "",
            cursor=row.cursor or "",
            threats=decode_threats(row.threat_json),
            fingerprint=row.fingerprint,
            expires_at=utc_from_epoch(row.expires_at),
        )

    async def stats(self, recent_runs: int = 10) -> dict:
        stats = {
            "location": self.current_location(),
            "is_open": self.is_open(),
            "size_bytes": self.database_size_bytes(),
            "retention_days": self._retention_days,
            "active_events": 0,
            "total_events": 0,
            "recent_runs": [],
            "last_error": self.last_error,
        }
        if not self.is_open():
            return stats

        now = _now()
        async with self._lock:
            if self._session_factory is None:
                return stats
            try:
                async with self._session_factory() as session:
                    stats["total_events"] = (
                        await session.execute(select(func.count()).select_from(LogEventRow))
                    ).scalar_one()
                    stats["active_events"] = (
                        await session.execute(
                            select(func.count()).select_from(LogEventRow).where(LogEventRow.expires_at > now)
                        )
                    ).scalar_one()
                    runs = (
                        await session.execute(
                            select(ScanRun).order_by(ScanRun.id.desc()).limit(recent_runs)
                        )
                    ).scalars().all()
            except SQLAlchemyError as e:
                self._record_failure("stats", e, publish=False)
                stats["last_error"] = self.last_error
                return stats

        stats["recent_runs"] = [
            {
                "run_at": utc_from_epoch(run.run_at).isoformat(),
                "new_events": run.new_events,
                "scan_days": run.scan_days,
            }
            for run in runs
        ]
        return stats

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def purge_expired(self) -> int:
        """Delete rows whose expiry has passed. Returns the number removed."""
        async with self._lock:
            if not self._require_open("purge"):
                return 0
            try:
                async with self._engine.begin() as conn:
                    result = await conn.execute(
                        delete(LogEventRow.__table__).where(LogEventRow.__table__.c.expires_at <= _now())
                    )
                    removed = result.rowcount
            except SQLAlchemyError as e:
                self._record_failure("purge", e)
                return 0
            if removed > 0:
                await self._vacuum()

        self.last_error = None
        if removed > 0:
            logger.info("purge_complete", removed=removed)
            self._publish("purge_complete", {"removed": removed})
        return removed

    async def clear_all(self) -> bool:
        """Delete every event and audit row."""
        async with self._lock:
            if not self._require_open("clear"):
                return False
            try:
                async with self._engine.begin() as conn:
                    await conn.execute(delete(LogEventRow.__table__))
                    await conn.execute(delete(ScanRun.__table__))
            except SQLAlchemyError as e:
                self._record_failure("clear", e)
                return False
            await self._vacuum()

        self.last_error = None
        logger.info("store_cleared", location=self.current_location())
        self._publish("store_cleared", {"location": self.current_location()})
        return True

    async def _vacuum(self) -> None:
        # VACUUM cannot run inside a transaction
        autocommit = self._engine.execution_options(isolation_level="AUTOCOMMIT")
        try:
            async with autocommit.connect() as conn:
                await conn.execute(text("VACUUM"))
        except SQLAlchemyError as e:
            logger.warning("vacuum_failed", error=str(e))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_open(self, operation: str) -> bool:
        if self._engine is not None:
            return True
        self.last_error = "event store is not open"
        logger.debug("event_store_not_open", operation=operation)
        return False

    def _record_failure(self, operation: str, error: Exception, publish: bool = True, **context) -> None:
        self.last_error = f"{operation} failed: {error}"
        logger.error("event_store_error", operation=operation, error=str(error), **context)
        if publish:
            self._publish("database_error", {"operation": operation, "error": str(error), **context})

    def _publish(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, data)
