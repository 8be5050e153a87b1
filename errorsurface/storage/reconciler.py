"""Fresh batch + persisted active set -> the list handed to consumers."""

from typing import Sequence

from ..models.entities import LogEvent
from ..utils.logging import get_logger
from .event_store import EventStore

logger = get_logger("storage.reconciler")


class MergeReconciler:
    """Commits a freshly collected batch and returns the store's active set.

    Because the store deduplicates on fingerprint, the returned list never
    contains the same event twice, however often overlapping batches are
    reconciled. With no usable store the fresh batch is passed through.

    Collector diagnostics (an unreadable kernel log, say) are stamped with the
    collection time, so they would fingerprint differently on every pass. They
    are never written; the current pass's diagnostics are merged into the
    returned list instead.
    """

    def __init__(self, store: EventStore):
        self._store = store

    async def reconcile(self, fresh: Sequence[LogEvent], scan_days: int = 0) -> list[LogEvent]:
        if not self._store.is_open():
            return list(fresh)

        diagnostics = [e for e in fresh if e.is_diagnostic]
        events = [e for e in fresh if not e.is_diagnostic]

        inserted = await self._store.upsert_batch(events, scan_days=scan_days)
        if self._store.last_error:
            logger.warning("reconcile_degraded", stage="upsert", error=self._store.last_error)
            return list(fresh)

        active = await self._store.load_active()
        if self._store.last_error:
            logger.warning("reconcile_degraded", stage="load", error=self._store.last_error)
            return list(fresh)

        logger.debug(
            "reconciled", fresh=len(fresh), inserted=inserted, active=len(active), diagnostics=len(diagnostics),
        )
        if not diagnostics:
            return list(active)
        return sorted([*diagnostics, *active], key=lambda e: e.timestamp, reverse=True)
