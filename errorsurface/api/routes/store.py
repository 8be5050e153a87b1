"""Event store control routes: stats, retention, purge, clear, location."""

from fastapi import APIRouter, Depends, HTTPException, status

from ...bridge.contracts import (
    ClearResponse,
    LocationRequest,
    LocationResponse,
    PurgeResponse,
    RetentionRequest,
    RetentionResponse,
    StoreStatsResponse,
)
from ...dependencies import get_open_store, get_store
from ...storage.event_store import EventStore
from ...utils.logging import get_logger

logger = get_logger("api.store")

router = APIRouter(prefix="/store", tags=["store"])


@router.get("/stats", response_model=StoreStatsResponse)
async def get_store_stats(store: EventStore = Depends(get_store)):
    """Location, size and row counts. Works with a closed store too."""
    return await store.stats()


@router.put("/retention", response_model=RetentionResponse)
async def set_retention(body: RetentionRequest, store: EventStore = Depends(get_store)):
    """Retention for rows written from now on; stored rows keep their expiry."""
    return RetentionResponse(retention_days=store.set_retention_days(body.days))


@router.post("/purge", response_model=PurgeResponse)
async def purge_expired(store: EventStore = Depends(get_open_store)):
    removed = await store.purge_expired()
    if store.last_error:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=store.last_error)
    return PurgeResponse(removed=removed)


@router.post("/clear", response_model=ClearResponse)
async def clear_store(store: EventStore = Depends(get_open_store)):
    cleared = await store.clear_all()
    if not cleared:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=store.last_error or "Failed to clear the event store",
        )
    logger.info("store_cleared_via_api")
    return ClearResponse(cleared=True)


@router.put("/location", response_model=LocationResponse)
async def set_location(body: LocationRequest, store: EventStore = Depends(get_store)):
    """Switch to the database at ``path``, creating it if needed."""
    opened = await store.open(body.path)
    return LocationResponse(
        opened=opened,
        location=store.current_location(),
        error=None if opened else store.last_error,
    )
