"""
Batch metadata and refresh endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from seattle311.models.batch import DataBatch
from seattle311.schemas.statistics import BatchInfo
from seattle311.services.batch_store import BatchStore, get_batch_store, get_current_batch

router = APIRouter()


def batch_info(batch: DataBatch) -> BatchInfo:
    """Describe a batch without its record payload."""
    return BatchInfo(
        sequence=batch.sequence,
        target_year=batch.target_year,
        source=batch.source,
        error=batch.error,
        fetched_at=batch.fetched_at,
        data_source=batch.data_source,
        request_count=len(batch.requests),
        tracking_count=len(batch.tracking),
        oldest_created=batch.oldest_created,
        newest_created=batch.newest_created,
    )


@router.get("", response_model=BatchInfo)
async def get_batch(batch: DataBatch = Depends(get_current_batch)):
    """Metadata of the currently published batch."""
    return batch_info(batch)


@router.post("/refresh", response_model=BatchInfo)
async def refresh_batch(
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Target year"),
    store: BatchStore = Depends(get_batch_store),
):
    """
    Fetch a fresh batch for ``year``.

    Concurrent refreshes are allowed; the response always describes the
    batch that is current once this refresh settles.
    """
    batch = await store.refresh(year)
    return batch_info(batch)
