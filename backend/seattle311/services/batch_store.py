"""
Holder of the currently published data batch.

Every refresh is tagged with a sequence number before it starts. Refreshes
run independently of each other and the one with the highest sequence wins:
a slower, older refresh that settles after a newer one is discarded instead of
overwriting it.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Optional

from fastapi import Depends, Request

from seattle311.core.config import settings
from seattle311.core.logging import refresh_seq_ctx
from seattle311.core.metrics import record_stale_batch
from seattle311.models.batch import DataBatch
from seattle311.services.ingestion import IngestionService

logger = logging.getLogger(__name__)


class BatchStore:
    """
    Sequenced, replace-only store for ``DataBatch`` values.

    Example usage:
        store = BatchStore(IngestionService(SocrataConnector()))
        batch = await store.refresh(2025)
    """

    def __init__(self, ingestion: IngestionService):
        self.ingestion = ingestion
        self._sequence = itertools.count(1)
        self._current: Optional[DataBatch] = None
        self._initial_load = asyncio.Lock()

    @property
    def current(self) -> Optional[DataBatch]:
        return self._current

    def next_sequence(self) -> int:
        return next(self._sequence)

    def publish(self, batch: DataBatch) -> bool:
        """
        Make ``batch`` current unless a newer one is already published.

        Returns:
            True when the batch was published, False when it was stale
        """
        current = self._current
        if current is not None and batch.sequence <= current.sequence:
            record_stale_batch()
            logger.info(
                "stale_batch_discarded",
                extra={"sequence": batch.sequence, "current_sequence": current.sequence},
            )
            return False

        self._current = batch
        logger.info(
            "batch_published",
            extra={
                "sequence": batch.sequence,
                "target_year": batch.target_year,
                "source": batch.source.value,
            },
        )
        return True

    async def refresh(self, target_year: Optional[int] = None) -> DataBatch:
        """
        Fetch a new batch and publish it if it is still the newest.

        Returns the batch that is current once this refresh has settled, which
        is a newer refresh's batch when this one turned out to be stale.
        """
        year = target_year or settings.TARGET_YEAR
        sequence = self.next_sequence()
        token = refresh_seq_ctx.set(str(sequence))
        try:
            batch = await self.ingestion.fetch_batch(year, sequence=sequence)
        finally:
            refresh_seq_ctx.reset(token)

        self.publish(batch)
        return self._current or batch

    async def ensure_loaded(self, target_year: Optional[int] = None) -> DataBatch:
        """Return the current batch, fetching one first if none matches ``target_year``."""
        year = target_year or settings.TARGET_YEAR
        current = self._current
        if current is not None and current.target_year == year:
            return current

        async with self._initial_load:
            current = self._current
            if current is not None and current.target_year == year:
                return current
            return await self.refresh(year)


def get_batch_store(request: Request) -> BatchStore:
    """FastAPI dependency returning the application's batch store."""
    return request.app.state.batch_store


async def get_current_batch(store: BatchStore = Depends(get_batch_store)) -> DataBatch:
    """FastAPI dependency yielding the published batch, loading one on first use."""
    current = store.current
    if current is not None:
        return current
    return await store.ensure_loaded()
