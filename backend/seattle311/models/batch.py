"""
Immutable snapshot of one ingestion run.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from seattle311.models.service_request import ServiceRequest, TrackingEvent


class BatchSource(str, Enum):
    LIVE = "live"
    SAMPLE = "sample"


class DataBatch(BaseModel):
    """
    The hand-off structure every consumer reads.

    Batches are replaced wholesale on refresh, never merged. ``sequence``
    orders refreshes so a slow, older refresh cannot replace a newer one.
    """

    model_config = ConfigDict(frozen=True)

    sequence: int
    target_year: int
    source: BatchSource
    error: Optional[str] = None
    fetched_at: datetime
    data_source: str
    requests: Tuple[ServiceRequest, ...] = ()
    tracking: Tuple[TrackingEvent, ...] = ()

    @property
    def is_sample(self) -> bool:
        return self.source is BatchSource.SAMPLE

    @property
    def oldest_created(self) -> Optional[datetime]:
        # requests are stored newest first
        return self.requests[-1].created_date if self.requests else None

    @property
    def newest_created(self) -> Optional[datetime]:
        return self.requests[0].created_date if self.requests else None
