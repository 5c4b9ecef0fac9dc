"""
Insight endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends

from seattle311.models.batch import DataBatch
from seattle311.schemas.statistics import Insight
from seattle311.services.batch_store import get_current_batch
from seattle311.services.insights import derive_insights

router = APIRouter()


@router.get("", response_model=List[Insight])
async def get_insights(batch: DataBatch = Depends(get_current_batch)):
    """Rule-based findings for the current batch."""
    return derive_insights(batch.requests, batch.tracking)
