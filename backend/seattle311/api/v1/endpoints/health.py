"""
Health check endpoints.
"""

from typing import Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from seattle311.services.batch_store import BatchStore, get_batch_store

router = APIRouter()


@router.get("/liveness", status_code=status.HTTP_200_OK)
async def liveness() -> Dict[str, str]:
    """Simple liveness probe."""
    return {"status": "alive"}


@router.get("/readiness")
async def readiness(store: BatchStore = Depends(get_batch_store)):
    """Readiness probe that reports whether a data batch has been published."""
    batch = store.current
    if batch is None:
        checks = {"batch": {"status": "fail", "reason": "no batch loaded"}}
        overall_status = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        checks = {
            "batch": {
                "status": "pass",
                "source": batch.source.value,
                "sequence": str(batch.sequence),
            }
        }
        overall_status = status.HTTP_200_OK

    body = {
        "status": "ready" if overall_status == status.HTTP_200_OK else "not_ready",
        "checks": checks,
    }
    return JSONResponse(status_code=overall_status, content=body)
