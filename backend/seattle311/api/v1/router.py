"""
API v1 router - aggregates all endpoint routers.
"""

from fastapi import APIRouter

from seattle311.api.v1.endpoints import (
    batch_router,
    health_router,
    insights_router,
    requests_router,
    statistics_router,
    tracking_router,
)

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(batch_router, prefix="/batch", tags=["batch"])
api_router.include_router(statistics_router, prefix="/statistics", tags=["statistics"])
api_router.include_router(insights_router, prefix="/insights", tags=["insights"])
api_router.include_router(requests_router, prefix="/requests", tags=["requests"])
api_router.include_router(tracking_router, prefix="/tracking", tags=["tracking"])
