"""
Convenience exports for API v1 endpoint routers.

This allows ``from seattle311.api.v1.endpoints import batch_router`` style
imports used by the aggregate router module.
"""

from .health import router as health_router
from .batch import router as batch_router
from .statistics import router as statistics_router
from .insights import router as insights_router
from .requests import router as requests_router
from .tracking import router as tracking_router

__all__ = [
    "health_router",
    "batch_router",
    "statistics_router",
    "insights_router",
    "requests_router",
    "tracking_router",
]
