"""
Domain models shared by ingestion, statistics and the API.
"""

from seattle311.models.service_request import RequestStatus, ServiceRequest, TrackingEvent
from seattle311.models.batch import BatchSource, DataBatch

__all__ = [
    "RequestStatus",
    "ServiceRequest",
    "TrackingEvent",
    "BatchSource",
    "DataBatch",
]
