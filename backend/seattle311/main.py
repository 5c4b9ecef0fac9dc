"""
Seattle Customer Service Requests insights service - application entry point.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from prometheus_client import make_asgi_app

from seattle311.core.config import settings
from seattle311.api.v1.router import api_router
from seattle311.connectors.socrata import SocrataConnector
from seattle311.core.logging import RequestContextMiddleware, setup_logging
from seattle311.core.metrics import MetricsMiddleware
from seattle311.services.batch_store import BatchStore
from seattle311.services.ingestion import IngestionService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown."""
    # Startup
    setup_logging()
    socrata = SocrataConnector()
    app.state.batch_store = BatchStore(IngestionService(socrata))
    yield
    # Shutdown
    await socrata.close()


app = FastAPI(
    title="Seattle 311 Insights",
    description="Normalized Seattle Customer Service Requests with derived statistics and insights",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

# Mount Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "seattle-311-insights"}


@app.get("/")
async def root():
    """Root endpoint with system information."""
    return {
        "service": "Seattle 311 Insights",
        "version": "1.0.0",
        "docs": "/api/docs",
        "health": "/health",
        "metrics": "/metrics",
    }
