"""
Main API router aggregator
"""
from fastapi import APIRouter

from docguard.api.v1.endpoints import (
    analysis,
    batch,
    dashboard,
    documents,
    health,
    notifications,
    review,
    scans,
)

api_router = APIRouter()

# Include routers
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(analysis.router, prefix="/analysis", tags=["Analysis"])
api_router.include_router(batch.router, prefix="/batch", tags=["Batch"])
api_router.include_router(scans.router, prefix="/scans", tags=["Scan Results"])
api_router.include_router(review.router, prefix="/review", tags=["Review"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])
