"""
PURPOSE: API router initialization and exports for momentum-sync.

Aggregates the API routers into a single api_router that is included in the
main FastAPI application. The webhook path stays at /webhook (no /api
prefix) because TradingView alert URLs are configured against it.
"""

from fastapi import APIRouter

from momentum_sync.api.routes_webhook import router as webhook_router

# Create the main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(webhook_router, tags=["webhook"])

__all__ = ["api_router"]
