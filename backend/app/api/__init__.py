"""
API routes initialization.

This module aggregates all API routers and provides a single router
to include in the main application.
"""

from fastapi import APIRouter

from app.api.routes import diagnostics, items, runtime

# Create main API router
api_router = APIRouter()

# Consumer surface: items, stats, consumption
api_router.include_router(items.router)

# Diagnostics and provider health
api_router.include_router(diagnostics.router)

# Knobs, crawl trigger, lifecycle
api_router.include_router(runtime.router)
