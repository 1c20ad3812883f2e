# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: API - FastAPI routes
# PURPOSE: HTTP API for health and diagnostics snapshots
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the diagnostics sidecar.
"""

from .routes import router, set_services

__all__ = [
    "router",
    "set_services",
]
