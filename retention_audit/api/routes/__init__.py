"""API routes."""

from retention_audit.api.routes.retention import router as retention_router

__all__ = ["retention_router"]
