"""Diagnostic Retention Compliance Auditor - HTTP API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from retention_audit.api.routes import retention_router
from retention_audit.api.routes.retention import load_policy_repository
from retention_audit.compliance.policy import PolicyValidationError
from retention_audit.core.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate the configured retention policy on startup."""
    logger.info(f"Starting {settings.app_name} ({settings.environment})...")

    try:
        repository = load_policy_repository(
            settings.policy_path, tuple(settings.mandatory_resource_kinds)
        )
        logger.info(f"Retention policy {repository.policy.version} ready")
    except PolicyValidationError as e:
        # Policy endpoints answer 500 with the violation list until it is fixed
        logger.error(f"Retention policy is invalid: {e}")

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Evaluates diagnostic-logging retention of cloud resources "
                "against a declarative retention policy.",
    lifespan=lifespan,
)

app.include_router(retention_router)


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a JSON 500 for anything the routes did not handle."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "retention_audit.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
