"""
FastAPI service for provisioning agent templates into n8n instances.

Exposes connection tests, credential discovery, deployment with rollback and
health monitoring of deployed workflows.
"""

from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, ORJSONResponse

from n8n_provisioner import __version__
from n8n_provisioner.core.container import container
from n8n_provisioner.core.logging import configure_logging, get_logger
from n8n_provisioner.routers import agents, alerts, deployments, n8n
from n8n_provisioner.services.scheduler import (
    get_job_info,
    shutdown_scheduler,
    start_health_monitoring,
    stop_health_monitoring,
)
from n8n_provisioner.services.store import DeploymentNotFoundError

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)


def _record_client(record):
    return container.n8n_client(base_url=record.n8n_url, api_key=record.n8n_api_key)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info("Starting n8n provisioner", version=__version__)

    if settings.health_check_enabled:
        start_health_monitoring(
            container.store(),
            interval_seconds=settings.health_check_interval,
            client_factory=_record_client,
        )

    logger.info("Services started successfully",
                managed_instance=settings.has_managed_instance,
                health_check_enabled=settings.health_check_enabled)
    yield

    # Shutdown
    if settings.health_check_enabled:
        stop_health_monitoring()
    shutdown_scheduler()
    logger.info("Services shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="n8n Provisioner",
    version=__version__,
    description="Deploys agent templates into n8n with rollback, and monitors their health",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


@app.exception_handler(DeploymentNotFoundError)
async def deployment_not_found_handler(request: Request, exc: DeploymentNotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


# Include routers
app.include_router(n8n.router)
app.include_router(agents.router)
app.include_router(deployments.router)
app.include_router(alerts.router)


@app.get("/health")
async def health_check():
    """Service liveness."""
    return {
        "status": "OK",
        "service": "n8n-provisioner",
        "version": __version__,
        "environment": "development" if settings.debug else "production",
        "managed_instance": settings.has_managed_instance,
        "health_monitoring": {
            "enabled": settings.health_check_enabled,
            "job": get_job_info(),
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def run():
    import uvicorn
    logger.info("Starting n8n provisioner",
                host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "n8n_provisioner.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
