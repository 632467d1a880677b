"""Deployment routes: deploy an agent, check and inspect deployment health."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field

from n8n_provisioner.core.config import Settings
from n8n_provisioner.core.container import container
from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.models.base import CamelModel
from n8n_provisioner.models.deployment import DeploymentConfig, DeploymentProgress
from n8n_provisioner.services.deployment import DeploymentEngine, RetryPolicy
from n8n_provisioner.services.health import HealthMonitor
from n8n_provisioner.services.store import DeploymentRecord, DeploymentStatus, DeploymentStore

logger = get_logger(__name__)
router = APIRouter(prefix="/api/deployments", tags=["deployments"])

MISSING_INSTANCE_ERROR = (
    "No n8n instance configured: provide n8nUrl and n8nApiKey, "
    "or set N8N_INSTANCE_URL and N8N_API_KEY for the managed instance"
)


class DeployRequest(CamelModel):
    deployment_id: str = Field(min_length=1)
    config: DeploymentConfig


def _resolve_target(config: DeploymentConfig, settings: Settings) -> DeploymentConfig:
    """Fall back to the managed instance when the request names no target."""
    if config.n8n_url and config.n8n_api_key:
        return config
    if not settings.has_managed_instance:
        return config
    return config.model_copy(update={
        "n8n_url": settings.n8n_instance_url,
        "n8n_api_key": settings.n8n_api_key,
    })


@router.post("")
async def create_deployment(
    request: DeployRequest,
    settings: Settings = Depends(lambda: container.settings()),
    store: DeploymentStore = Depends(lambda: container.store()),
    retry_policy: RetryPolicy = Depends(lambda: container.retry_policy()),
):
    """Deploy an agent template and record the outcome."""
    config = _resolve_target(request.config, settings)

    record = DeploymentRecord(
        deployment_id=request.deployment_id,
        client_id=config.client_id,
        agent_id=config.agent_id,
        workflow_name=config.workflow_name,
        n8n_url=config.n8n_url,
        n8n_api_key=config.n8n_api_key,
    )
    await store.save_deployment(record)

    if not config.n8n_url or not config.n8n_api_key:
        await store.update_status(request.deployment_id, DeploymentStatus.FAILED, error=MISSING_INSTANCE_ERROR)
        raise HTTPException(status_code=400, detail=MISSING_INSTANCE_ERROR)

    progress: List[DeploymentProgress] = []
    engine = DeploymentEngine(
        config,
        progress.append,
        client=container.n8n_client(base_url=config.n8n_url, api_key=config.n8n_api_key),
        retry_policy=retry_policy,
    )
    result = await engine.deploy()

    if result.success:
        await store.update_status(
            request.deployment_id,
            DeploymentStatus.DEPLOYED,
            workflow_id=result.workflow_id,
            workflow_url=result.workflow_url,
        )
    else:
        await store.update_status(request.deployment_id, DeploymentStatus.FAILED, error=result.error)

    logger.info("Deployment finished", deployment_id=request.deployment_id, success=result.success)
    return {
        "result": result.model_dump(mode="json", by_alias=True),
        "progress": [p.to_dict() for p in progress],
    }


async def _get_record(deployment_id: str, store: DeploymentStore) -> DeploymentRecord:
    record = await store.get_deployment(deployment_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Deployment not found: {deployment_id}")
    return record


@router.get("/{deployment_id}")
async def get_deployment(
    deployment_id: str,
    store: DeploymentStore = Depends(lambda: container.store()),
) -> Dict[str, Any]:
    record = await _get_record(deployment_id, store)
    return record.model_dump(mode="json", by_alias=True)


@router.post("/{deployment_id}/health")
async def check_deployment_health(
    deployment_id: str,
    store: DeploymentStore = Depends(lambda: container.store()),
):
    """Run a health check now and record it."""
    record = await _get_record(deployment_id, store)
    if not record.workflow_id:
        raise HTTPException(status_code=409, detail=f"Deployment {deployment_id} has no workflow to check")

    monitor = HealthMonitor(
        record.monitor_config(),
        client=container.n8n_client(base_url=record.n8n_url, api_key=record.n8n_api_key),
    )
    result = await monitor.check_health()
    alerts = monitor.generate_alerts(result)
    await store.record_health(deployment_id, result, alerts)

    return {
        "result": result.model_dump(mode="json", by_alias=True),
        "alerts": [a.model_dump(mode="json", by_alias=True) for a in alerts],
    }


@router.get("/{deployment_id}/health")
async def get_health_history(
    deployment_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    store: DeploymentStore = Depends(lambda: container.store()),
):
    await _get_record(deployment_id, store)
    history = await store.get_health_history(deployment_id, limit=limit)
    return {"history": [h.model_dump(mode="json", by_alias=True) for h in history]}
