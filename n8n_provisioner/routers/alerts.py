"""Health alert routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from n8n_provisioner.core.container import container
from n8n_provisioner.services.store import AlertNotFoundError, DeploymentStore

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(
    deployment_id: Optional[str] = Query(default=None, alias="deploymentId"),
    include_acknowledged: bool = Query(default=True, alias="includeAcknowledged"),
    store: DeploymentStore = Depends(lambda: container.store()),
):
    alerts = await store.list_alerts(deployment_id)
    if not include_acknowledged:
        alerts = [a for a in alerts if not a.acknowledged]
    return {"alerts": [a.model_dump(mode="json", by_alias=True) for a in alerts]}


@router.post("/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    store: DeploymentStore = Depends(lambda: container.store()),
):
    try:
        alerts = await store.acknowledge_alert(alert_id)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"acknowledged": len(alerts)}
