"""n8n instance routes: connection test and workflow listing."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from n8n_provisioner.core.config import Settings
from n8n_provisioner.core.container import container
from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.models.base import CamelModel
from n8n_provisioner.models.n8n import ConnectionTestResult
from n8n_provisioner.services.n8n import N8nApiError, N8nConnectionError

logger = get_logger(__name__)
router = APIRouter(prefix="/api/n8n", tags=["n8n"])


class ConnectionTestRequest(CamelModel):
    url: str = Field(min_length=1)
    api_key: str = Field(min_length=1)


class WorkflowListRequest(CamelModel):
    url: Optional[str] = None
    api_key: Optional[str] = None
    active: Optional[bool] = None


@router.post("/test-connection", response_model=ConnectionTestResult, response_model_by_alias=True)
async def test_connection(request: ConnectionTestRequest):
    """Check that an n8n instance is reachable with the given API key."""
    client = container.n8n_client(base_url=request.url, api_key=request.api_key)
    result = await client.test_connection()
    logger.info("Connection test", url=request.url, success=result.success, status_code=result.status_code)
    return result


@router.post("/workflows")
async def list_workflows(
    request: WorkflowListRequest,
    settings: Settings = Depends(lambda: container.settings())
):
    """List workflows on an instance, defaulting to the managed one."""
    url = request.url or settings.n8n_instance_url
    api_key = request.api_key or settings.n8n_api_key
    if not url or not api_key:
        raise HTTPException(
            status_code=400,
            detail="n8n is not configured. Provide url and apiKey or set N8N_INSTANCE_URL and N8N_API_KEY."
        )

    client = container.n8n_client(base_url=url, api_key=api_key)
    try:
        workflows = await client.get_workflows(active=request.active)
    except N8nApiError as e:
        if e.status_code == 401:
            raise HTTPException(status_code=401, detail="Authentication failed. Check your n8n API key.")
        raise HTTPException(status_code=e.status_code, detail=f"Failed to fetch workflows: {e.message}")
    except N8nConnectionError as e:
        logger.warning("n8n unreachable", url=url, error=e.message)
        raise HTTPException(status_code=502, detail="Cannot reach n8n instance. Check the URL.")

    return {
        "workflows": [
            {
                "id": wf.id,
                "name": wf.name,
                "active": wf.active,
                "createdAt": getattr(wf, "createdAt", None),
                "updatedAt": getattr(wf, "updatedAt", None),
            }
            for wf in workflows
        ]
    }
