"""Agent template routes."""

from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.models.base import CamelModel
from n8n_provisioner.services.credentials import InvalidTemplateError, extract_credentials

logger = get_logger(__name__)
router = APIRouter(prefix="/api/agents", tags=["agents"])


class CredentialExtractionRequest(CamelModel):
    template_json: Any


@router.post("/credentials")
async def extract_template_credentials(request: CredentialExtractionRequest) -> Dict[str, Any]:
    """Discover the credentials a workflow template needs."""
    try:
        schema = extract_credentials(request.template_json)
    except InvalidTemplateError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        **schema.model_dump(mode="json", by_alias=True),
        "total": schema.total,
        "requiresManualOauth": schema.requires_manual_oauth,
    }
