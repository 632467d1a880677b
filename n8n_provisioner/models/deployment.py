"""Deployment input, progress and result models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import ConfigDict, Field

from n8n_provisioner.models.base import CamelModel


class DeploymentStage(str, Enum):
    """Deployment pipeline stages.

    State transitions:
        INITIALIZING -> CREATING_CREDENTIALS -> GENERATING_WORKFLOW
                     -> DEPLOYING -> ACTIVATING -> COMPLETED
        any stage    -> ROLLING_BACK -> FAILED
    """
    INITIALIZING = "initializing"
    CREATING_CREDENTIALS = "creating_credentials"
    GENERATING_WORKFLOW = "generating_workflow"
    DEPLOYING = "deploying"
    ACTIVATING = "activating"
    COMPLETED = "completed"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStage.COMPLETED, DeploymentStage.FAILED)


class CredentialInput(CamelModel):
    """A secret to create on the target instance."""
    type: str = Field(min_length=1)      # n8n credential type, e.g. "openAiApi"
    name: str = Field(min_length=1)      # display name in n8n
    data: Dict[str, Any] = Field(default_factory=dict)


class DeploymentConfig(CamelModel):
    """Immutable input to one deployment attempt."""
    client_id: str
    agent_id: str
    n8n_url: str = Field(default="", alias="n8nUrl")      # empty: use the managed instance
    n8n_api_key: str = Field(default="", alias="n8nApiKey", repr=False)
    credentials: List[CredentialInput] = Field(default_factory=list)
    template_json: Dict[str, Any]
    workflow_name: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)


@dataclass
class DeploymentProgress:
    """Progress notification. Observational only, never authoritative."""
    stage: DeploymentStage
    percent: int
    message: str
    detail: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "stage": self.stage.value,
            "percent": self.percent,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.detail is not None:
            d["detail"] = self.detail
        return d


class DeploymentResult(CamelModel):
    """Terminal value of one deployment attempt."""
    success: bool
    workflow_id: Optional[str] = None
    workflow_url: Optional[str] = None
    created_credential_ids: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    error_detail: Optional[str] = None
    rollback_errors: List[str] = Field(default_factory=list)
