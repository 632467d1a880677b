"""Pydantic v2 models for n8n REST API resources."""

from typing import Any, Dict, List, Optional
from pydantic import ConfigDict, Field

from n8n_provisioner.models.base import CamelModel


class N8nCredential(CamelModel):
    """Credential resource as sent to and returned by n8n."""
    id: Optional[str] = None
    name: str = ""
    type: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class N8nWorkflow(CamelModel):
    """Workflow resource. Unknown keys (pinData, staticData, tags) are kept."""
    id: Optional[str] = None
    name: str = ""
    active: bool = False
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    connections: Dict[str, Any] = Field(default_factory=dict)
    settings: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class N8nExecution(CamelModel):
    """Execution record returned by /executions."""
    id: str
    finished: bool = False
    mode: str = ""
    started_at: Optional[str] = None
    stopped_at: Optional[str] = None
    workflow_id: Optional[str] = None
    status: str = "unknown"

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class ConnectionTestResult(CamelModel):
    """Outcome of an authenticated reachability test."""
    success: bool
    message: str
    status_code: Optional[int] = None


class HealthProbe(CamelModel):
    """Outcome of the unauthenticated /healthz probe."""
    healthy: bool
    latency_ms: Optional[int] = None
    error: Optional[str] = None
