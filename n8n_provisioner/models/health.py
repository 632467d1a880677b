"""Health check and alert models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import Field

from n8n_provisioner.models.base import CamelModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AlertType(str, Enum):
    WORKFLOW_INACTIVE = "workflow_inactive"
    EXECUTION_FAILED = "execution_failed"
    CONNECTION_LOST = "connection_lost"
    HIGH_FAILURE_RATE = "high_failure_rate"
    SLOW_EXECUTION = "slow_execution"


class HealthMonitorConfig(CamelModel):
    """Everything needed to check one deployed workflow."""
    n8n_url: str = Field(alias="n8nUrl")
    n8n_api_key: str = Field(alias="n8nApiKey", repr=False)
    workflow_id: str
    deployment_id: str
    client_id: str
    agent_id: str


class LastExecution(CamelModel):
    id: str
    status: str
    started_at: Optional[str] = None
    finished_at: Optional[str] = None


class HealthDetails(CamelModel):
    workflow_active: bool
    recent_executions: int
    success_rate: int = Field(ge=0, le=100)
    avg_execution_time_ms: int = 0


class HealthCheckResult(CamelModel):
    """Point-in-time health snapshot for one deployment."""
    deployment_id: str
    workflow_id: str
    is_healthy: bool
    timestamp: datetime = Field(default_factory=utc_now)
    latency_ms: Optional[int] = None
    last_execution: Optional[LastExecution] = None
    error: Optional[str] = None
    details: Optional[HealthDetails] = None


class HealthAlert(CamelModel):
    """Actionable condition derived from one health check."""
    id: str
    deployment_id: str
    client_id: str
    agent_id: str
    severity: AlertSeverity
    type: AlertType
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    acknowledged: bool = False
    resolved_at: Optional[datetime] = None
