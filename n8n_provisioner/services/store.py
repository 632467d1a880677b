"""Deployment persistence interface and the in-memory implementation.

Durable storage lives outside this service; ``DeploymentStore`` is the seam
it plugs into. ``InMemoryDeploymentStore`` backs the HTTP API, the health
sweep and the tests.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from n8n_provisioner.constants import MAX_RECORDED_HEALTH_ERRORS, NOTIFY_AFTER_CONSECUTIVE_ERRORS
from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.models.base import CamelModel
from n8n_provisioner.models.health import HealthAlert, HealthCheckResult, HealthMonitorConfig, utc_now

logger = get_logger(__name__)

HEALTH_HISTORY_LIMIT = 100


class DeploymentNotFoundError(LookupError):
    pass


class AlertNotFoundError(LookupError):
    pass


class DeploymentStatus(str, Enum):
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    FAILED = "failed"
    PAUSED = "paused"
    ARCHIVED = "archived"


class HealthErrorEntry(CamelModel):
    timestamp: datetime
    message: str
    type: str = "health_check_failed"
    severity: str = "error"


class DeploymentHealth(CamelModel):
    """Rolling health state of one deployment. Starts optimistic."""
    last_checked: Optional[datetime] = None
    is_healthy: bool = True
    error_count: int = 0
    consecutive_errors: int = 0
    errors: List[HealthErrorEntry] = Field(default_factory=list)
    last_execution_status: Optional[str] = None


class HealthNotification(CamelModel):
    deployment_id: str
    title: str
    message: str
    severity: str = "error"
    created_at: datetime = Field(default_factory=utc_now)


class DeploymentRecord(CamelModel):
    deployment_id: str
    client_id: str
    agent_id: str
    workflow_name: str
    n8n_url: str = Field(alias="n8nUrl")
    n8n_api_key: str = Field(alias="n8nApiKey", repr=False, exclude=True)
    status: DeploymentStatus = DeploymentStatus.DEPLOYING
    workflow_id: Optional[str] = None
    workflow_url: Optional[str] = None
    error: Optional[str] = None
    health: DeploymentHealth = Field(default_factory=DeploymentHealth)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def monitor_config(self) -> HealthMonitorConfig:
        if not self.workflow_id:
            raise ValueError(f"Deployment {self.deployment_id} has no workflow")
        return HealthMonitorConfig(
            n8n_url=self.n8n_url,
            n8n_api_key=self.n8n_api_key,
            workflow_id=self.workflow_id,
            deployment_id=self.deployment_id,
            client_id=self.client_id,
            agent_id=self.agent_id,
        )


class DeploymentStore(ABC):
    """Persistence operations the service needs."""

    @abstractmethod
    async def save_deployment(self, record: DeploymentRecord) -> DeploymentRecord: ...

    @abstractmethod
    async def get_deployment(self, deployment_id: str) -> Optional[DeploymentRecord]: ...

    @abstractmethod
    async def update_status(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        *,
        workflow_id: Optional[str] = None,
        workflow_url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> DeploymentRecord: ...

    @abstractmethod
    async def list_deployed(self) -> List[DeploymentRecord]: ...

    @abstractmethod
    async def record_health(
        self,
        deployment_id: str,
        result: HealthCheckResult,
        alerts: List[HealthAlert],
    ) -> Optional[HealthNotification]: ...

    @abstractmethod
    async def get_health_history(self, deployment_id: str, limit: int = 20) -> List[HealthCheckResult]: ...

    @abstractmethod
    async def list_alerts(self, deployment_id: Optional[str] = None) -> List[HealthAlert]: ...

    @abstractmethod
    async def acknowledge_alert(self, alert_id: str) -> List[HealthAlert]: ...


class InMemoryDeploymentStore(DeploymentStore):
    """Process-local store. Contents are lost on restart."""

    def __init__(self):
        self._deployments: Dict[str, DeploymentRecord] = {}
        self._history: Dict[str, List[HealthCheckResult]] = {}
        # alert ids are only millisecond-unique, so several alerts may share one
        self._alerts: List[HealthAlert] = []
        self.notifications: List[HealthNotification] = []
        self._lock = asyncio.Lock()

    async def save_deployment(self, record: DeploymentRecord) -> DeploymentRecord:
        async with self._lock:
            self._deployments[record.deployment_id] = record
        logger.info("Deployment saved", deployment_id=record.deployment_id, status=record.status.value)
        return record

    async def get_deployment(self, deployment_id: str) -> Optional[DeploymentRecord]:
        return self._deployments.get(deployment_id)

    def _require(self, deployment_id: str) -> DeploymentRecord:
        record = self._deployments.get(deployment_id)
        if record is None:
            raise DeploymentNotFoundError(f"Deployment not found: {deployment_id}")
        return record

    async def update_status(self, deployment_id, status, *, workflow_id=None, workflow_url=None, error=None):
        async with self._lock:
            record = self._require(deployment_id)
            record.status = status
            if workflow_id is not None:
                record.workflow_id = workflow_id
            if workflow_url is not None:
                record.workflow_url = workflow_url
            record.error = error
            record.updated_at = utc_now()
        logger.info("Deployment status updated", deployment_id=deployment_id, status=status.value)
        return record

    async def list_deployed(self) -> List[DeploymentRecord]:
        return [r for r in self._deployments.values() if r.status == DeploymentStatus.DEPLOYED]

    async def record_health(self, deployment_id, result, alerts):
        """Store one check and fold it into the deployment's health state.

        A healthy check resets the error counters and resolves open alerts.
        A notification is raised when the deployment turns unhealthy after
        being healthy, or keeps failing past the consecutive-error limit.
        """
        async with self._lock:
            record = self._require(deployment_id)
            previous = record.health.model_copy(deep=True)

            history = self._history.setdefault(deployment_id, [])
            history.insert(0, result)
            del history[HEALTH_HISTORY_LIMIT:]

            health = record.health
            errors = list(health.errors)
            if not result.is_healthy and result.error:
                errors.append(HealthErrorEntry(timestamp=result.timestamp, message=result.error))
                errors = errors[-MAX_RECORDED_HEALTH_ERRORS:]

            health.last_checked = result.timestamp
            health.is_healthy = result.is_healthy
            health.error_count = 0 if result.is_healthy else previous.error_count + 1
            health.consecutive_errors = 0 if result.is_healthy else previous.consecutive_errors + 1
            health.errors = errors
            if result.last_execution is not None:
                health.last_execution_status = result.last_execution.status

            if result.is_healthy:
                for alert in self._alerts:
                    if alert.deployment_id == deployment_id and alert.resolved_at is None:
                        alert.resolved_at = result.timestamp
            self._alerts.extend(alerts)

            notification = None
            if not result.is_healthy and (
                previous.is_healthy or previous.consecutive_errors >= NOTIFY_AFTER_CONSECUTIVE_ERRORS
            ):
                notification = HealthNotification(
                    deployment_id=deployment_id,
                    title=f"Health Check Failed: {record.workflow_name}",
                    message=result.error or "Unknown health check error",
                )
                self.notifications.append(notification)

        if notification is not None:
            logger.warning("Health notification raised", deployment_id=deployment_id,
                           consecutive_errors=health.consecutive_errors)
        return notification

    async def get_health_history(self, deployment_id: str, limit: int = 20) -> List[HealthCheckResult]:
        return list(self._history.get(deployment_id, [])[:limit])

    async def list_alerts(self, deployment_id: Optional[str] = None) -> List[HealthAlert]:
        if deployment_id is None:
            return list(self._alerts)
        return [a for a in self._alerts if a.deployment_id == deployment_id]

    async def acknowledge_alert(self, alert_id: str) -> List[HealthAlert]:
        async with self._lock:
            matched = [a for a in self._alerts if a.id == alert_id]
            if not matched:
                raise AlertNotFoundError(f"Alert not found: {alert_id}")
            for alert in matched:
                alert.acknowledged = True
        return matched
