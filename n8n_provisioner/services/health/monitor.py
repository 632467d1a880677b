"""Health monitor for one deployed workflow."""

import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from n8n_provisioner.constants import EXECUTION_SUCCESS_STATUS, HEALTH_EXECUTION_WINDOW, HEALTHY_SUCCESS_RATE
from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.models.health import (
    HealthAlert,
    HealthCheckResult,
    HealthDetails,
    HealthMonitorConfig,
    LastExecution,
)
from n8n_provisioner.models.n8n import N8nExecution
from n8n_provisioner.services.n8n import N8nError, RemoteAutomationClient, create_n8n_client
from .alerts import generate_alerts

logger = get_logger(__name__)

UNREACHABLE_ERROR = "n8n instance is unreachable"


def round_half_up(value: float) -> int:
    """Round .5 up (away from zero for positive values), unlike ``round``."""
    return math.floor(value + 0.5)


@dataclass
class ExecutionMetrics:
    recent_executions: int
    success_rate: int
    avg_execution_time_ms: int


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    # n8n omits the offset on some versions; those times are UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calculate_metrics(executions: Sequence[N8nExecution]) -> ExecutionMetrics:
    """Success rate and average duration over an execution window.

    An empty window counts as 100% successful: nothing has failed. Only
    executions with both a start and a stop time contribute to the average.
    """
    if not executions:
        return ExecutionMetrics(recent_executions=0, success_rate=100, avg_execution_time_ms=0)

    successful = sum(1 for e in executions if e.status == EXECUTION_SUCCESS_STATUS)
    success_rate = round_half_up(successful / len(executions) * 100)

    durations: List[float] = []
    for execution in executions:
        started = _parse_timestamp(execution.started_at)
        stopped = _parse_timestamp(execution.stopped_at)
        if started and stopped:
            durations.append((stopped - started).total_seconds() * 1000)

    avg = round_half_up(sum(durations) / len(durations)) if durations else 0

    return ExecutionMetrics(
        recent_executions=len(executions),
        success_rate=success_rate,
        avg_execution_time_ms=avg,
    )


class HealthMonitor:
    """Checks a single deployment. Keeps no state between checks."""

    def __init__(self, config: HealthMonitorConfig, client: Optional[RemoteAutomationClient] = None):
        self.config = config
        self.client = client or create_n8n_client(config.n8n_url, config.n8n_api_key)

    async def check_health(self) -> HealthCheckResult:
        """Perform a health check.

        Never raises: any failure while probing, fetching or computing
        metrics comes back as an unhealthy result carrying the error text.
        Cancellation still propagates.
        """
        start_time = time.perf_counter()

        def elapsed_ms() -> int:
            return round((time.perf_counter() - start_time) * 1000)

        try:
            return await self._check(elapsed_ms)
        except Exception as e:
            log = logger.warning if isinstance(e, N8nError) else logger.exception
            log("Health check failed", deployment_id=self.config.deployment_id,
                workflow_id=self.config.workflow_id, error=str(e))
            return self._result(is_healthy=False, latency_ms=elapsed_ms(), error=str(e) or type(e).__name__)

    async def _check(self, elapsed_ms: Callable[[], int]) -> HealthCheckResult:
        # 1. Is n8n reachable at all
        probe = await self.client.health_check()
        if not probe.healthy:
            error = f"{UNREACHABLE_ERROR}: {probe.error}" if probe.error else UNREACHABLE_ERROR
            logger.warning("n8n unreachable", deployment_id=self.config.deployment_id, error=probe.error)
            return self._result(is_healthy=False, latency_ms=elapsed_ms(), error=error)

        # 2-3. Workflow state and recent executions
        workflow = await self.client.get_workflow(self.config.workflow_id)
        executions = await self.client.get_executions(self.config.workflow_id, limit=HEALTH_EXECUTION_WINDOW)

        metrics = calculate_metrics(executions)
        is_healthy = (
            workflow.active
            and metrics.success_rate >= HEALTHY_SUCCESS_RATE
            and metrics.recent_executions > 0
        )

        last_execution = None
        if executions:
            latest = executions[0]
            last_execution = LastExecution(
                id=latest.id,
                status=latest.status,
                started_at=latest.started_at,
                finished_at=latest.stopped_at,
            )

        result = self._result(
            is_healthy=is_healthy,
            latency_ms=elapsed_ms(),
            last_execution=last_execution,
            details=HealthDetails(
                workflow_active=workflow.active,
                recent_executions=metrics.recent_executions,
                success_rate=metrics.success_rate,
                avg_execution_time_ms=metrics.avg_execution_time_ms,
            ),
        )
        logger.debug("Health check completed", deployment_id=self.config.deployment_id,
                     is_healthy=is_healthy, success_rate=metrics.success_rate)
        return result

    def generate_alerts(self, result: HealthCheckResult) -> List[HealthAlert]:
        return generate_alerts(result, self.config)

    def _result(self, **kwargs) -> HealthCheckResult:
        return HealthCheckResult(
            deployment_id=self.config.deployment_id,
            workflow_id=self.config.workflow_id,
            **kwargs,
        )


def create_health_monitor(config: HealthMonitorConfig,
                          client: Optional[RemoteAutomationClient] = None) -> HealthMonitor:
    return HealthMonitor(config, client=client)


async def perform_health_check(config: HealthMonitorConfig,
                               client: Optional[RemoteAutomationClient] = None) -> HealthCheckResult:
    """Perform a one-time health check."""
    return await create_health_monitor(config, client).check_health()
