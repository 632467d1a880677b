"""Alert derivation from a health check result."""

import time
from typing import List, Optional

from n8n_provisioner.constants import (
    CRITICAL_SUCCESS_RATE,
    EXECUTION_ERROR_STATUSES,
    HEALTHY_SUCCESS_RATE,
    SLOW_EXECUTION_THRESHOLD_MS,
    UNREACHABLE_MARKER,
)
from n8n_provisioner.models.health import (
    AlertSeverity,
    AlertType,
    HealthAlert,
    HealthCheckResult,
    HealthMonitorConfig,
    utc_now,
)

# alert id suffix per alert type
_ID_SUFFIX = {
    AlertType.CONNECTION_LOST: "connection",
    AlertType.WORKFLOW_INACTIVE: "inactive",
    AlertType.HIGH_FAILURE_RATE: "failures",
    AlertType.SLOW_EXECUTION: "slow",
    AlertType.EXECUTION_FAILED: "execfail",
}


def generate_alerts(result: HealthCheckResult, config: HealthMonitorConfig) -> List[HealthAlert]:
    """Derive alerts for one check.

    Only the alert ids and timestamps depend on the clock; which alerts are
    raised is a function of ``result`` alone. A result with no problem
    condition yields an empty list.
    """
    now = utc_now()
    stamp = int(time.time() * 1000)
    alerts: List[HealthAlert] = []

    def add(alert_type: AlertType, severity: AlertSeverity, message: str) -> None:
        alerts.append(HealthAlert(
            id=f"alert-{stamp}-{_ID_SUFFIX[alert_type]}",
            deployment_id=config.deployment_id,
            client_id=config.client_id,
            agent_id=config.agent_id,
            severity=severity,
            type=alert_type,
            message=message,
            timestamp=now,
        ))

    if result.error and UNREACHABLE_MARKER in result.error:
        add(AlertType.CONNECTION_LOST, AlertSeverity.CRITICAL, "Cannot reach n8n instance")

    details = result.details
    if details is not None:
        if not details.workflow_active:
            add(AlertType.WORKFLOW_INACTIVE, AlertSeverity.WARNING, "Workflow is not active")

        if details.success_rate < HEALTHY_SUCCESS_RATE:
            severity = AlertSeverity.CRITICAL if details.success_rate < CRITICAL_SUCCESS_RATE else AlertSeverity.ERROR
            add(AlertType.HIGH_FAILURE_RATE, severity,
                f"High failure rate: {100 - details.success_rate}% of recent executions failed")

        if details.avg_execution_time_ms > SLOW_EXECUTION_THRESHOLD_MS:
            add(AlertType.SLOW_EXECUTION, AlertSeverity.WARNING,
                f"Slow execution time: {_seconds(details.avg_execution_time_ms)}s average")

    last: Optional[str] = result.last_execution.status if result.last_execution else None
    if last in EXECUTION_ERROR_STATUSES:
        add(AlertType.EXECUTION_FAILED, AlertSeverity.ERROR, "Last workflow execution failed")

    return alerts


def _seconds(milliseconds: int) -> int:
    return (milliseconds + 500) // 1000
