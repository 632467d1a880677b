"""Health checks and alerting for deployed workflows."""

from .alerts import generate_alerts
from .monitor import (
    ExecutionMetrics,
    HealthMonitor,
    UNREACHABLE_ERROR,
    calculate_metrics,
    create_health_monitor,
    perform_health_check,
    round_half_up,
)

__all__ = [
    "generate_alerts",
    "ExecutionMetrics",
    "HealthMonitor",
    "UNREACHABLE_ERROR",
    "calculate_metrics",
    "create_health_monitor",
    "perform_health_check",
    "round_half_up",
]
