"""Domain and wire models."""

from .n8n import (
    N8nCredential,
    N8nWorkflow,
    N8nExecution,
    ConnectionTestResult,
    HealthProbe,
)
from .deployment import (
    DeploymentStage,
    CredentialInput,
    DeploymentConfig,
    DeploymentProgress,
    DeploymentResult,
)
from .credentials import (
    FieldKind,
    CredentialField,
    SimpleCredential,
    SpecialCredential,
    CredentialSchema,
)
from .health import (
    AlertSeverity,
    AlertType,
    HealthMonitorConfig,
    LastExecution,
    HealthDetails,
    HealthCheckResult,
    HealthAlert,
)

__all__ = [
    # n8n resources
    "N8nCredential",
    "N8nWorkflow",
    "N8nExecution",
    "ConnectionTestResult",
    "HealthProbe",
    # Deployment
    "DeploymentStage",
    "CredentialInput",
    "DeploymentConfig",
    "DeploymentProgress",
    "DeploymentResult",
    # Credential schema
    "FieldKind",
    "CredentialField",
    "SimpleCredential",
    "SpecialCredential",
    "CredentialSchema",
    # Health
    "AlertSeverity",
    "AlertType",
    "HealthMonitorConfig",
    "LastExecution",
    "HealthDetails",
    "HealthCheckResult",
    "HealthAlert",
]
