"""Agent deployment pipeline: engine, retry policy and progress channel."""

from .exceptions import (
    DeploymentError,
    ConnectionFailedError,
    CredentialCreationFailedError,
    WorkflowGenerationError,
    WorkflowCreationFailedError,
    WorkflowActivationFailedError,
)
from .retry import ErrorClass, RetryPolicy, NO_RETRY, classify_error, retry_call
from .progress import ProgressChannel
from .engine import (
    CredentialBindings,
    DeploymentEngine,
    ProgressCallback,
    deploy_agent,
    test_n8n_connection,
)

__all__ = [
    "DeploymentError",
    "ConnectionFailedError",
    "CredentialCreationFailedError",
    "WorkflowGenerationError",
    "WorkflowCreationFailedError",
    "WorkflowActivationFailedError",
    "ErrorClass",
    "RetryPolicy",
    "NO_RETRY",
    "classify_error",
    "retry_call",
    "ProgressChannel",
    "CredentialBindings",
    "DeploymentEngine",
    "ProgressCallback",
    "deploy_agent",
    "test_n8n_connection",
]
