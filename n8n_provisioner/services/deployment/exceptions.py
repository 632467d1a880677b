"""Deployment pipeline exceptions.

Every error carries the stage it was raised in so the rollback log and the
stored failure record can say where the attempt stopped.
"""

from n8n_provisioner.models.deployment import DeploymentStage


class DeploymentError(Exception):
    """Base exception for a failed deployment stage."""

    stage: DeploymentStage = DeploymentStage.FAILED

    def __init__(self, message: str, stage: DeploymentStage = None):
        self.message = message
        if stage is not None:
            self.stage = stage
        super().__init__(message)


class ConnectionFailedError(DeploymentError):
    stage = DeploymentStage.INITIALIZING


class CredentialCreationFailedError(DeploymentError):
    stage = DeploymentStage.CREATING_CREDENTIALS


class WorkflowGenerationError(DeploymentError):
    """The template could not be turned into a workflow document."""
    stage = DeploymentStage.GENERATING_WORKFLOW


class WorkflowCreationFailedError(DeploymentError):
    stage = DeploymentStage.DEPLOYING


class WorkflowActivationFailedError(DeploymentError):
    stage = DeploymentStage.ACTIVATING
