"""Shared fixtures: a mocked n8n backend, templates and deployment configs."""

import itertools
from unittest.mock import AsyncMock

import pytest

from n8n_provisioner.models import (
    ConnectionTestResult,
    CredentialInput,
    DeploymentConfig,
    HealthMonitorConfig,
    HealthProbe,
    N8nWorkflow,
)
from n8n_provisioner.services.deployment import RetryPolicy
from n8n_provisioner.services.n8n import N8nClient


@pytest.fixture
def two_node_template():
    """Template with one node per placeholder credential."""
    return {
        "id": "template-1",
        "name": "Template",
        "nodes": [
            {
                "id": "n1",
                "name": "Google",
                "type": "n8n-nodes-base.googleSheets",
                "credentials": {"googleApi": {"id": "PLACEHOLDER_GOOGLE", "name": "Google account"}},
            },
            {
                "id": "n2",
                "name": "Slack",
                "type": "n8n-nodes-base.slack",
                "credentials": {"slackApi": {"id": "PLACEHOLDER_SLACK", "name": "Slack account"}},
            },
        ],
        "connections": {"Google": {"main": [[{"node": "Slack", "type": "main", "index": 0}]]}},
    }


@pytest.fixture
def deployment_config(two_node_template):
    return DeploymentConfig(
        client_id="client-1",
        agent_id="agent-1",
        n8n_url="https://n8n.example.com",
        n8n_api_key="secret-key",
        credentials=[
            CredentialInput(type="googleApi", name="Google account", data={"apiKey": "g-key"}),
            CredentialInput(type="slackApi", name="Slack account", data={"accessToken": "s-token"}),
        ],
        template_json=two_node_template,
        workflow_name="Acme Lead Agent",
    )


@pytest.fixture
def n8n_client():
    """AsyncMock n8n backend that accepts every call."""
    client = AsyncMock(spec=N8nClient)
    ids = itertools.count(1)

    async def create_credential(credential):
        return credential.model_copy(update={"id": f"cred-{next(ids)}"})

    async def create_workflow(document):
        return N8nWorkflow.model_validate({**document, "id": "wf-123"})

    client.test_connection.return_value = ConnectionTestResult(
        success=True, message="Connection successful", status_code=200
    )
    client.create_credential.side_effect = create_credential
    client.create_workflow.side_effect = create_workflow
    client.activate_workflow.return_value = N8nWorkflow(id="wf-123", active=True)
    client.delete_workflow.return_value = None
    client.delete_credential.return_value = None
    client.health_check.return_value = HealthProbe(healthy=True, latency_ms=5)
    client.get_workflow.return_value = N8nWorkflow(id="wf-123", active=True)
    client.get_executions.return_value = []
    return client


@pytest.fixture
def no_sleep():
    return AsyncMock(return_value=None)


@pytest.fixture
def fast_retry():
    return RetryPolicy(max_retries=2, initial_delay=0.01, max_delay=0.05, rate_limit_delay=0.02)


@pytest.fixture
def monitor_config():
    return HealthMonitorConfig(
        n8n_url="https://n8n.example.com",
        n8n_api_key="secret-key",
        workflow_id="wf-123",
        deployment_id="dep-1",
        client_id="client-1",
        agent_id="agent-1",
    )
