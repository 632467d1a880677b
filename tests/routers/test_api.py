"""HTTP API tests through the ASGI app with container overrides."""

import httpx
import pytest
import pytest_asyncio
from dependency_injector import providers

from n8n_provisioner.core.config import Settings
from n8n_provisioner.core.container import container
from n8n_provisioner.main import app
from n8n_provisioner.models import ConnectionTestResult, HealthProbe, N8nExecution, N8nWorkflow
from n8n_provisioner.services.deployment import NO_RETRY
from n8n_provisioner.services.n8n import N8nApiError, N8nConnectionError
from n8n_provisioner.services.store import InMemoryDeploymentStore


@pytest.fixture
def store():
    return InMemoryDeploymentStore()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def client_calls():
    return []


@pytest_asyncio.fixture
async def api(store, settings, n8n_client, client_calls):
    def build_client(**kwargs):
        client_calls.append(kwargs)
        return n8n_client

    container.store.override(providers.Object(store))
    container.settings.override(providers.Object(settings))
    container.retry_policy.override(providers.Object(NO_RETRY))
    container.n8n_client.override(providers.Callable(build_client))
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        container.reset_override()


def deploy_body(deployment_config, **config_overrides):
    config = deployment_config.model_dump(by_alias=True)
    config.update(config_overrides)
    return {"deploymentId": "dep-1", "config": config}


class TestServiceHealth:

    @pytest.mark.asyncio
    async def test_health(self, api):
        response = await api.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "OK"


class TestN8nRoutes:

    @pytest.mark.asyncio
    async def test_test_connection(self, api, n8n_client, client_calls):
        response = await api.post("/api/n8n/test-connection", json={"url": "https://n8n.example.com", "apiKey": "k"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Connection successful", "statusCode": 200}
        assert client_calls == [{"base_url": "https://n8n.example.com", "api_key": "k"}]

    @pytest.mark.asyncio
    async def test_test_connection_requires_fields(self, api):
        response = await api.post("/api/n8n/test-connection", json={"url": ""})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_workflows(self, api, n8n_client):
        n8n_client.get_workflows.return_value = [
            N8nWorkflow.model_validate({"id": "1", "name": "Flow", "active": True, "createdAt": "2024-01-01"}),
        ]

        response = await api.post("/api/n8n/workflows", json={"url": "https://n8n.example.com", "apiKey": "k"})

        assert response.status_code == 200
        (workflow,) = response.json()["workflows"]
        assert workflow == {"id": "1", "name": "Flow", "active": True, "createdAt": "2024-01-01", "updatedAt": None}

    @pytest.mark.asyncio
    async def test_list_workflows_unconfigured(self, api):
        response = await api.post("/api/n8n/workflows", json={})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_workflows_auth_failure(self, api, n8n_client):
        n8n_client.get_workflows.side_effect = N8nApiError("Unauthorized", status_code=401)

        response = await api.post("/api/n8n/workflows", json={"url": "https://n8n.example.com", "apiKey": "k"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_list_workflows_unreachable(self, api, n8n_client):
        n8n_client.get_workflows.side_effect = N8nConnectionError("refused")

        response = await api.post("/api/n8n/workflows", json={"url": "https://n8n.example.com", "apiKey": "k"})

        assert response.status_code == 502


class TestAgentRoutes:

    @pytest.mark.asyncio
    async def test_extract_credentials(self, api, two_node_template):
        response = await api.post("/api/agents/credentials", json={"templateJson": two_node_template})

        assert response.status_code == 200
        body = response.json()
        assert [c["type"] for c in body["simple"]] == ["googleApi", "slackApi"]
        assert body["simple"][0]["displayName"] == "Google"
        assert body["total"] == 2
        assert body["requiresManualOauth"] is False

    @pytest.mark.asyncio
    async def test_invalid_template(self, api):
        response = await api.post("/api/agents/credentials", json={"templateJson": {"name": "no nodes"}})

        assert response.status_code == 422
        assert "nodes" in response.json()["detail"]


class TestDeploymentRoutes:

    @pytest.mark.asyncio
    async def test_deploy(self, api, store, deployment_config):
        response = await api.post("/api/deployments", json=deploy_body(deployment_config))

        assert response.status_code == 200
        body = response.json()
        assert body["result"]["success"] is True
        assert body["result"]["workflowId"] == "wf-123"
        assert body["result"]["createdCredentialIds"] == ["cred-1", "cred-2"]
        assert body["progress"][-1]["stage"] == "completed"

        record = await store.get_deployment("dep-1")
        assert record.status.value == "deployed"
        assert record.workflow_url == "https://n8n.example.com/workflow/wf-123"

    @pytest.mark.asyncio
    async def test_failed_deploy_is_recorded(self, api, store, deployment_config, n8n_client):
        n8n_client.test_connection.return_value = ConnectionTestResult(
            success=False, message="Invalid API key", status_code=401
        )

        response = await api.post("/api/deployments", json=deploy_body(deployment_config))

        assert response.status_code == 200
        assert response.json()["result"]["success"] is False
        record = await store.get_deployment("dep-1")
        assert record.status.value == "failed"
        assert record.error == "Failed to connect to n8n: Invalid API key"

    @pytest.mark.asyncio
    async def test_managed_instance_fallback(self, api, settings, deployment_config, client_calls):
        container.settings.override(providers.Object(Settings(
            _env_file=None, n8n_instance_url="https://managed.example.com/", n8n_api_key="managed-key",
        )))

        response = await api.post("/api/deployments", json=deploy_body(deployment_config, n8nUrl="", n8nApiKey=""))

        assert response.status_code == 200
        assert response.json()["result"]["workflowUrl"] == "https://managed.example.com/workflow/wf-123"
        assert client_calls == [{"base_url": "https://managed.example.com", "api_key": "managed-key"}]

    @pytest.mark.asyncio
    async def test_no_instance_available(self, api, store, deployment_config):
        response = await api.post("/api/deployments", json=deploy_body(deployment_config, n8nUrl="", n8nApiKey=""))

        assert response.status_code == 400
        record = await store.get_deployment("dep-1")
        assert record.status.value == "failed"
        assert "No n8n instance configured" in record.error

    @pytest.mark.asyncio
    async def test_check_health_and_history(self, api, deployment_config, n8n_client):
        await api.post("/api/deployments", json=deploy_body(deployment_config))
        n8n_client.get_workflow.return_value = N8nWorkflow(id="wf-123", active=False)
        n8n_client.get_executions.return_value = [N8nExecution(id="1", status="success")]

        response = await api.post("/api/deployments/dep-1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["result"]["isHealthy"] is False
        assert [a["type"] for a in body["alerts"]] == ["workflow_inactive"]

        history = (await api.get("/api/deployments/dep-1/health", params={"limit": 5})).json()["history"]
        assert len(history) == 1
        assert history[0]["details"]["workflowActive"] is False

    @pytest.mark.asyncio
    async def test_health_for_unknown_deployment(self, api):
        assert (await api.post("/api/deployments/missing/health")).status_code == 404
        assert (await api.get("/api/deployments/missing/health")).status_code == 404

    @pytest.mark.asyncio
    async def test_get_deployment_hides_api_key(self, api, deployment_config):
        await api.post("/api/deployments", json=deploy_body(deployment_config))

        body = (await api.get("/api/deployments/dep-1")).json()

        assert body["status"] == "deployed"
        assert "n8nApiKey" not in body


class TestAlertRoutes:

    @pytest.mark.asyncio
    async def test_list_and_acknowledge(self, api, deployment_config, n8n_client):
        await api.post("/api/deployments", json=deploy_body(deployment_config))
        n8n_client.health_check.return_value = HealthProbe(healthy=False, error="refused")
        await api.post("/api/deployments/dep-1/health")

        alerts = (await api.get("/api/alerts", params={"deploymentId": "dep-1"})).json()["alerts"]
        assert [a["type"] for a in alerts] == ["connection_lost"]

        response = await api.post(f"/api/alerts/{alerts[0]['id']}/acknowledge")
        assert response.json() == {"acknowledged": 1}

        pending = (await api.get("/api/alerts", params={"includeAcknowledged": "false"})).json()["alerts"]
        assert pending == []

    @pytest.mark.asyncio
    async def test_acknowledge_unknown(self, api):
        assert (await api.post("/api/alerts/nope/acknowledge")).status_code == 404
