"""Tests for the in-memory deployment store and its health-recording policy."""

import pytest

from n8n_provisioner.models import AlertSeverity, AlertType, HealthAlert, HealthCheckResult
from n8n_provisioner.services.store import (
    AlertNotFoundError,
    DeploymentNotFoundError,
    DeploymentRecord,
    DeploymentStatus,
    InMemoryDeploymentStore,
)


def record(deployment_id="dep-1", status=DeploymentStatus.DEPLOYED):
    return DeploymentRecord(
        deployment_id=deployment_id,
        client_id="client-1",
        agent_id="agent-1",
        workflow_name="Acme Lead Agent",
        n8n_url="https://n8n.example.com",
        n8n_api_key="secret-key",
        status=status,
        workflow_id="wf-123",
    )


def check(healthy, error=None, deployment_id="dep-1"):
    return HealthCheckResult(deployment_id=deployment_id, workflow_id="wf-123", is_healthy=healthy, error=error)


def alert(alert_id="alert-1-inactive", deployment_id="dep-1"):
    return HealthAlert(
        id=alert_id,
        deployment_id=deployment_id,
        client_id="client-1",
        agent_id="agent-1",
        severity=AlertSeverity.WARNING,
        type=AlertType.WORKFLOW_INACTIVE,
        message="Workflow is not active",
    )


class TestDeployments:

    @pytest.mark.asyncio
    async def test_update_status(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record(status=DeploymentStatus.DEPLOYING))

        updated = await store.update_status("dep-1", DeploymentStatus.FAILED, error="boom")

        assert updated.status is DeploymentStatus.FAILED
        assert updated.error == "boom"
        assert (await store.get_deployment("dep-1")).status is DeploymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_unknown_deployment(self):
        store = InMemoryDeploymentStore()

        assert await store.get_deployment("missing") is None
        with pytest.raises(DeploymentNotFoundError):
            await store.update_status("missing", DeploymentStatus.DEPLOYED)

    @pytest.mark.asyncio
    async def test_list_deployed_only(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record("dep-1"))
        await store.save_deployment(record("dep-2", status=DeploymentStatus.FAILED))

        assert [r.deployment_id for r in await store.list_deployed()] == ["dep-1"]

    def test_api_key_not_serialized(self):
        data = record().model_dump(by_alias=True)

        assert "n8nApiKey" not in data
        assert data["n8nUrl"] == "https://n8n.example.com"

    def test_monitor_config(self):
        config = record().monitor_config()

        assert config.workflow_id == "wf-123"
        assert config.n8n_api_key == "secret-key"


class TestHealthRecording:

    @pytest.mark.asyncio
    async def test_history_newest_first_with_limit(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record())
        for healthy in (True, False, True):
            await store.record_health("dep-1", check(healthy, error=None if healthy else "down"), [])

        history = await store.get_health_history("dep-1", limit=2)

        assert [h.is_healthy for h in history] == [True, False]

    @pytest.mark.asyncio
    async def test_counters_reset_on_healthy_check(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record())
        await store.record_health("dep-1", check(False, "down"), [])
        await store.record_health("dep-1", check(False, "down"), [])

        health = (await store.get_deployment("dep-1")).health
        assert (health.error_count, health.consecutive_errors) == (2, 2)

        await store.record_health("dep-1", check(True), [])

        health = (await store.get_deployment("dep-1")).health
        assert (health.error_count, health.consecutive_errors, health.is_healthy) == (0, 0, True)
        assert len(health.errors) == 2

    @pytest.mark.asyncio
    async def test_keeps_last_ten_errors(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record())
        for i in range(12):
            await store.record_health("dep-1", check(False, f"error {i}"), [])

        errors = (await store.get_deployment("dep-1")).health.errors
        assert len(errors) == 10
        assert errors[0].message == "error 2"
        assert errors[-1].message == "error 11"

    @pytest.mark.asyncio
    async def test_notification_policy(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record())

        # healthy -> unhealthy notifies
        assert await store.record_health("dep-1", check(False, "down"), []) is not None
        # second and third failures stay quiet
        assert await store.record_health("dep-1", check(False, "down"), []) is None
        assert await store.record_health("dep-1", check(False, "down"), []) is None
        # from the fourth consecutive failure on, every failure notifies
        notification = await store.record_health("dep-1", check(False, "down"), [])

        assert notification is not None
        assert notification.title == "Health Check Failed: Acme Lead Agent"
        assert len(store.notifications) == 2

    @pytest.mark.asyncio
    async def test_healthy_check_resolves_open_alerts(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record())
        await store.record_health("dep-1", check(False, "down"), [alert()])

        await store.record_health("dep-1", check(True), [])

        (stored,) = await store.list_alerts("dep-1")
        assert stored.resolved_at is not None


class TestAlerts:

    @pytest.mark.asyncio
    async def test_acknowledge(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record())
        await store.record_health("dep-1", check(False, "down"), [alert("a-1"), alert("a-2")])

        acknowledged = await store.acknowledge_alert("a-1")

        assert [a.id for a in acknowledged] == ["a-1"]
        assert [a.acknowledged for a in await store.list_alerts()] == [True, False]

    @pytest.mark.asyncio
    async def test_acknowledge_unknown(self):
        with pytest.raises(AlertNotFoundError):
            await InMemoryDeploymentStore().acknowledge_alert("nope")

    @pytest.mark.asyncio
    async def test_filter_by_deployment(self):
        store = InMemoryDeploymentStore()
        await store.save_deployment(record("dep-1"))
        await store.save_deployment(record("dep-2"))
        await store.record_health("dep-1", check(False, "down"), [alert("a-1", "dep-1")])
        await store.record_health("dep-2", check(False, "down", "dep-2"), [alert("a-2", "dep-2")])

        assert [a.id for a in await store.list_alerts("dep-2")] == ["a-2"]
        assert len(await store.list_alerts()) == 2
