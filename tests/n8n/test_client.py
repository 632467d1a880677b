"""Tests for the n8n REST client against a mocked transport."""

import json

import httpx
import pytest

from n8n_provisioner.models import N8nCredential
from n8n_provisioner.services.n8n import (
    N8nApiError,
    N8nClient,
    N8nConnectionError,
    parse_retry_after,
)


def make_client(handler) -> N8nClient:
    return N8nClient("https://n8n.example.com/", "secret-key", transport=httpx.MockTransport(handler))


class TestRequests:
    """Request construction and response decoding."""

    @pytest.mark.asyncio
    async def test_sends_api_key_and_prefix(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("X-N8N-API-KEY")
            return httpx.Response(200, json={"id": "wf-1", "name": "Flow", "active": True})

        workflow = await make_client(handler).get_workflow("wf-1")

        assert seen["url"] == "https://n8n.example.com/api/v1/workflows/wf-1"
        assert seen["key"] == "secret-key"
        assert workflow.id == "wf-1"
        assert workflow.active is True

    @pytest.mark.asyncio
    async def test_create_credential_posts_without_id(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": 42, "name": "OpenAI", "type": "openAiApi"})

        created = await make_client(handler).create_credential(
            N8nCredential(name="OpenAI", type="openAiApi", data={"apiKey": "sk"})
        )

        assert bodies == [{"name": "OpenAI", "type": "openAiApi", "data": {"apiKey": "sk"}}]
        assert created.id == "42"

    @pytest.mark.asyncio
    async def test_executions_unwrap_data_and_pass_filters(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["workflowId"] == "wf-1"
            assert request.url.params["limit"] == "20"
            return httpx.Response(200, json={
                "data": [
                    {"id": "1", "status": "success", "startedAt": "2024-01-01T00:00:00Z",
                     "stoppedAt": "2024-01-01T00:00:02Z", "workflowId": "wf-1"},
                ],
                "nextCursor": None,
            })

        executions = await make_client(handler).get_executions("wf-1", limit=20)

        assert len(executions) == 1
        assert executions[0].started_at == "2024-01-01T00:00:00Z"
        assert executions[0].stopped_at == "2024-01-01T00:00:02Z"

    @pytest.mark.asyncio
    async def test_delete_with_empty_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            return httpx.Response(204)

        assert await make_client(handler).delete_workflow("wf-1") is None


class TestErrors:
    """Error mapping for failed requests."""

    @pytest.mark.asyncio
    async def test_api_error_uses_body_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "request/body must have required property 'name'"})

        with pytest.raises(N8nApiError) as exc_info:
            await make_client(handler).create_workflow({"nodes": []})

        assert exc_info.value.status_code == 400
        assert "required property" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"Retry-After": "7"}, text="slow down")

        with pytest.raises(N8nApiError) as exc_info:
            await make_client(handler).get_workflows()

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 7.0
        assert exc_info.value.message == "n8n API Error: 429 Too Many Requests"

    @pytest.mark.asyncio
    async def test_transport_failure_is_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(N8nConnectionError):
            await make_client(handler).get_workflow("wf-1")

    @pytest.mark.asyncio
    async def test_timeout_is_flagged(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(N8nConnectionError) as exc_info:
            await make_client(handler).get_workflow("wf-1")

        assert exc_info.value.timeout is True


class TestConnectionTest:
    """test_connection never raises and reports a readable message."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,message", [
        (401, "Invalid API key"),
        (403, "Access denied - check API key permissions"),
    ])
    async def test_auth_failures(self, status, message):
        client = make_client(lambda request: httpx.Response(status, json={"message": "nope"}))

        result = await client.test_connection()

        assert result.success is False
        assert result.message == message
        assert result.status_code == status

    @pytest.mark.asyncio
    async def test_success(self):
        client = make_client(lambda request: httpx.Response(200, json={"data": []}))

        result = await client.test_connection()

        assert result.success is True
        assert result.status_code == 200

    @pytest.mark.asyncio
    async def test_refused(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_client(handler).test_connection()

        assert result.success is False
        assert result.status_code is None
        assert result.message == "Unable to connect - check if n8n is running"


class TestHealthProbe:
    """Unauthenticated /healthz probe."""

    @pytest.mark.asyncio
    async def test_healthy_without_api_key(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/healthz"
            assert "X-N8N-API-KEY" not in request.headers
            return httpx.Response(200, json={"status": "ok"})

        probe = await make_client(handler).health_check()

        assert probe.healthy is True
        assert probe.latency_ms is not None

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        probe = await make_client(handler).health_check()

        assert probe.healthy is False
        assert probe.error


class TestRetryAfterParsing:

    def test_seconds(self):
        assert parse_retry_after("12") == 12.0

    def test_missing_or_garbage(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("soon") is None

    def test_http_date_in_past_is_zero(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
