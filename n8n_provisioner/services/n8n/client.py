"""Async HTTP client for the n8n public REST API."""

import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx

from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.models.n8n import (
    ConnectionTestResult,
    HealthProbe,
    N8nCredential,
    N8nExecution,
    N8nWorkflow,
)
from .exceptions import N8nApiError, N8nConnectionError

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


@runtime_checkable
class RemoteAutomationClient(Protocol):
    """Operations the deployment engine and health monitor rely on."""

    async def test_connection(self) -> ConnectionTestResult: ...

    async def create_credential(self, credential: N8nCredential) -> N8nCredential: ...

    async def delete_credential(self, credential_id: str) -> None: ...

    async def create_workflow(self, workflow: Dict[str, Any]) -> N8nWorkflow: ...

    async def delete_workflow(self, workflow_id: str) -> None: ...

    async def activate_workflow(self, workflow_id: str) -> N8nWorkflow: ...

    async def get_workflow(self, workflow_id: str) -> N8nWorkflow: ...

    async def get_executions(self, workflow_id: Optional[str] = None,
                             limit: int = 10) -> List[N8nExecution]: ...

    async def health_check(self) -> HealthProbe: ...


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header (delta seconds or HTTP date) into seconds."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def _unwrap_list(payload: Any) -> List[Dict[str, Any]]:
    """n8n wraps collections as {"data": [...], "nextCursor": ...}."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"] or []
    return payload or []


class N8nClient:
    """Async client for one n8n instance.

    A short-lived ``httpx.AsyncClient`` is opened per request so a client
    object can be shared by concurrent deployments without shared state.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client with base URL and API key.

        Args:
            base_url: Base URL of the n8n instance (e.g., https://n8n.example.com)
            api_key: n8n public API key
            timeout: Request timeout in seconds
            transport: Optional transport override (tests, proxies)
        """
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-N8N-API-KEY": api_key,
        }
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    def _client(self, authenticated: bool = True) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers if authenticated else None,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send an authenticated API request and decode the JSON body.

        Raises:
            N8nApiError: on a non-2xx response
            N8nConnectionError: when no response was received
        """
        url = f"{API_PREFIX}{path}"
        try:
            async with self._client() as client:
                response = await client.request(method, url, json=json, params=params)
        except httpx.TimeoutException as e:
            raise N8nConnectionError(f"Request to n8n timed out: {method} {url}", timeout=True) from e
        except httpx.TransportError as e:
            raise N8nConnectionError(f"Unable to reach n8n: {e}") from e

        if response.is_error:
            raise self._error_from_response(response)

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> N8nApiError:
        message = f"n8n API Error: {response.status_code} {response.reason_phrase}".rstrip()
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
        except ValueError:
            pass

        return N8nApiError(
            message,
            status_code=response.status_code,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )

    # =========================================================================
    # CONNECTION
    # =========================================================================

    async def test_connection(self) -> ConnectionTestResult:
        """Test that the instance is reachable and the API key is accepted."""
        try:
            await self._request("GET", "/workflows", params={"limit": 1})
            return ConnectionTestResult(success=True, message="Connection successful", status_code=200)
        except N8nApiError as e:
            if e.status_code == 401:
                message = "Invalid API key"
            elif e.status_code == 403:
                message = "Access denied - check API key permissions"
            else:
                message = f"Connection failed: {e.message}"
            return ConnectionTestResult(success=False, message=message, status_code=e.status_code)
        except N8nConnectionError as e:
            if isinstance(e.__cause__, httpx.ConnectError):
                message = "Unable to connect - check if n8n is running"
            else:
                message = f"Connection error: {e.message}"
            return ConnectionTestResult(success=False, message=message)

    async def health_check(self) -> HealthProbe:
        """Probe the unauthenticated /healthz endpoint."""
        start_time = time.perf_counter()
        try:
            async with self._client(authenticated=False) as client:
                response = await client.get("/healthz")
        except httpx.HTTPError as e:
            return HealthProbe(healthy=False, error=str(e) or type(e).__name__)

        latency_ms = round((time.perf_counter() - start_time) * 1000)
        if response.is_success:
            return HealthProbe(healthy=True, latency_ms=latency_ms)
        return HealthProbe(healthy=False, latency_ms=latency_ms, error=f"Status: {response.status_code}")

    # =========================================================================
    # CREDENTIALS
    # =========================================================================

    async def get_credentials(self, credential_type: Optional[str] = None) -> List[N8nCredential]:
        params = {"type": credential_type} if credential_type else None
        payload = await self._request("GET", "/credentials", params=params)
        return [N8nCredential.model_validate(c) for c in _unwrap_list(payload)]

    async def get_credential(self, credential_id: str) -> N8nCredential:
        return N8nCredential.model_validate(await self._request("GET", f"/credentials/{credential_id}"))

    async def create_credential(self, credential: N8nCredential) -> N8nCredential:
        payload = credential.model_dump(exclude={"id"})
        created = await self._request("POST", "/credentials", json=payload)
        logger.debug("Credential created", credential_type=credential.type, credential_id=(created or {}).get("id"))
        return N8nCredential.model_validate(created or {})

    async def update_credential(self, credential_id: str, patch: Dict[str, Any]) -> N8nCredential:
        updated = await self._request("PATCH", f"/credentials/{credential_id}", json=patch)
        return N8nCredential.model_validate(updated or {})

    async def delete_credential(self, credential_id: str) -> None:
        await self._request("DELETE", f"/credentials/{credential_id}")

    # =========================================================================
    # WORKFLOWS
    # =========================================================================

    async def get_workflows(self, active: Optional[bool] = None) -> List[N8nWorkflow]:
        params = {"active": str(active).lower()} if active is not None else None
        payload = await self._request("GET", "/workflows", params=params)
        return [N8nWorkflow.model_validate(w) for w in _unwrap_list(payload)]

    async def get_workflow(self, workflow_id: str) -> N8nWorkflow:
        return N8nWorkflow.model_validate(await self._request("GET", f"/workflows/{workflow_id}"))

    async def create_workflow(self, workflow: Dict[str, Any]) -> N8nWorkflow:
        created = await self._request("POST", "/workflows", json=workflow)
        return N8nWorkflow.model_validate(created or {})

    async def update_workflow(self, workflow_id: str, patch: Dict[str, Any]) -> N8nWorkflow:
        updated = await self._request("PUT", f"/workflows/{workflow_id}", json=patch)
        return N8nWorkflow.model_validate(updated or {})

    async def delete_workflow(self, workflow_id: str) -> None:
        await self._request("DELETE", f"/workflows/{workflow_id}")

    async def activate_workflow(self, workflow_id: str) -> N8nWorkflow:
        activated = await self._request("POST", f"/workflows/{workflow_id}/activate")
        return N8nWorkflow.model_validate(activated or {"id": workflow_id, "active": True})

    async def deactivate_workflow(self, workflow_id: str) -> N8nWorkflow:
        deactivated = await self._request("POST", f"/workflows/{workflow_id}/deactivate")
        return N8nWorkflow.model_validate(deactivated or {"id": workflow_id, "active": False})

    # =========================================================================
    # EXECUTIONS
    # =========================================================================

    async def get_executions(self, workflow_id: Optional[str] = None,
                             limit: int = 10) -> List[N8nExecution]:
        """Most recent executions first, as returned by n8n."""
        params: Dict[str, Any] = {"limit": limit}
        if workflow_id:
            params["workflowId"] = workflow_id
        payload = await self._request("GET", "/executions", params=params)
        return [N8nExecution.model_validate(e) for e in _unwrap_list(payload)]

    async def get_execution(self, execution_id: str) -> N8nExecution:
        return N8nExecution.model_validate(await self._request("GET", f"/executions/{execution_id}"))


def create_n8n_client(base_url: str, api_key: str, timeout: float = 30.0) -> N8nClient:
    """Create a new n8n client instance."""
    return N8nClient(base_url, api_key, timeout=timeout)
