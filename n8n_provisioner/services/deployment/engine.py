"""Deployment engine: provisions an agent template into a client's n8n.

Stages run strictly in order. Every remote resource is recorded the moment it
exists, so a failure at any stage can delete exactly what this attempt
created before the error is reported.
"""

import asyncio
import copy
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.models.deployment import (
    CredentialInput,
    DeploymentConfig,
    DeploymentProgress,
    DeploymentResult,
    DeploymentStage,
)
from n8n_provisioner.models.n8n import ConnectionTestResult, N8nCredential
from n8n_provisioner.services.n8n import (
    N8nApiError,
    N8nConnectionError,
    N8nError,
    RemoteAutomationClient,
    create_n8n_client,
)
from .exceptions import (
    ConnectionFailedError,
    CredentialCreationFailedError,
    WorkflowActivationFailedError,
    WorkflowCreationFailedError,
    WorkflowGenerationError,
)
from .retry import RetryPolicy, retry_call

logger = get_logger(__name__)

ProgressCallback = Callable[[DeploymentProgress], None]


class CredentialBindings:
    """Created credential ids, looked up by exact (type, name) then by type."""

    def __init__(self):
        self._by_pair: Dict[Tuple[str, str], Tuple[str, str]] = {}
        self._by_type: Dict[str, Tuple[str, str]] = {}

    def add(self, credential: CredentialInput, credential_id: str) -> None:
        entry = (credential_id, credential.name)
        self._by_pair[(credential.type, credential.name)] = entry
        self._by_type[credential.type] = entry

    def resolve(self, credential_type: str, reference_name: Optional[str]) -> Optional[Tuple[str, str]]:
        """Return ``(id, created_name)`` for a node reference, or None."""
        if reference_name:
            exact = self._by_pair.get((credential_type, reference_name))
            if exact is not None:
                return exact
        return self._by_type.get(credential_type)

    def __len__(self) -> int:
        return len(self._by_pair)


class DeploymentEngine:
    """Runs one deployment attempt. Create a new engine per attempt."""

    def __init__(
        self,
        config: DeploymentConfig,
        on_progress: Optional[ProgressCallback] = None,
        *,
        client: Optional[RemoteAutomationClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.client = client or create_n8n_client(config.n8n_url, config.n8n_api_key)
        self.retry_policy = retry_policy or RetryPolicy()
        self.created_credential_ids: List[str] = []
        self.created_workflow_id: Optional[str] = None
        self.workflow_document: Optional[Dict[str, Any]] = None
        self.stage = DeploymentStage.INITIALIZING
        self._on_progress = on_progress
        self._sleep = sleep
        self._started = False
        self._log = logger.bind(client_id=config.client_id, agent_id=config.agent_id,
                                workflow_name=config.workflow_name)

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def deploy(self) -> DeploymentResult:
        """Execute the full deployment.

        Never raises for a failed stage: the failure is rolled back and
        returned as ``DeploymentResult(success=False)``. Cancellation is
        propagated without rollback; call ``rollback()`` afterwards to clean up.
        """
        if self._started:
            raise RuntimeError("DeploymentEngine instances are single-use")
        self._started = True

        try:
            return await self._run()
        except Exception as e:
            return await self._fail(e)

    async def _run(self) -> DeploymentResult:
        # Stage 1: connection
        self._emit(DeploymentStage.INITIALIZING, 5, "Testing connection to n8n instance...")
        await self._verify_connection()
        self._emit(DeploymentStage.INITIALIZING, 10, "Connection successful. Preparing deployment...")

        # Stage 2: credentials
        self._emit(DeploymentStage.CREATING_CREDENTIALS, 15, "Creating credentials in n8n...")
        bindings = await self._create_credentials()
        self._emit(DeploymentStage.CREATING_CREDENTIALS, 40,
                   f"Created {len(self.created_credential_ids)} credentials successfully.")

        # Stage 3: workflow document
        self._emit(DeploymentStage.GENERATING_WORKFLOW, 50, "Generating workflow with credential bindings...")
        self.workflow_document = self.generate_workflow(bindings)
        self._emit(DeploymentStage.GENERATING_WORKFLOW, 60, "Workflow generated successfully.")

        # Stage 4: create workflow
        self._emit(DeploymentStage.DEPLOYING, 70, "Deploying workflow to n8n...")
        workflow_id = await self._create_workflow(self.workflow_document)
        self._emit(DeploymentStage.DEPLOYING, 85, "Workflow deployed successfully.")

        # Stage 5: activate
        self._emit(DeploymentStage.ACTIVATING, 90, "Activating workflow...")
        await self._activate_workflow(workflow_id)

        self._emit(DeploymentStage.COMPLETED, 100, "Deployment completed successfully!")
        workflow_url = f"{self.config.n8n_url.rstrip('/')}/workflow/{workflow_id}"
        self._log.info("Deployment completed", workflow_id=workflow_id,
                       credentials=len(self.created_credential_ids))

        return DeploymentResult(
            success=True,
            workflow_id=workflow_id,
            workflow_url=workflow_url,
            created_credential_ids=list(self.created_credential_ids),
        )

    async def _fail(self, error: Exception) -> DeploymentResult:
        failed_stage = self.stage
        self._log.error("Deployment failed", stage=failed_stage.value,
                        error=str(error), error_type=type(error).__name__)

        self._emit(DeploymentStage.ROLLING_BACK, 0, "Deployment failed. Rolling back changes...", str(error))
        rollback_errors = await self.rollback()
        self._emit(DeploymentStage.FAILED, 0, "Deployment failed.", str(error))

        return DeploymentResult(
            success=False,
            created_credential_ids=list(self.created_credential_ids),
            error=str(error),
            error_detail=f"{type(error).__name__}: {error}",
            rollback_errors=rollback_errors,
        )

    # =========================================================================
    # STAGES
    # =========================================================================

    async def _verify_connection(self) -> None:
        async def attempt() -> ConnectionTestResult:
            result = await self.client.test_connection()
            if not result.success:
                # turn the verdict into an error so the retry loop can classify it
                if result.status_code is None:
                    raise N8nConnectionError(result.message)
                raise N8nApiError(result.message, status_code=result.status_code)
            return result

        try:
            await self._call("test_connection", attempt)
        except N8nError as e:
            raise ConnectionFailedError(f"Failed to connect to n8n: {e}") from e

    async def _create_credentials(self) -> CredentialBindings:
        bindings = CredentialBindings()
        total = len(self.config.credentials)

        for i, credential in enumerate(self.config.credentials):
            self._emit(DeploymentStage.CREATING_CREDENTIALS, 15 + math.floor(i / total * 25),
                       f"Creating credential: {credential.name}...")

            payload = N8nCredential(name=credential.name, type=credential.type, data=credential.data)
            try:
                created = await self._call("create_credential",
                                           lambda: self.client.create_credential(payload),
                                           credential_type=credential.type)
            except N8nError as e:
                raise CredentialCreationFailedError(
                    f"Failed to create credential '{credential.name}' ({credential.type}): {e}"
                ) from e

            if not created.id:
                raise CredentialCreationFailedError(
                    f"n8n returned no id for credential '{credential.name}' ({credential.type})"
                )

            self.created_credential_ids.append(created.id)
            bindings.add(credential, created.id)

        return bindings

    def generate_workflow(self, bindings: CredentialBindings) -> Dict[str, Any]:
        """Materialize the template into a workflow document for n8n.

        The template is deep-copied; the caller's config is never modified.
        Credential references whose type was created in this attempt are
        rewritten to the new ids, everything else passes through unchanged.
        """
        workflow = copy.deepcopy(self.config.template_json)
        workflow["name"] = self.config.workflow_name
        workflow["active"] = False
        workflow.pop("id", None)

        nodes = workflow.get("nodes")
        if not isinstance(nodes, list):
            raise WorkflowGenerationError("Template has no 'nodes' array")

        for node in nodes:
            if not isinstance(node, dict):
                raise WorkflowGenerationError(f"Template node is not an object: {node!r}")
            references = node.get("credentials")
            if not isinstance(references, dict):
                continue

            rewritten = {}
            for credential_type, reference in references.items():
                reference_name = reference.get("name") if isinstance(reference, dict) else None
                bound = bindings.resolve(credential_type, reference_name)
                if bound is None:
                    rewritten[credential_type] = reference
                    continue
                credential_id, created_name = bound
                rewritten[credential_type] = {
                    "id": credential_id,
                    "name": reference_name or created_name or credential_type,
                }
            node["credentials"] = rewritten

        return workflow

    async def _create_workflow(self, document: Dict[str, Any]) -> str:
        try:
            created = await self._call("create_workflow", lambda: self.client.create_workflow(document))
        except N8nError as e:
            raise WorkflowCreationFailedError(f"Failed to create workflow: {e}") from e

        if not created.id:
            raise WorkflowCreationFailedError("n8n returned no id for the created workflow")

        self.created_workflow_id = created.id
        return created.id

    async def _activate_workflow(self, workflow_id: str) -> None:
        try:
            await self._call("activate_workflow", lambda: self.client.activate_workflow(workflow_id),
                             workflow_id=workflow_id)
        except N8nError as e:
            raise WorkflowActivationFailedError(f"Failed to activate workflow: {e}") from e

    # =========================================================================
    # ROLLBACK
    # =========================================================================

    async def rollback(self) -> List[str]:
        """Delete every resource this attempt created.

        Workflow first, then credentials in creation order. Deletion
        failures are collected and logged, never raised. Resources that were
        deleted are removed from the manifest, so calling this again only
        retries what is left.

        Returns:
            One message per resource that could not be deleted
        """
        errors: List[str] = []

        if self.created_workflow_id:
            workflow_id = self.created_workflow_id
            try:
                await self._call("delete_workflow", lambda: self.client.delete_workflow(workflow_id),
                                 workflow_id=workflow_id)
                self.created_workflow_id = None
            except Exception as e:
                errors.append(f"Failed to delete workflow {workflow_id}: {e}")

        remaining: List[str] = []
        for credential_id in self.created_credential_ids:
            try:
                await self._call("delete_credential",
                                 lambda: self.client.delete_credential(credential_id),
                                 credential_id=credential_id)
            except Exception as e:
                errors.append(f"Failed to delete credential {credential_id}: {e}")
                remaining.append(credential_id)
        self.created_credential_ids = remaining

        if errors:
            self._log.error("Rollback incomplete", errors=errors)
        else:
            self._log.info("Rollback completed")
        return errors

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _call(self, operation: str, func: Callable[[], Awaitable[Any]], **log_context: Any) -> Any:
        return await retry_call(operation, func, self.retry_policy, sleep=self._sleep,
                                client_id=self.config.client_id, **log_context)

    def _emit(self, stage: DeploymentStage, percent: int, message: str, detail: Optional[str] = None) -> None:
        """Record the current stage and notify the progress callback."""
        if stage not in (DeploymentStage.ROLLING_BACK, DeploymentStage.FAILED):
            self.stage = stage
        if self._on_progress is None:
            return
        try:
            self._on_progress(DeploymentProgress(stage=stage, percent=percent, message=message, detail=detail))
        except Exception as e:
            self._log.warning("Progress callback failed", stage=stage.value, error=str(e))


async def deploy_agent(
    config: DeploymentConfig,
    on_progress: Optional[ProgressCallback] = None,
    *,
    client: Optional[RemoteAutomationClient] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> DeploymentResult:
    """Create an engine and run one deployment."""
    engine = DeploymentEngine(config, on_progress, client=client, retry_policy=retry_policy)
    return await engine.deploy()


async def test_n8n_connection(url: str, api_key: str) -> ConnectionTestResult:
    """Test connection to an n8n instance."""
    return await create_n8n_client(url, api_key).test_connection()


test_n8n_connection.__test__ = False  # not a pytest test despite the name
