"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from n8n_provisioner.core.config import Settings
from n8n_provisioner.services.deployment import RetryPolicy
from n8n_provisioner.services.n8n import N8nClient
from n8n_provisioner.services.store import InMemoryDeploymentStore


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Deployment records, health history and alerts
    store = providers.Singleton(
        InMemoryDeploymentStore,
    )

    retry_policy = providers.Singleton(
        RetryPolicy.from_settings,
        settings=settings,
    )

    # One client per target instance; called with base_url and api_key
    n8n_client = providers.Factory(
        N8nClient,
        timeout=settings.provided.n8n_timeout,
    )


# Global container instance
container = Container()
