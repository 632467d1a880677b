"""n8n REST API integration."""

from .exceptions import N8nError, N8nApiError, N8nConnectionError
from .client import N8nClient, RemoteAutomationClient, create_n8n_client, parse_retry_after

__all__ = [
    "N8nError",
    "N8nApiError",
    "N8nConnectionError",
    "N8nClient",
    "RemoteAutomationClient",
    "create_n8n_client",
    "parse_retry_after",
]
