"""n8n client exception hierarchy."""

from typing import Optional


class N8nError(Exception):
    """Base exception for all n8n client errors."""


class N8nApiError(N8nError):
    """Non-2xx response from the n8n REST API."""

    def __init__(self, message: str, status_code: int, retry_after: Optional[float] = None):
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message)


class N8nConnectionError(N8nError):
    """The request never produced a response (refused, reset, timed out, DNS)."""

    def __init__(self, message: str, timeout: bool = False):
        self.message = message
        self.timeout = timeout
        super().__init__(message)
