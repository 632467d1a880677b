"""Provision agent templates into n8n and monitor their health."""

__version__ = "1.0.0"
