"""Credential requirement discovery for workflow templates."""

from .registry import CredentialTypeSpec, CREDENTIAL_TYPE_REGISTRY, get_type_spec
from .extractor import (
    InvalidTemplateError,
    extract_credentials,
    extract_keyword,
    format_display_name,
    get_fields_for_type,
    is_oauth_type,
    is_special_type,
)

__all__ = [
    "CredentialTypeSpec",
    "CREDENTIAL_TYPE_REGISTRY",
    "get_type_spec",
    "InvalidTemplateError",
    "extract_credentials",
    "extract_keyword",
    "format_display_name",
    "get_fields_for_type",
    "is_oauth_type",
    "is_special_type",
]
