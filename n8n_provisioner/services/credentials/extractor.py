"""Static analysis of an n8n workflow template's credential requirements.

Walks every node's ``credentials`` map and groups the references into the
secrets an operator must supply before the template can be deployed:

- simple credentials are keyed by n8n type alone (one OpenAI key serves
  every OpenAI node),
- special credentials (generic header/basic/custom auth) are keyed by type
  and reference name, since the name is the only thing telling two of them
  apart.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from n8n_provisioner.constants import (
    CREDENTIAL_KEYWORD_STOP_WORDS,
    OAUTH_MANUAL_STEP_NOTE,
    SPECIAL_CREDENTIAL_TYPES,
)
from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.models.credentials import (
    CredentialField,
    CredentialSchema,
    FieldKind,
    SimpleCredential,
    SpecialCredential,
)
from .registry import get_type_spec

logger = get_logger(__name__)

_STOP_WORDS_RE = re.compile(
    r"\b(" + "|".join(CREDENTIAL_KEYWORD_STOP_WORDS) + r")\b",
    re.IGNORECASE,
)
_OAUTH_TOKEN_RE = re.compile(r"OAuth2?")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")
_DROPPED_TYPE_WORDS = frozenset(["Api", "Auth"])


class InvalidTemplateError(ValueError):
    """Template JSON cannot be analysed (no ``nodes`` array)."""


@dataclass
class _Entry:
    """Accumulator for one grouping key while walking the nodes."""
    type: str
    display_name: str
    fields: Tuple[CredentialField, ...]
    is_oauth: bool
    keyword: Optional[str] = None
    instances: int = 0
    note: Optional[str] = field(default=None)


def is_special_type(credential_type: str) -> bool:
    return credential_type in SPECIAL_CREDENTIAL_TYPES


def is_oauth_type(credential_type: str) -> bool:
    """OAuth types need an interactive consent step n8n cannot automate."""
    spec = get_type_spec(credential_type)
    if spec is not None:
        return spec.is_oauth
    return "oauth" in credential_type.lower()


def extract_keyword(name: str) -> str:
    """Best-effort matching label: "DataforSEO API Key" -> "DataforSEO"."""
    return " ".join(_STOP_WORDS_RE.sub(" ", name).split())


def format_type(credential_type: str) -> str:
    """Humanize a camelCase type: "googleSheetsOAuth2Api" -> "Google Sheets OAuth2"."""
    spaced = _OAUTH_TOKEN_RE.sub(lambda m: f" {m.group(0)} ", credential_type)
    spaced = _CAMEL_BOUNDARY_RE.sub(r" \1", spaced)
    words = [w[:1].upper() + w[1:] for w in spaced.split()]
    kept = [w for w in words if w not in _DROPPED_TYPE_WORDS]
    return " ".join(kept or words)


def format_display_name(credential_type: str, name: Optional[str] = None) -> str:
    if name:
        return f"{format_type(credential_type)}: {name}"
    return format_type(credential_type)


def get_fields_for_type(credential_type: str) -> Tuple[CredentialField, ...]:
    """Field list for a type: exact from the registry, otherwise guessed.

    Every guess is logged at warning level with the strategy used so that
    operators can see which types were not recognized.
    """
    spec = get_type_spec(credential_type)
    if spec is not None:
        return spec.fields

    lowered = credential_type.lower()
    if "oauth" in lowered:
        strategy = "oauth_client"
        fields = (
            CredentialField(name="clientId", label="Client ID", kind=FieldKind.TEXT),
            CredentialField(name="clientSecret", label="Client Secret", kind=FieldKind.SECRET),
        )
    elif "api" in lowered or "token" in lowered:
        strategy = "api_key"
        fields = (CredentialField(name="apiKey", label="API Key", kind=FieldKind.SECRET),)
    else:
        strategy = "generic_secret"
        fields = (CredentialField(name="credential", label="Credential Value", kind=FieldKind.SECRET),)

    logger.warning("Unknown credential type, fields guessed",
                   credential_type=credential_type, strategy=strategy)
    return fields


def _reference_name(ref: Any) -> str:
    if isinstance(ref, Mapping):
        return str(ref.get("name") or "")
    return ""


def extract_credentials(template_json: Any) -> CredentialSchema:
    """Derive the credential schema a workflow template requires.

    Pure with respect to its input: the template is only read, and the same
    template always yields the same schema. Entries are ordered by grouping
    key so node order does not change the result.

    Raises:
        InvalidTemplateError: if the template has no ``nodes`` array
    """
    nodes = template_json.get("nodes") if isinstance(template_json, Mapping) else None
    if not isinstance(nodes, list):
        raise InvalidTemplateError("Invalid workflow JSON: missing 'nodes' array")

    entries: Dict[str, _Entry] = {}

    for node in nodes:
        if not isinstance(node, Mapping):
            continue
        credentials = node.get("credentials")
        if not isinstance(credentials, Mapping):
            continue

        for credential_type, ref in credentials.items():
            special = is_special_type(credential_type)
            name = _reference_name(ref)
            key = f"{credential_type}:{name}" if special else credential_type

            entry = entries.get(key)
            if entry is None:
                oauth = is_oauth_type(credential_type)
                entry = _Entry(
                    type=credential_type,
                    display_name=format_display_name(credential_type, name if special else None),
                    fields=get_fields_for_type(credential_type),
                    is_oauth=oauth,
                    keyword=extract_keyword(name) if special else None,
                    note=OAUTH_MANUAL_STEP_NOTE if oauth else None,
                )
                entries[key] = entry
            entry.instances += 1

    simple: List[SimpleCredential] = []
    special_credentials: List[SpecialCredential] = []

    for key in sorted(entries):
        entry = entries[key]
        common = dict(
            type=entry.type,
            display_name=entry.display_name,
            instances=entry.instances,
            fields=list(entry.fields),
            is_oauth=entry.is_oauth,
            note=entry.note,
        )
        if entry.keyword is not None:
            special_credentials.append(SpecialCredential(keyword=entry.keyword, **common))
        else:
            simple.append(SimpleCredential(**common))

    logger.debug("Credential schema extracted", simple=len(simple), special=len(special_credentials))
    return CredentialSchema(simple=simple, special=special_credentials)
