"""Known n8n credential types and the fields an operator supplies for them.

Append-only: the extractor treats every type missing from this table as a
guess and logs it, so adding a type here is how a guess becomes exact.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple

from n8n_provisioner.models.credentials import CredentialField, FieldKind


@dataclass(frozen=True)
class CredentialTypeSpec:
    fields: Tuple[CredentialField, ...]
    is_oauth: bool = False


def _secret(name: str, label: str, required: bool = True) -> CredentialField:
    return CredentialField(name=name, label=label, kind=FieldKind.SECRET, required=required)


def _text(name: str, label: str, required: bool = True, default: str = None) -> CredentialField:
    return CredentialField(name=name, label=label, kind=FieldKind.TEXT, required=required, default=default)


API_KEY = (_secret('apiKey', 'API Key'),)

OAUTH_CLIENT = (
    _text('clientId', 'Client ID'),
    _secret('clientSecret', 'Client Secret'),
)

CREDENTIAL_TYPE_REGISTRY: Mapping[str, CredentialTypeSpec] = MappingProxyType({
    # Token / API key services
    'airtableTokenApi': CredentialTypeSpec((_secret('token', 'Personal Access Token'),)),
    'openAiApi': CredentialTypeSpec((
        _secret('apiKey', 'API Key'),
        _text('organizationId', 'Organization ID', required=False),
    )),
    'anthropicApi': CredentialTypeSpec(API_KEY),
    'googlePalmApi': CredentialTypeSpec(API_KEY),
    'perplexityApi': CredentialTypeSpec(API_KEY),
    'notionApi': CredentialTypeSpec(API_KEY),
    'telegramApi': CredentialTypeSpec((_secret('accessToken', 'Bot Access Token'),)),
    'slackApi': CredentialTypeSpec((_secret('accessToken', 'Access Token'),)),

    # Generic auth (name-disambiguated)
    'httpHeaderAuth': CredentialTypeSpec((
        _text('name', 'Header Name'),
        _secret('value', 'Header Value'),
    )),
    'httpBasicAuth': CredentialTypeSpec((
        _text('user', 'Username'),
        _secret('password', 'Password'),
    )),
    'httpQueryAuth': CredentialTypeSpec((
        _text('name', 'Query Parameter Name'),
        _secret('value', 'Query Parameter Value'),
    )),
    'customAuth': CredentialTypeSpec((_secret('json', 'Auth JSON'),)),

    # Interactive OAuth; client id/secret can be provisioned, consent cannot
    'oAuth2Api': CredentialTypeSpec(OAUTH_CLIENT, is_oauth=True),
    'googleSheetsOAuth2Api': CredentialTypeSpec(OAUTH_CLIENT, is_oauth=True),
    'googleDriveOAuth2Api': CredentialTypeSpec(OAUTH_CLIENT, is_oauth=True),
    'gmailOAuth2': CredentialTypeSpec(OAUTH_CLIENT, is_oauth=True),
    'slackOAuth2Api': CredentialTypeSpec(OAUTH_CLIENT, is_oauth=True),
})


def get_type_spec(credential_type: str) -> CredentialTypeSpec | None:
    """Exact registry lookup, no guessing."""
    return CREDENTIAL_TYPE_REGISTRY.get(credential_type)
