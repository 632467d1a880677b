"""Centralized constants for credential classification and health policy.

This module provides a single source of truth for the credential type sets
and the fixed health thresholds, so the extractor, the engine and the
monitor never carry their own copies.
"""

from typing import FrozenSet, Tuple

# =============================================================================
# CREDENTIAL TYPES
# =============================================================================

# Generic auth types whose only distinguishing mark is the human-assigned name
# on the node reference. Two nodes using httpHeaderAuth named "DataforSEO" and
# "Replicate" need two different secrets.
SPECIAL_CREDENTIAL_TYPES: FrozenSet[str] = frozenset([
    'httpHeaderAuth',
    'httpBasicAuth',
    'customAuth',
])

# Words stripped from a special credential name to derive its keyword
CREDENTIAL_KEYWORD_STOP_WORDS: Tuple[str, ...] = (
    'api',
    'key',
    'auth',
    'token',
    'production',
    'prod',
    'dev',
    'development',
    'test',
)

OAUTH_MANUAL_STEP_NOTE = (
    "Requires an interactive OAuth authorization. Enter the client id and "
    "secret, then finish connecting the credential in n8n after deployment."
)

# =============================================================================
# HEALTH POLICY
# =============================================================================

HEALTH_EXECUTION_WINDOW: int = 20          # executions fetched per check
HEALTHY_SUCCESS_RATE: int = 80             # percent, inclusive
CRITICAL_SUCCESS_RATE: int = 50            # percent, below is critical
SLOW_EXECUTION_THRESHOLD_MS: int = 30000   # average, exclusive

EXECUTION_SUCCESS_STATUS: str = 'success'

EXECUTION_ERROR_STATUSES: FrozenSet[str] = frozenset([
    'error',
    'crashed',
    'failed',
])

UNREACHABLE_MARKER: str = 'unreachable'

# =============================================================================
# HEALTH RECORDING (store side)
# =============================================================================

MAX_RECORDED_HEALTH_ERRORS: int = 10
NOTIFY_AFTER_CONSECUTIVE_ERRORS: int = 3

# =============================================================================
# RETRY CLASSIFICATION
# =============================================================================

RATE_LIMIT_STATUS: int = 429

TRANSIENT_SERVER_STATUSES: FrozenSet[int] = frozenset([502, 503, 504])
