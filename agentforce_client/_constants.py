"""Constants for the Agentforce agent client.

This module defines constants used across the client implementation,
following the principle of single source of truth.

Timeout Philosophy:
- Each remote call gets a fixed timeout sized to what it does
- No caller-supplied cancellation; a timed-out call surfaces as a
  classified timeout error
- Streaming gets the longest budget because the agent may think before
  the first chunk arrives
"""

from enum import Enum, auto

# ═══════════════════════════════════════════════════════════════════════════════
# Authentication Modes
# ═══════════════════════════════════════════════════════════════════════════════


class AuthMode(str, Enum):
    """
    Authentication strategy selector.

    DIRECT performs an OAuth2 client-credentials exchange against the org's
    My Domain. APPLINK retrieves a pre-authorized JWT bearer token from the
    Heroku AppLink add-on.
    """

    DIRECT = "direct"
    APPLINK = "applink"


class FailureReason(Enum):
    """Classification attached to every error raised by the client."""

    TIMEOUT = auto()
    CONNECTION = auto()
    INVALID_CREDENTIALS = auto()
    AUTH_EXPIRED = auto()
    ACCESS_DENIED = auto()
    NOT_FOUND = auto()
    RATE_LIMITED = auto()
    SERVICE_UNAVAILABLE = auto()
    INVALID_RESPONSE = auto()
    GENERIC = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# Timeouts (seconds)
# ═══════════════════════════════════════════════════════════════════════════════

AUTH_TIMEOUT = 10.0
SESSION_CREATE_TIMEOUT = 15.0
SESSION_END_TIMEOUT = 10.0
STREAMING_TIMEOUT = 30.0

# ═══════════════════════════════════════════════════════════════════════════════
# Retry Policy
# ═══════════════════════════════════════════════════════════════════════════════

# 3 total attempts; delay before retry n is RETRY_BASE_DELAY * n
DEFAULT_MAX_RETRIES = 2
RETRY_BASE_DELAY = 1.5

# ═══════════════════════════════════════════════════════════════════════════════
# Cache Windows (seconds)
# ═══════════════════════════════════════════════════════════════════════════════

CREDENTIALS_CACHE_TTL = 300.0
SESSION_CACHE_TTL = 300.0

# ═══════════════════════════════════════════════════════════════════════════════
# Endpoints
# ═══════════════════════════════════════════════════════════════════════════════

# Agent API is served from one canonical host for AppLink tokens,
# never from the org's My Domain
APPLINK_API_BASE_URL = "https://api.salesforce.com"

OAUTH_TOKEN_PATH = "/services/oauth2/token"
AGENT_API_PATH = "/einstein/ai-agent/v1"

DEFAULT_JWT_CONNECTION_NAME = "org_jwt"

# ═══════════════════════════════════════════════════════════════════════════════
# Wire Values
# ═══════════════════════════════════════════════════════════════════════════════

SESSION_END_REASON_HEADER = "x-session-end-reason"
SESSION_END_REASON_USER = "UserRequest"

EVENT_STREAM_MEDIA_TYPE = "text/event-stream"

MESSAGE_TYPE_TEXT = "Text"
STREAMING_FEATURE = "Streaming"
STREAMING_CHUNK_TYPES = ("Text",)
