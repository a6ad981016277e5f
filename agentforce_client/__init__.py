"""
Agentforce Agent API client.

Lets a web backend chat with a Salesforce Agentforce agent:
- Two interchangeable authentication modes (AuthMode):
  direct OAuth client credentials, or a Heroku AppLink JWT authorization
- Cached credentials and agent sessions with a short validity window
- Bounded retry around session creation
- Streaming message dispatch returning the raw event stream

Usage:
    ```python
    from agentforce_client import AuthMode, send_streaming_message, iter_sse_events

    response = await send_streaming_message("Hello!", 1, mode=AuthMode.APPLINK)
    async for event in iter_sse_events(response):
        print(event.data)
    ```

Environment:
    SF_MY_DOMAIN_URL, SF_CONSUMER_KEY, SF_CONSUMER_SECRET, SF_AGENT_ID
    (direct mode). SF_JWT_CONNECTION_NAME (applink mode), plus the AppLink
    add-on attachment the heroku_applink SDK reads (HEROKU_APPLINK_API_URL,
    HEROKU_APPLINK_TOKEN, HEROKU_APP_ID).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ._constants import AuthMode, FailureReason
from .applink import AppLinkBroker, AuthorizationBroker
from .cache import TTLCache
from .client import AgentforceClient, AgentSession, ChatMessage
from .config import AgentforceConfig
from .credentials import (
    CREDENTIAL_PROVIDERS,
    Credentials,
    fetch_applink_credentials,
    fetch_direct_credentials,
    resolve_credentials,
)
from .exceptions import (
    AgentforceAuthenticationError,
    AgentforceConfigurationError,
    AgentforceDispatchError,
    AgentforceError,
    AgentforceSessionError,
    MessageValidationError,
)
from .retry import RetryPolicy, is_retryable_error, with_retry
from .streaming import SseEvent, iter_sse_events

__all__ = [
    # Module-level API (process-wide default client)
    "new_session",
    "get_session",
    "end_session",
    "send_streaming_message",
    "get_default_client",
    "close_default_client",
    # Client
    "AgentforceClient",
    "AgentforceConfig",
    "AgentSession",
    "ChatMessage",
    "AuthMode",
    "FailureReason",
    # Credentials
    "Credentials",
    "CREDENTIAL_PROVIDERS",
    "resolve_credentials",
    "fetch_direct_credentials",
    "fetch_applink_credentials",
    "AppLinkBroker",
    "AuthorizationBroker",
    # Building blocks
    "TTLCache",
    "RetryPolicy",
    "is_retryable_error",
    "with_retry",
    "SseEvent",
    "iter_sse_events",
    # Exceptions
    "AgentforceError",
    "MessageValidationError",
    "AgentforceConfigurationError",
    "AgentforceAuthenticationError",
    "AgentforceSessionError",
    "AgentforceDispatchError",
]

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Process-Level Default Client
# ═══════════════════════════════════════════════════════════════════════════════
#
# Route handlers in one process share ONE AgentforceClient, so they share its
# connection pool, credential cache and session cache. It is built lazily from
# the environment on first use.

_default_client: AgentforceClient | None = None
_default_client_lock: asyncio.Lock | None = None


def _get_lock() -> asyncio.Lock:
    """Return the default-client lock, creating it lazily on first call.

    Lazy initialization avoids creating asyncio.Lock at import time,
    when no event loop may exist yet.
    """
    global _default_client_lock
    if _default_client_lock is None:
        _default_client_lock = asyncio.Lock()
    return _default_client_lock


async def get_default_client() -> AgentforceClient:
    """Return the process-wide client, creating it from the environment if needed."""
    global _default_client
    if _default_client is not None:
        return _default_client
    async with _get_lock():
        if _default_client is None:
            logger.info("[CLIENT] Creating process-wide AgentforceClient from environment")
            _default_client = AgentforceClient(AgentforceConfig.from_env())
        return _default_client


async def close_default_client() -> None:
    """Close and forget the process-wide client. Safe to call if none exists."""
    global _default_client
    async with _get_lock():
        if _default_client is not None:
            await _default_client.close()
            _default_client = None
            logger.info("[CLIENT] Process-wide AgentforceClient closed")


async def new_session(
    agent_id: str | None = None,
    mode: AuthMode | str = AuthMode.DIRECT,
) -> AgentSession:
    """Create a new session with the default client (see AgentforceClient.new_session)."""
    client = await get_default_client()
    return await client.new_session(agent_id, mode)


async def get_session(
    agent_id: str | None = None,
    mode: AuthMode | str = AuthMode.DIRECT,
) -> AgentSession:
    """Return the cached session from the default client, creating one if needed."""
    client = await get_default_client()
    return await client.get_session(agent_id, mode)


async def end_session(
    mode: AuthMode | str = AuthMode.DIRECT,
    agent_id: str | None = None,
) -> Any | None:
    """End the cached session on the default client. Never raises."""
    try:
        client = await get_default_client()
    except Exception as e:
        logger.warning(f"[SESSION] Session end skipped, no client: {e}")
        return None
    return await client.end_session(mode, agent_id)


async def send_streaming_message(
    text: str,
    sequence_id: int,
    agent_id: str | None = None,
    mode: AuthMode | str = AuthMode.DIRECT,
) -> httpx.Response:
    """Send a message with the default client and return the open stream."""
    client = await get_default_client()
    return await client.send_streaming_message(text, sequence_id, agent_id, mode)
