"""
Agentforce Agent API client with session lifecycle management.

This module provides AgentforceClient, which:
- Resolves credentials through the strategy selected by AuthMode
- Creates, caches and ends remote agent sessions
- Sends chat messages and hands back the live event stream

Sessions are cached per (mode, agent) for the session cache window and
reused across messages. end_session() always drops the cached session, so
the next message opens a fresh one.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

import httpx

from ._constants import (
    CREDENTIALS_CACHE_TTL,
    EVENT_STREAM_MEDIA_TYPE,
    MESSAGE_TYPE_TEXT,
    SESSION_CACHE_TTL,
    SESSION_CREATE_TIMEOUT,
    SESSION_END_REASON_HEADER,
    SESSION_END_REASON_USER,
    SESSION_END_TIMEOUT,
    STREAMING_CHUNK_TYPES,
    STREAMING_FEATURE,
    STREAMING_TIMEOUT,
    AuthMode,
    FailureReason,
)
from .applink import AppLinkBroker, AuthorizationBroker
from .cache import TTLCache
from .config import AgentforceConfig
from .credentials import CredentialContext, Credentials, resolve_credentials
from .exceptions import (
    AgentforceConfigurationError,
    AgentforceDispatchError,
    AgentforceSessionError,
    MessageValidationError,
)
from .retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AgentSession:
    """
    Handle for a remote agent session.

    Attributes:
        session_id: Opaque id issued by the Agent API
        agent_id: Agent the session was opened against
        mode: Authentication mode used to open it
        raw: Full session-creation response body
    """

    session_id: str
    agent_id: str
    mode: AuthMode
    raw: dict[str, Any]

    def __getitem__(self, key: str) -> Any:
        return self.raw[key]


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A single outbound text message."""

    sequence_id: int
    text: str
    type: str = MESSAGE_TYPE_TEXT

    @classmethod
    def build(cls, text: Any, sequence_id: Any) -> ChatMessage:
        """
        Validate input and build a message with trimmed text.

        Raises:
            MessageValidationError: If text is blank or sequence_id is not a
                                    non-negative integer
        """
        if not isinstance(text, str) or not text.strip():
            raise MessageValidationError("Message text cannot be empty")
        if (
            isinstance(sequence_id, bool)
            or not isinstance(sequence_id, int)
            or sequence_id < 0
        ):
            raise MessageValidationError("Invalid sequence ID")
        return cls(sequence_id=sequence_id, text=text.strip())

    def to_payload(self) -> dict[str, Any]:
        return {
            "message": {
                "sequenceId": self.sequence_id,
                "type": self.type,
                "text": self.text,
            }
        }


def _reason_phrase(response: httpx.Response) -> str:
    return response.reason_phrase or "Network error"


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class AgentforceClient:
    """
    Client for the Agentforce Agent API.

    Owns an httpx.AsyncClient unless one is passed in, a credential cache
    and a session cache. AuthMode is chosen per call, so one client can
    serve direct and AppLink callers at the same time.

    Example:
        >>> async with AgentforceClient(AgentforceConfig.from_env()) as client:
        ...     response = await client.send_streaming_message("Hello!", 1)
        ...     async for line in response.aiter_lines():
        ...         print(line)
        ...     await response.aclose()
    """

    __slots__ = (
        "_config",
        "_http",
        "_owns_http",
        "_broker",
        "_retry_policy",
        "_credentials_cache",
        "_session_cache",
        "_credentials_ttl",
        "_session_ttl",
    )

    def __init__(
        self,
        config: AgentforceConfig,
        *,
        http: httpx.AsyncClient | None = None,
        broker: AuthorizationBroker | None = None,
        retry_policy: RetryPolicy | None = None,
        credentials_ttl: float = CREDENTIALS_CACHE_TTL,
        session_ttl: float = SESSION_CACHE_TTL,
        cache: TTLCache | None = None,
    ):
        """
        Initialize the client.

        Args:
            config: Settings (see AgentforceConfig)
            http: Shared HTTP client; the caller keeps ownership when given
            broker: AppLink authorization broker; an SDK-backed
                    AppLinkBroker when omitted
            retry_policy: Retry policy for session creation
            credentials_ttl: Credential cache window in seconds
            session_ttl: Session cache window in seconds
            cache: Cache used for both credentials and sessions; one cache
                   per kind is created when omitted

        Raises:
            ValueError: If a cache window is not positive
        """
        if credentials_ttl <= 0:
            raise ValueError(f"credentials_ttl must be positive, got {credentials_ttl}")
        if session_ttl <= 0:
            raise ValueError(f"session_ttl must be positive, got {session_ttl}")

        self._config = config
        self._owns_http = http is None
        self._http = http if http is not None else httpx.AsyncClient()
        self._broker = broker if broker is not None else AppLinkBroker()
        self._retry_policy = retry_policy or RetryPolicy()
        self._credentials_cache = cache if cache is not None else TTLCache()
        self._session_cache = cache if cache is not None else TTLCache()
        self._credentials_ttl = credentials_ttl
        self._session_ttl = session_ttl

        logger.debug(
            f"[CLIENT] AgentforceClient initialized, credentials_ttl={credentials_ttl}s, "
            f"session_ttl={session_ttl}s, broker={type(self._broker).__name__}"
        )

    @property
    def config(self) -> AgentforceConfig:
        return self._config

    # ─────────────────────────────────────────────────────────────────────────
    # Credentials
    # ─────────────────────────────────────────────────────────────────────────

    async def get_credentials(self, mode: AuthMode | str = AuthMode.DIRECT) -> Credentials:
        """Return cached credentials for mode, resolving them on a miss."""
        mode = AuthMode(mode)
        ctx = CredentialContext(config=self._config, http=self._http, broker=self._broker)
        return await self._credentials_cache.get_or_resolve(
            ("credentials", mode),
            self._credentials_ttl,
            lambda: resolve_credentials(mode, ctx),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Sessions
    # ─────────────────────────────────────────────────────────────────────────

    def _target_agent_id(self, agent_id: str | None) -> str:
        target = agent_id or self._config.agent_id
        if not target:
            raise AgentforceConfigurationError(
                "No agent ID provided and no default agent configured"
            )
        return target

    async def new_session(
        self,
        agent_id: str | None = None,
        mode: AuthMode | str = AuthMode.DIRECT,
    ) -> AgentSession:
        """
        Create a new remote agent session, retrying transient failures.

        Credential resolution and the session POST are retried together.

        Args:
            agent_id: Agent to open the session against (config default if None)
            mode: Authentication mode

        Returns:
            AgentSession for the new session

        Raises:
            AgentforceConfigurationError: If no agent id is available
            AgentforceAuthenticationError: If credentials cannot be resolved
            AgentforceSessionError: If the Agent API rejects or fails the request
        """
        mode = AuthMode(mode)
        target = self._target_agent_id(agent_id)
        return await with_retry(
            lambda: self._create_session(target, mode),
            self._retry_policy,
        )

    async def _create_session(self, agent_id: str, mode: AuthMode) -> AgentSession:
        credentials = await self.get_credentials(mode)
        payload = {
            "externalSessionKey": str(uuid.uuid4()),
            "instanceConfig": {
                "endpoint": self._config.instance_endpoint(),
            },
            "featureSupport": STREAMING_FEATURE,
            "streamingCapabilities": {
                "chunkTypes": list(STREAMING_CHUNK_TYPES),
            },
            "bypassUser": True,
        }
        url = f"{credentials.api_base_url}{self._config.agent_sessions_endpoint(agent_id)}"

        try:
            logger.debug(f"[SESSION] Creating session for agent {agent_id} ({mode.value})")
            response = await self._http.post(
                url,
                json=payload,
                headers=credentials.auth_header,
                timeout=SESSION_CREATE_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"[SESSION] Session creation timed out for agent {agent_id}")
            raise AgentforceSessionError(
                "Session creation timeout: Agentforce service is taking too long to respond",
                reason=FailureReason.TIMEOUT,
            ) from e
        except httpx.HTTPStatusError as e:
            raise self._session_status_error(e.response) from e
        except httpx.TransportError as e:
            logger.error(f"[SESSION] Session creation failed: {type(e).__name__}: {e}")
            raise AgentforceSessionError(
                "Session creation failed: Network error",
                reason=FailureReason.CONNECTION,
            ) from e
        except ValueError as e:
            logger.error(f"[SESSION] Session response was not JSON: {e}")
            raise AgentforceSessionError(
                "Invalid session response: malformed body",
                reason=FailureReason.INVALID_RESPONSE,
            ) from e

        session_id = data.get("sessionId") if isinstance(data, dict) else None
        if not session_id:
            logger.error("[SESSION] Session response missing sessionId")
            raise AgentforceSessionError(
                "Invalid session response: missing session ID",
                reason=FailureReason.INVALID_RESPONSE,
            )

        logger.info(f"[SESSION] Session created: {session_id} (agent {agent_id}, {mode.value})")
        return AgentSession(session_id=session_id, agent_id=agent_id, mode=mode, raw=data)

    @staticmethod
    def _session_status_error(response: httpx.Response) -> AgentforceSessionError:
        status = response.status_code
        logger.error(f"[SESSION] Session creation failed with HTTP {status}")
        if status == 401:
            message, reason = "Authentication expired", FailureReason.AUTH_EXPIRED
        elif status == 403:
            message, reason = "Access denied to Agentforce agent", FailureReason.ACCESS_DENIED
        elif status == 404:
            message, reason = "Agentforce agent not found", FailureReason.NOT_FOUND
        elif status >= 500:
            message = "Agentforce service temporarily unavailable"
            reason = FailureReason.SERVICE_UNAVAILABLE
        else:
            message, reason = _reason_phrase(response), FailureReason.GENERIC
        return AgentforceSessionError(
            f"Session creation failed: {message}", reason=reason, status_code=status
        )

    async def get_session(
        self,
        agent_id: str | None = None,
        mode: AuthMode | str = AuthMode.DIRECT,
    ) -> AgentSession:
        """
        Return the cached session for (mode, agent), creating one on a miss.

        Raises:
            Same as new_session()
        """
        mode = AuthMode(mode)
        target = self._target_agent_id(agent_id)
        return await self._session_cache.get_or_resolve(
            ("session", mode, target),
            self._session_ttl,
            lambda: self.new_session(target, mode),
        )

    async def end_session(
        self,
        mode: AuthMode | str = AuthMode.DIRECT,
        agent_id: str | None = None,
    ) -> Any | None:
        """
        End the cached session for (mode, agent). Best effort.

        The cached session is dropped whatever happens, so the next
        get_session() opens a new one. Failures are logged, never raised;
        the platform expires abandoned sessions on its own.

        Returns:
            Parsed DELETE response body, or None on failure or empty body
        """
        key: tuple[Any, ...] | None = None
        try:
            mode = AuthMode(mode)
            target = self._target_agent_id(agent_id)
            key = ("session", mode, target)
            credentials = await self.get_credentials(mode)
            session = await self.get_session(target, mode)

            url = f"{credentials.api_base_url}{self._config.session_endpoint(session.session_id)}"
            response = await self._http.delete(
                url,
                headers={
                    SESSION_END_REASON_HEADER: SESSION_END_REASON_USER,
                    **credentials.auth_header,
                },
                timeout=SESSION_END_TIMEOUT,
            )
            response.raise_for_status()
            logger.info(f"[SESSION] Session ended: {session.session_id}")
            return response.json() if response.content else None
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info("[SESSION] Session already gone (404)")
            else:
                logger.warning(
                    f"[SESSION] Failed to properly end session (HTTP "
                    f"{e.response.status_code}), continuing"
                )
            return None
        except Exception as e:
            logger.warning(f"[SESSION] Session end failed: {type(e).__name__}: {e}")
            return None
        finally:
            if key is not None:
                self._session_cache.invalidate(key)

    # ─────────────────────────────────────────────────────────────────────────
    # Messages
    # ─────────────────────────────────────────────────────────────────────────

    async def send_streaming_message(
        self,
        text: str,
        sequence_id: int,
        agent_id: str | None = None,
        mode: AuthMode | str = AuthMode.DIRECT,
    ) -> httpx.Response:
        """
        Send a message and return the open event-stream response.

        Not retried: one call issues exactly one message POST. The response
        body is not read; the caller iterates it and must close it.

        Args:
            text: Message text (trimmed before sending, must not be blank)
            sequence_id: Non-negative message sequence number
            agent_id: Agent to talk to (config default if None)
            mode: Authentication mode

        Returns:
            httpx.Response opened with stream=True

        Raises:
            MessageValidationError: On invalid text or sequence_id, before any
                                    network call
            AgentforceConfigurationError, AgentforceAuthenticationError,
            AgentforceSessionError: Propagated unchanged from resolution
            AgentforceDispatchError: If the message POST fails
        """
        message = ChatMessage.build(text, sequence_id)
        mode = AuthMode(mode)

        credentials = await self.get_credentials(mode)
        session = await self.get_session(agent_id, mode)

        url = f"{credentials.api_base_url}{self._config.streaming_endpoint(session.session_id)}"
        request = self._http.build_request(
            "POST",
            url,
            json=message.to_payload(),
            headers={"Accept": EVENT_STREAM_MEDIA_TYPE, **credentials.auth_header},
            timeout=STREAMING_TIMEOUT,
        )

        try:
            logger.debug(
                f"[DISPATCH] Sending message seq={message.sequence_id} "
                f"({len(message.text)} chars) to session {session.session_id}"
            )
            response = await self._http.send(request, stream=True)
        except httpx.TimeoutException as e:
            logger.error(f"[DISPATCH] Message timed out for session {session.session_id}")
            raise AgentforceDispatchError(
                "Request timeout: Agentforce is taking too long to respond",
                reason=FailureReason.TIMEOUT,
            ) from e
        except httpx.TransportError as e:
            logger.error(f"[DISPATCH] Message failed: {type(e).__name__}: {e}")
            raise AgentforceDispatchError(
                "Failed to send message: Network error",
                reason=FailureReason.CONNECTION,
            ) from e

        if response.is_success:
            return response

        await response.aclose()
        raise self._dispatch_status_error(response)

    @staticmethod
    def _dispatch_status_error(response: httpx.Response) -> AgentforceDispatchError:
        status = response.status_code
        logger.error(f"[DISPATCH] Message failed with HTTP {status}")
        retry_after = None
        if status == 401:
            message = "Authentication expired: Please refresh and try again"
            reason = FailureReason.AUTH_EXPIRED
        elif status == 403:
            message = "Access denied: You don't have permission to use this agent"
            reason = FailureReason.ACCESS_DENIED
        elif status == 404:
            message = "Session not found: Please refresh and try again"
            reason = FailureReason.NOT_FOUND
        elif status == 429:
            message = "Rate limit exceeded: Please wait a moment and try again"
            reason = FailureReason.RATE_LIMITED
            retry_after = _retry_after(response)
        elif status >= 500:
            message = (
                "Agentforce service is temporarily unavailable. "
                "Please try again in a few moments"
            )
            reason = FailureReason.SERVICE_UNAVAILABLE
        else:
            message = f"Failed to send message: {_reason_phrase(response)}"
            reason = FailureReason.GENERIC
        return AgentforceDispatchError(
            message, reason=reason, status_code=status, retry_after=retry_after
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """
        Release resources.

        Closes the HTTP client if this instance created it and drops all
        cached credentials and sessions. Safe to call multiple times.
        """
        self._credentials_cache.clear()
        self._session_cache.clear()
        if self._owns_http and not self._http.is_closed:
            await self._http.aclose()
            logger.debug("[CLIENT] HTTP client closed")

    async def __aenter__(self) -> AgentforceClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
