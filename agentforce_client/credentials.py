"""
Credential providers.

Two strategies produce a bearer token plus the base URL the Agent API must
be called through:

- DIRECT: OAuth2 client-credentials exchange against the org's My Domain.
  The API base URL is the `api_instance_url` returned by the token endpoint.
- APPLINK: pre-authorized JWT bearer token from the Heroku AppLink add-on.
  The API base URL is always APPLINK_API_BASE_URL, whatever domain the
  broker reports.

Strategies are plain coroutine functions registered in CREDENTIAL_PROVIDERS
and selected by AuthMode.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import aiohttp
import httpx

from ._constants import APPLINK_API_BASE_URL, AUTH_TIMEOUT, AuthMode, FailureReason
from .applink import AuthorizationBroker
from .config import AgentforceConfig
from .exceptions import AgentforceAuthenticationError, AgentforceConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Credentials:
    """
    Bearer token and the base URL to call with it.

    Attributes:
        access_token: OAuth bearer token
        api_base_url: Scheme + host for Agent API calls, no trailing slash
    """

    access_token: str
    api_base_url: str

    def __repr__(self) -> str:
        return f"Credentials(access_token='***', api_base_url={self.api_base_url!r})"

    @property
    def auth_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


@dataclass(frozen=True, slots=True)
class CredentialContext:
    """Collaborators a strategy may use."""

    config: AgentforceConfig
    http: httpx.AsyncClient
    broker: AuthorizationBroker | None = None


CredentialProvider = Callable[[CredentialContext], Awaitable[Credentials]]


async def fetch_direct_credentials(ctx: CredentialContext) -> Credentials:
    """
    OAuth2 client-credentials exchange.

    Raises:
        AgentforceConfigurationError: If domain or client settings are missing
        AgentforceAuthenticationError: On any exchange failure
    """
    config = ctx.config
    form = {
        "grant_type": "client_credentials",
        "client_id": config.require("consumer_key"),
        "client_secret": config.require("consumer_secret"),
    }
    url = config.auth_endpoint()

    try:
        logger.debug(f"[AUTH] Requesting client-credentials token from {url}")
        response = await ctx.http.post(url, data=form, timeout=AUTH_TIMEOUT)
        response.raise_for_status()
        data = response.json()
    except httpx.TimeoutException as e:
        logger.error(f"[AUTH] Token request timed out: {e}")
        raise AgentforceAuthenticationError(
            "Authentication timeout: Unable to connect to Salesforce",
            mode=AuthMode.DIRECT,
            reason=FailureReason.TIMEOUT,
        ) from e
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.error(f"[AUTH] Token request failed with HTTP {status}")
        if status == 401:
            raise AgentforceAuthenticationError(
                "Authentication failed: Invalid client credentials",
                mode=AuthMode.DIRECT,
                reason=FailureReason.INVALID_CREDENTIALS,
                status_code=status,
            ) from e
        if status >= 500:
            raise AgentforceAuthenticationError(
                "Authentication failed: Salesforce service temporarily unavailable",
                mode=AuthMode.DIRECT,
                reason=FailureReason.SERVICE_UNAVAILABLE,
                status_code=status,
            ) from e
        raise AgentforceAuthenticationError(
            f"Authentication failed: {status}",
            mode=AuthMode.DIRECT,
            reason=FailureReason.GENERIC,
            status_code=status,
        ) from e
    except httpx.TransportError as e:
        logger.error(f"[AUTH] Token request could not connect: {type(e).__name__}: {e}")
        raise AgentforceAuthenticationError(
            "Authentication failed: Unable to connect to Salesforce",
            mode=AuthMode.DIRECT,
            reason=FailureReason.CONNECTION,
        ) from e
    except ValueError as e:
        logger.error(f"[AUTH] Token response was not JSON: {e}")
        raise AgentforceAuthenticationError(
            "Authentication failed: Invalid authentication response",
            mode=AuthMode.DIRECT,
            reason=FailureReason.INVALID_RESPONSE,
        ) from e

    access_token = data.get("access_token") if isinstance(data, dict) else None
    api_instance_url = data.get("api_instance_url") if isinstance(data, dict) else None
    if not access_token or not api_instance_url:
        logger.error("[AUTH] Token response missing access_token or api_instance_url")
        raise AgentforceAuthenticationError(
            "Authentication failed: Invalid authentication response: "
            "missing access token or API instance URL",
            mode=AuthMode.DIRECT,
            reason=FailureReason.INVALID_RESPONSE,
        )

    logger.info(f"[AUTH] Obtained client-credentials token for {api_instance_url}")
    return Credentials(access_token=access_token, api_base_url=api_instance_url.rstrip("/"))


def _applink_access_token(auth: Any) -> str | None:
    """Token at `org.user_auth.access_token`, the heroku_applink Authorization shape."""
    org = getattr(auth, "org", None)
    user_auth = getattr(org, "user_auth", None)
    return getattr(user_auth, "access_token", None)


async def fetch_applink_credentials(ctx: CredentialContext) -> Credentials:
    """
    Pre-authorized token from the AppLink broker.

    Raises:
        AgentforceConfigurationError: If no broker is available, or the
            AppLink add-on attachment is missing from the environment
        AgentforceAuthenticationError: On any other broker failure or a
            missing token
    """
    if ctx.broker is None:
        raise AgentforceConfigurationError("AppLink mode requires an authorization broker")
    name = ctx.config.jwt_connection_name

    try:
        auth = await ctx.broker.get_authorization(name)
    except AgentforceAuthenticationError as e:
        logger.error(f"[AUTH] AppLink authorization '{name}' failed: {e}")
        raise AgentforceAuthenticationError(
            f"AppLink authentication failed: {e}",
            mode=AuthMode.APPLINK,
            reason=e.reason,
            status_code=e.status_code,
        ) from e
    except (aiohttp.ContentTypeError, KeyError, ValueError, TypeError) as e:
        logger.error(f"[AUTH] AppLink authorization '{name}' response was malformed: {e!r}")
        raise AgentforceAuthenticationError(
            "AppLink authentication failed: Invalid AppLink authorization response",
            mode=AuthMode.APPLINK,
            reason=FailureReason.INVALID_RESPONSE,
        ) from e
    except aiohttp.ClientResponseError as e:
        status = e.status
        logger.error(f"[AUTH] AppLink authorization '{name}' failed with HTTP {status}")
        if status == 404:
            reason = FailureReason.NOT_FOUND
        elif status >= 500:
            reason = FailureReason.SERVICE_UNAVAILABLE
        else:
            reason = FailureReason.GENERIC
        raise AgentforceAuthenticationError(
            f"AppLink authentication failed: HTTP {status}",
            mode=AuthMode.APPLINK,
            reason=reason,
            status_code=status,
        ) from e
    except (asyncio.TimeoutError, aiohttp.ServerTimeoutError) as e:
        logger.error(f"[AUTH] AppLink authorization '{name}' timed out")
        raise AgentforceAuthenticationError(
            "AppLink authentication failed: Timed out retrieving credentials",
            mode=AuthMode.APPLINK,
            reason=FailureReason.TIMEOUT,
        ) from e
    except aiohttp.ClientError as e:
        logger.error(f"[AUTH] AppLink authorization '{name}' could not connect: {e}")
        raise AgentforceAuthenticationError(
            "AppLink authentication failed: Unable to connect to the AppLink add-on",
            mode=AuthMode.APPLINK,
            reason=FailureReason.CONNECTION,
        ) from e
    except OSError as e:
        logger.error(f"[AUTH] AppLink add-on is not configured: {e}")
        raise AgentforceConfigurationError(f"AppLink authentication failed: {e}") from e
    except Exception as e:
        logger.error(f"[AUTH] AppLink authorization '{name}' failed: {type(e).__name__}: {e}")
        raise AgentforceAuthenticationError(
            f"AppLink authentication failed: {str(e) or 'Unable to retrieve credentials'}",
            mode=AuthMode.APPLINK,
            reason=FailureReason.GENERIC,
        ) from e

    access_token = _applink_access_token(auth)
    if not access_token:
        logger.error(f"[AUTH] AppLink authorization '{name}' has no access token")
        raise AgentforceAuthenticationError(
            "AppLink authentication failed: "
            "Invalid AppLink authorization response: missing access token",
            mode=AuthMode.APPLINK,
            reason=FailureReason.INVALID_RESPONSE,
        )

    logger.info(f"[AUTH] Obtained AppLink token from authorization '{name}'")
    return Credentials(access_token=access_token, api_base_url=APPLINK_API_BASE_URL)


CREDENTIAL_PROVIDERS: dict[AuthMode, CredentialProvider] = {
    AuthMode.DIRECT: fetch_direct_credentials,
    AuthMode.APPLINK: fetch_applink_credentials,
}


async def resolve_credentials(mode: AuthMode | str, ctx: CredentialContext) -> Credentials:
    """
    Resolve credentials with the strategy registered for mode.

    Raises:
        ValueError: If mode is not a known AuthMode
    """
    provider = CREDENTIAL_PROVIDERS[AuthMode(mode)]
    return await provider(ctx)
