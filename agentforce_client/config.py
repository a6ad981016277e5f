"""
Configuration for the Agentforce agent client.

Values come from the process environment (the deployment sets them with
`heroku config:set`) or from a plain mapping. Nothing is validated eagerly:
a missing value is reported only when an operation that needs it runs, so a
process using AppLink mode does not need OAuth client settings and vice versa.
The AppLink add-on attachment itself is read by the heroku_applink SDK.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ._constants import AGENT_API_PATH, DEFAULT_JWT_CONNECTION_NAME, OAUTH_TOKEN_PATH
from .exceptions import AgentforceConfigurationError

logger = logging.getLogger(__name__)

# Environment variable -> config field
ENV_FIELDS: dict[str, str] = {
    "SF_MY_DOMAIN_URL": "my_domain_url",
    "SF_CONSUMER_KEY": "consumer_key",
    "SF_CONSUMER_SECRET": "consumer_secret",
    "SF_AGENT_ID": "agent_id",
    "SF_JWT_CONNECTION_NAME": "jwt_connection_name",
}


@dataclass(frozen=True, slots=True)
class AgentforceConfig:
    """
    Read-only settings consumed by the client.

    Attributes:
        my_domain_url: Org My Domain, with or without the https:// scheme
        consumer_key: OAuth client id of the External Client App
        consumer_secret: OAuth client secret of the External Client App
        agent_id: Default Agentforce agent id
        jwt_connection_name: AppLink JWT authorization developer name
    """

    my_domain_url: str | None = None
    consumer_key: str | None = None
    consumer_secret: str | None = None
    agent_id: str | None = None
    jwt_connection_name: str = DEFAULT_JWT_CONNECTION_NAME

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AgentforceConfig:
        """Build config from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for var, field_name in ENV_FIELDS.items():
            value = env.get(var)
            if value:
                values[field_name] = value.strip()
        logger.debug(f"[CONFIG] Loaded settings from environment: {sorted(values)}")
        return cls(**values)

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> AgentforceConfig:
        """
        Build config from a mapping of field names.

        Unknown keys are ignored so a larger application config can be
        passed through unchanged.
        """
        known = {name for name in cls.__dataclass_fields__}
        values = {k: v for k, v in config.items() if k in known and v is not None}
        return cls(**values)

    @property
    def base_url(self) -> str:
        """My Domain host without scheme or trailing slash."""
        domain = self.require("my_domain_url")
        return domain.replace("https://", "").rstrip("/")

    def require(self, field_name: str) -> str:
        """
        Return a setting or fail with a configuration error naming its variable.

        Raises:
            AgentforceConfigurationError: If the setting is empty
        """
        value = getattr(self, field_name)
        if not value:
            var = next((k for k, v in ENV_FIELDS.items() if v == field_name), field_name)
            raise AgentforceConfigurationError(f"Missing required setting: {var}")
        return value

    def auth_endpoint(self) -> str:
        return f"https://{self.base_url}{OAUTH_TOKEN_PATH}"

    def instance_endpoint(self) -> str:
        return f"https://{self.base_url}/"

    def agent_sessions_endpoint(self, agent_id: str) -> str:
        return f"{AGENT_API_PATH}/agents/{agent_id}/sessions"

    def session_endpoint(self, session_id: str) -> str:
        return f"{AGENT_API_PATH}/sessions/{session_id}"

    def streaming_endpoint(self, session_id: str) -> str:
        return f"{AGENT_API_PATH}/sessions/{session_id}/messages/stream"
