"""
Shared test fixtures for the Agentforce client tests.

HTTP is simulated with httpx.MockTransport routed through FakeAgentApi,
which records every request and replays scripted responses per URL.
The AppLink broker is a plain AsyncMock returning objects shaped like
heroku_applink.Authorization.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from heroku_applink.authorization import Org, UserAuth

from agentforce_client import AgentforceClient, AgentforceConfig, RetryPolicy

MY_DOMAIN = "https://test-org.my.salesforce.com"
TOKEN_URL = f"{MY_DOMAIN}/services/oauth2/token"
DIRECT_API_URL = "https://test-org.instance.salesforce.com"
APPLINK_API_URL = "https://api.salesforce.com"
AGENT_ID = "test-agent-id"
SESSION_ID = "session-123"


def sessions_url(base: str, agent_id: str = AGENT_ID) -> str:
    return f"{base}/einstein/ai-agent/v1/agents/{agent_id}/sessions"


def session_url(base: str, session_id: str = SESSION_ID) -> str:
    return f"{base}/einstein/ai-agent/v1/sessions/{session_id}"


def stream_url(base: str, session_id: str = SESSION_ID) -> str:
    return f"{base}/einstein/ai-agent/v1/sessions/{session_id}/messages/stream"


def applink_authorization(access_token: str | None, instance_url: str = MY_DOMAIN) -> Mock:
    """Stand-in for heroku_applink.Authorization carrying a real SDK Org."""
    org = Org(
        id="00D000000000001",
        developer_name="test-jwt-connection",
        instance_url=instance_url,
        type="SalesforceOrg",
        api_version="62.0",
        user_auth=UserAuth(
            username="agent@test-org.com",
            user_id="005000000000001",
            access_token=access_token,
        ),
    )
    return Mock(org=org)


async def byte_chunks(payload: bytes):
    """Yield payload line by line so the response body stays a live stream."""
    for line in payload.splitlines(keepends=True):
        yield line


Scripted = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


class FakeAgentApi:
    """
    Scripted HTTP backend.

    Each (method, url) route holds a queue of responses. Responses are
    consumed in order; the last one repeats. An Exception in the queue is
    raised from the transport (use httpx transport errors).
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Scripted]] = {}

    def add(self, method: str, url: str, *responses: Scripted) -> None:
        self._routes.setdefault((method.upper(), url), []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url))
        queue = self._routes.get(key)
        if not queue:
            return httpx.Response(599, json={"error": f"unrouted {key}"})
        scripted = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(scripted, Exception):
            raise scripted
        if callable(scripted):
            return scripted(request)
        return scripted

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and str(r.url) == url]

    # Common scripts

    def oauth_ok(self, api_url: str = DIRECT_API_URL, token: str = "direct-access-token") -> None:
        self.add(
            "POST",
            TOKEN_URL,
            httpx.Response(200, json={"access_token": token, "api_instance_url": api_url}),
        )

    def session_ok(self, base: str = DIRECT_API_URL, session_id: str = SESSION_ID) -> None:
        self.add("POST", sessions_url(base), httpx.Response(200, json={"sessionId": session_id}))

    def stream_ok(self, base: str = DIRECT_API_URL, body: bytes = b"") -> None:
        payload = body or b'data: {"type":"TextChunk","message":"Hi"}\n\n'

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=byte_chunks(payload),
            )

        self.add("POST", stream_url(base), respond)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture(autouse=True)
def reset_default_client():
    """Reset the process-wide default client between tests."""
    import agentforce_client as mod

    mod._default_client = None
    mod._default_client_lock = None
    yield
    mod._default_client = None
    mod._default_client_lock = None


@pytest.fixture
def config() -> AgentforceConfig:
    return AgentforceConfig(
        my_domain_url=MY_DOMAIN,
        consumer_key="test-client-id",
        consumer_secret="test-client-secret",
        agent_id=AGENT_ID,
        jwt_connection_name="test-jwt-connection",
    )


@pytest.fixture
def fake_api() -> FakeAgentApi:
    return FakeAgentApi()


@pytest.fixture
def http_client(fake_api) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))


@pytest.fixture
def mock_broker() -> Mock:
    """AppLink broker returning a token and a domain that must be ignored."""
    broker = Mock()
    broker.get_authorization = AsyncMock(
        return_value=applink_authorization("applink-access-token")
    )
    return broker


@pytest.fixture
def mock_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def client(config, http_client, mock_broker, mock_sleep) -> AgentforceClient:
    return AgentforceClient(
        config,
        http=http_client,
        broker=mock_broker,
        retry_policy=RetryPolicy(sleep=mock_sleep),
    )
