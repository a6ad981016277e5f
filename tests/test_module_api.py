"""
Tests for the module-level API backed by the process-wide default client.
"""

from unittest.mock import AsyncMock, patch

import pytest

import agentforce_client
from agentforce_client import AgentforceClient, AuthMode


class TestDefaultClient:
    @pytest.mark.asyncio
    async def test_created_once_from_environment(self, monkeypatch):
        monkeypatch.setenv("SF_AGENT_ID", "env-agent")

        first = await agentforce_client.get_default_client()
        second = await agentforce_client.get_default_client()

        assert first is second
        assert first.config.agent_id == "env-agent"
        await agentforce_client.close_default_client()

    @pytest.mark.asyncio
    async def test_close_resets(self):
        first = await agentforce_client.get_default_client()
        await agentforce_client.close_default_client()
        second = await agentforce_client.get_default_client()

        assert first is not second
        await agentforce_client.close_default_client()

    @pytest.mark.asyncio
    async def test_close_without_client_is_safe(self):
        await agentforce_client.close_default_client()


class TestModuleFunctions:
    @pytest.fixture
    def stub_client(self, monkeypatch):
        stub = AsyncMock(spec=AgentforceClient)
        monkeypatch.setattr(agentforce_client, "_default_client", stub)
        return stub

    @pytest.mark.asyncio
    async def test_new_session_delegates(self, stub_client):
        await agentforce_client.new_session("agent-1", AuthMode.APPLINK)
        stub_client.new_session.assert_awaited_once_with("agent-1", AuthMode.APPLINK)

    @pytest.mark.asyncio
    async def test_get_session_delegates(self, stub_client):
        await agentforce_client.get_session(mode="direct")
        stub_client.get_session.assert_awaited_once_with(None, "direct")

    @pytest.mark.asyncio
    async def test_end_session_delegates(self, stub_client):
        stub_client.end_session.return_value = None
        assert await agentforce_client.end_session(AuthMode.APPLINK) is None
        stub_client.end_session.assert_awaited_once_with(AuthMode.APPLINK, None)

    @pytest.mark.asyncio
    async def test_send_streaming_message_delegates(self, stub_client):
        await agentforce_client.send_streaming_message("hi", 2, "agent-1", AuthMode.DIRECT)
        stub_client.send_streaming_message.assert_awaited_once_with(
            "hi", 2, "agent-1", AuthMode.DIRECT
        )

    @pytest.mark.asyncio
    async def test_end_session_swallows_client_creation_failure(self):
        with patch.object(
            agentforce_client, "get_default_client", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            assert await agentforce_client.end_session() is None
