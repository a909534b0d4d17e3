# Tests for mcp_server.py (bearer verification and tool result wrapping).
# Created: 2026-10-18

import pytest
from conftest import USERINFO_URL
from fastapi.testclient import TestClient

from formatters import connector_response, tool_response
from mcp_server import DocuSignTokenVerifier, mcp, to_tool_result
from settings import settings

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {"protocolVersion": "2025-06-18", "capabilities": {}, "clientInfo": {"name": "pytest", "version": "0"}},
}


@pytest.fixture
def verifier():
    return DocuSignTokenVerifier(base_url=settings.SERVER_BASE_URL, required_scopes=["signature"])


class TestTokenVerifier:
    @pytest.mark.asyncio
    async def test_valid_token(self, signed_in, verifier):
        access = await verifier.verify_token("good-token")
        assert access is not None
        assert access.token == "good-token"
        assert access.client_id == "unknown"
        assert access.scopes == ["signature"]
        assert access.claims["userInfo"]["name"] == "Dana Reyes"
        assert "validatedAt" in access.claims

    @pytest.mark.asyncio
    async def test_rejected_token(self, upstream, verifier):
        upstream.add("GET", USERINFO_URL, status=401, text="")
        assert await verifier.verify_token("bad-token") is None

    @pytest.mark.asyncio
    async def test_upstream_down(self, upstream, verifier):
        upstream.fail("GET", USERINFO_URL)
        assert await verifier.verify_token("any") is None


class TestToolResult:
    def test_text_and_structured_content(self):
        result = to_tool_result(tool_response("hello", {"count": 1}))
        assert [c.text for c in result.content] == ["hello"]
        assert result.structured_content == {"count": 1}

    def test_without_annotation(self):
        result = to_tool_result(tool_response("plain"))
        assert result.content[0].text == "plain"
        assert result.structured_content is None

    def test_connector_payload(self):
        result = to_tool_result(connector_response({"results": []}, query="x"))
        assert result.structured_content["chatgpt_format"] == {"results": []}


class TestRegistration:
    @pytest.mark.asyncio
    async def test_all_tools_registered(self):
        tools = await mcp.get_tools()
        assert {"auth_status", "get_agreements", "get_agreement_by_id", "search", "fetch"} <= set(tools)


class TestEndpointAuth:
    def test_missing_bearer_is_401(self, upstream):
        from app import app

        resp = TestClient(app).post("/mcp", json=INITIALIZE, headers={"Accept": "application/json, text/event-stream"})
        assert resp.status_code == 401
        assert upstream.requests == []

    def test_rejected_bearer_is_401(self, upstream):
        from app import app

        upstream.add("GET", USERINFO_URL, status=401, text="")
        resp = TestClient(app).post(
            "/mcp",
            json=INITIALIZE,
            headers={"Accept": "application/json, text/event-stream", "Authorization": "Bearer expired"},
        )
        assert resp.status_code == 401
