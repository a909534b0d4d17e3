import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Dict

from fastmcp import FastMCP
from fastmcp.server.auth import AccessToken, TokenVerifier
from fastmcp.server.dependencies import get_access_token
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import Field

import tools
from ds_oauth import validate_token
from models import AuthInfo, ToolContext
from settings import REQUIRED_SCOPES, settings

logger = logging.getLogger(__name__)


server_instructions = """
DocuSign Navigator connector (MCP). All tools require a DocuSign OAuth token.
- auth_status(): who is signed in and which account is the default.
- get_agreements(): every Navigator agreement with title, type, status and parties.
- get_agreement_by_id(agreementId): full details for one agreement.
- search(query): ChatGPT-connector search; any whitespace-separated term may match
  title, summary, type, category, file name or party names. Returns id, title, text, url.
- fetch(id): ChatGPT-connector fetch; returns id, title, content, url, metadata.
Prefer get_agreements / get_agreement_by_id; search and fetch exist for deep research connectors.
"""


class DocuSignTokenVerifier(TokenVerifier):
    """Checks every bearer token against DocuSign userinfo. Nothing is cached."""

    async def verify_token(self, token: str) -> AccessToken | None:
        try:
            validation = await validate_token(token)
        except Exception:
            logger.exception("Token validation error")
            return None
        if not validation.is_valid:
            logger.warning("Token validation failed: %s", validation.error)
            return None
        return AccessToken(
            token=token,
            client_id="unknown",
            scopes=list(REQUIRED_SCOPES),
            claims={
                "userInfo": validation.user_info.model_dump(exclude_none=True),
                "validatedAt": datetime.now(timezone.utc).isoformat(),
            },
        )


mcp = FastMCP(
    name="DocuSign Navigator MCP",
    instructions=server_instructions,
    auth=DocuSignTokenVerifier(base_url=settings.SERVER_BASE_URL, required_scopes=list(REQUIRED_SCOPES)),
)


def _tool_context() -> ToolContext:
    access = get_access_token()
    if access is None:
        return ToolContext()
    return ToolContext(
        auth_info=AuthInfo(
            token=access.token,
            scopes=list(access.scopes),
            client_id=access.client_id,
            extra=dict(getattr(access, "claims", None) or {}),
        )
    )


def to_tool_result(response: Dict[str, Any]) -> ToolResult:
    blocks = response["content"]
    annotation = blocks[0].get("annotation") if blocks else None
    return ToolResult(
        content=[TextContent(type="text", text=b["text"]) for b in blocks],
        structured_content=annotation,
    )


@mcp.tool()
async def auth_status() -> ToolResult:
    """Get current DocuSign authentication status and user information."""
    return to_tool_result(await tools.auth_status(_tool_context()))


@mcp.tool()
async def get_agreements() -> ToolResult:
    """
    Retrieve DocuSign Navigator agreements. Returns a list of all agreements available
    in the system with metadata like title, type, status, and parties.
    """
    return to_tool_result(await tools.get_agreements(_tool_context()))


@mcp.tool()
async def get_agreement_by_id(
    agreementId: Annotated[str, Field(min_length=1, description="The agreement ID to retrieve")],
) -> ToolResult:
    """
    Retrieve detailed information about a specific DocuSign Navigator agreement by its ID.
    Returns title, type, status, summary, parties, provisions and metadata.
    REQUIRED: agreementId parameter must be provided.
    """
    return to_tool_result(await tools.get_agreement_by_id(_tool_context(), agreementId))


@mcp.tool()
async def search(
    query: Annotated[str, Field(min_length=1, description="Search query to find relevant agreements")],
) -> ToolResult:
    """
    Search DocuSign Navigator agreements for deep research. Returns relevant agreements
    with brief snippets. Designed for ChatGPT Connectors; do not prefer it over other tools.
    """
    return to_tool_result(await tools.search(_tool_context(), query))


@mcp.tool()
async def fetch(
    id: Annotated[str, Field(min_length=1, description="The agreement ID to fetch complete content for")],
) -> ToolResult:
    """
    Retrieve complete DocuSign Navigator agreement content by ID for detailed analysis
    and citation. Designed for ChatGPT Connectors; do not prefer it over other tools.
    """
    return to_tool_result(await tools.fetch(_tool_context(), id))
