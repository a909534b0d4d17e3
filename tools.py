import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ds_client import DSClient
from ds_oauth import validate_token
from errors import AppError
from formatters import (
    agreement_detail_text,
    agreement_details,
    agreements_list_text,
    auth_status_text,
    connector_response,
    fetch_result,
    matches_query,
    search_results,
    search_terms,
    summarize_agreement,
    tool_error_response,
    tool_response,
)
from models import Agreement, ToolContext

logger = logging.getLogger(__name__)

ToolResponse = Dict[str, Any]

SENSITIVE_KEYS = ("password", "token", "secret", "key", "auth")


def extract_access_token(ctx: ToolContext, tool: str) -> str:
    token = (ctx.auth_info.token if ctx.auth_info else "").strip()
    if not token:
        logger.error("Token extraction failed for tool: %s", tool)
        raise AppError("Access token is required but not provided in context", 401)
    return token


def log_tool_usage(tool: str, ctx: ToolContext, tool_input: Optional[Dict[str, Any]] = None) -> None:
    sanitized = {
        k: "[REDACTED]" if any(s in k.lower() for s in SENSITIVE_KEYS) else v
        for k, v in (tool_input or {}).items()
    }
    auth = ctx.auth_info
    logger.info(
        "MCP tool called: %s input=%s has_auth=%s client_id=%s scopes=%s",
        tool, sanitized, bool(auth and auth.token), auth and auth.client_id, auth and auth.scopes,
    )


def _describe(e: Exception, tool: str, **context: Any) -> Tuple[str, int]:
    """Message and status safe to hand back to the caller; unexpected errors stay in the logs."""
    if isinstance(e, AppError):
        logger.warning("Tool %s failed: status=%s %s %s", tool, e.status_code, e.message, context or "")
        return e.message, e.status_code
    logger.exception("Tool %s failed unexpectedly %s", tool, context or "")
    return "Internal server error", 500


def _parse_agreements(payload: Dict[str, Any]) -> List[Agreement]:
    agreements = []
    for raw in payload.get("data") or []:
        try:
            agreements.append(Agreement.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping malformed agreement record: %s", e.errors()[:1])
    return agreements


def _parse_agreement(raw: Any) -> Agreement:
    try:
        return Agreement.model_validate(raw)
    except ValidationError as e:
        raise AppError("Unexpected agreement format from DocuSign Navigator", 502) from e


async def auth_status(ctx: ToolContext) -> ToolResponse:
    log_tool_usage("auth_status", ctx)
    try:
        token = extract_access_token(ctx, "auth_status")
        validation = await validate_token(token)
        if not validation.is_valid:
            return tool_response(
                f"Authentication Status: INVALID\nError: {validation.error or 'Token validation failed'}",
                {"error": True, "tool": "auth_status", "status": validation.status_code},
            )
        return tool_response(auth_status_text(validation.user_info))
    except Exception as e:
        message, status = _describe(e, "auth_status")
        return tool_response(f"Authentication Status: ERROR\nError: {message}", {"error": True, "tool": "auth_status", "status": status})


async def get_agreements(ctx: ToolContext) -> ToolResponse:
    log_tool_usage("get_agreements", ctx)
    try:
        client = DSClient(extract_access_token(ctx, "get_agreements"))
        payload = await client.list_agreements()
        agreements = _parse_agreements(payload)
        return tool_response(
            agreements_list_text(agreements),
            {
                "count": len(agreements),
                "agreements": [summarize_agreement(a) for a in agreements],
                "rawData": payload,
            },
        )
    except Exception as e:
        message, status = _describe(e, "get_agreements")
        return tool_error_response("Error retrieving agreements", message, "get_agreements", status=status)


async def get_agreement_by_id(ctx: ToolContext, agreement_id: str) -> ToolResponse:
    log_tool_usage("get_agreement_by_id", ctx, {"agreementId": agreement_id})
    try:
        client = DSClient(extract_access_token(ctx, "get_agreement_by_id"))
        raw = await client.get_agreement(agreement_id)
        agreement = _parse_agreement(raw)
        return tool_response(
            agreement_detail_text(agreement),
            {"agreement": agreement_details(agreement), "agreementId": agreement_id, "rawData": raw},
        )
    except Exception as e:
        message, status = _describe(e, "get_agreement_by_id", agreementId=agreement_id)
        return tool_error_response(
            "Error retrieving agreement", message, "get_agreement_by_id", agreementId=agreement_id, status=status
        )


async def search(ctx: ToolContext, query: str) -> ToolResponse:
    log_tool_usage("search", ctx, {"query": query})
    try:
        client = DSClient(extract_access_token(ctx, "search"))
        agreements = _parse_agreements(await client.list_agreements())
        terms = search_terms(query)
        matched = [a for a in agreements if matches_query(a, terms)]
        return connector_response(search_results(matched), query=query, count=len(matched))
    except Exception as e:
        message, _ = _describe(e, "search", query=query)
        return connector_response({"results": [], "error": f"Search failed: {message}"}, query=query, error=True)


async def fetch(ctx: ToolContext, agreement_id: str) -> ToolResponse:
    log_tool_usage("fetch", ctx, {"id": agreement_id})
    try:
        client = DSClient(extract_access_token(ctx, "fetch"))
        raw = await client.get_agreement(agreement_id)
        agreement = _parse_agreement(raw)
        result = fetch_result(agreement, raw)
        return connector_response(result, agreement_id=agreement_id, title=result["title"])
    except Exception as e:
        message, _ = _describe(e, "fetch", agreementId=agreement_id)
        error_result = {
            "id": agreement_id,
            "title": "Error",
            "content": f"Failed to retrieve agreement: {message}",
            "url": "",
            "metadata": {"error": True, "parties_count": 0, "has_provisions": False},
        }
        return connector_response(error_result, agreement_id=agreement_id, error=True)
