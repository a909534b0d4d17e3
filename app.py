# app.py
import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Form, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from ds_oauth import (
    build_authorize_url,
    build_token_grant,
    can_redirect_error,
    decode_state,
    encode_state,
    exchange_token,
    is_state_fresh,
    now_ms,
    validate_authorization_request,
    with_query,
)
from errors import NO_STORE_HEADERS, AppError, oauth_error_response
from mcp_server import mcp
from models import (
    AuthorizationRequest,
    ClientRegistrationRequest,
    ClientRegistrationResponse,
    OAuthError,
    RelayState,
)
from settings import DEFAULT_SCOPE, SUPPORTED_SCOPES, settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ALLOWED_HEADERS = [
    "Content-Type", "Authorization", "Accept", "Accept-Language", "Cache-Control", "Connection",
    "Origin", "Pragma", "Referer", "Sec-Fetch-Dest", "Sec-Fetch-Mode", "Sec-Fetch-Site", "User-Agent",
    "sec-ch-ua", "sec-ch-ua-mobile", "sec-ch-ua-platform", "MCP-Protocol-Version",
]


# =========================
# FastAPI app (public)
# =========================

mcp_app = mcp.http_app(path="/mcp", stateless_http=True)

app = FastAPI(title="DocuSign Navigator MCP Server", lifespan=mcp_app.lifespan)
app.add_middleware(
    CORSMiddleware,
    # regex instead of "*" so the caller's Origin is echoed back
    allow_origin_regex=".*",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=CORS_ALLOWED_HEADERS,
    max_age=86400,
)


def _origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302, headers=NO_STORE_HEADERS)


@app.get("/health")
async def health():
    return {"ok": True}


# ----- OAuth endpoints -----

def _authorization_error(error: OAuthError, redirect_uri: Optional[str]):
    # RFC 6749 4.1.2.1: only bounce errors to a redirect_uri we would have accepted
    if can_redirect_error(error, redirect_uri):
        return _redirect(with_query(redirect_uri, error.model_dump(exclude_none=True)))
    return JSONResponse(error.model_dump(exclude_none=True), status_code=400, headers=NO_STORE_HEADERS)


@app.get("/authorize")
async def authorize(request: Request):
    try:
        # blank values count as absent
        q = {k: v for k, v in request.query_params.items() if v}
        ar = AuthorizationRequest(**q)

        error = validate_authorization_request(ar)
        if error:
            logger.info("Rejected authorization request from client %s: %s", ar.client_id or "-", error.error)
            return _authorization_error(error.model_copy(update={"state": ar.state}), ar.redirect_uri)

        relay = RelayState(
            client_id=ar.client_id,
            redirect_uri=ar.redirect_uri,
            original_state=ar.state,
            code_challenge=ar.code_challenge,
            code_challenge_method=ar.code_challenge_method,
            resource=ar.resource,
            timestamp=now_ms(),
        )
        return _redirect(build_authorize_url(ar, encode_state(relay)))
    except Exception:
        logger.exception("Authorization request failed")
        return oauth_error_response("server_error", "Internal server error processing authorization request", 500)


def _upstream_error_redirect(error: str, error_description: Optional[str], state: Optional[str]):
    relay = decode_state(state) if state else None
    if relay is None:
        return oauth_error_response(error, error_description or "Authorization failed")
    params = {"error": error}
    if error_description:
        params["error_description"] = error_description
    if relay.original_state:
        params["state"] = relay.original_state
    return _redirect(with_query(relay.redirect_uri, params))


@app.get("/auth/callback")
async def oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    try:
        if error:
            logger.warning("DocuSign returned an authorization error: %s", error)
            return _upstream_error_redirect(error, error_description, state)

        if not code or not state:
            return oauth_error_response("invalid_request", "Missing required parameters (code or state)")

        relay = decode_state(state)
        if relay is None:
            return oauth_error_response("invalid_request", "Invalid state parameter")
        if not is_state_fresh(relay, settings.STATE_EXPIRATION_MS):
            return oauth_error_response("invalid_request", "state parameter has expired")

        params = {"code": code}
        if relay.original_state:
            params["state"] = relay.original_state
        return _redirect(with_query(relay.redirect_uri, params))
    except Exception:
        logger.exception("OAuth callback failed")
        return oauth_error_response("server_error", "Internal server error processing callback", 500)


@app.post("/token")
async def token(
    grant_type: str | None = Form(None),
    code: str | None = Form(None),
    code_verifier: str | None = Form(None),
    refresh_token: str | None = Form(None),
):
    form = {"grant_type": grant_type, "code": code, "code_verifier": code_verifier, "refresh_token": refresh_token}
    grant = build_token_grant(form)
    if grant is None:
        return oauth_error_response(
            "unsupported_grant_type",
            "Only authorization_code and refresh_token grant types are supported",
        )

    try:
        status, payload = await exchange_token(grant)
    except AppError as e:
        if e.status_code == 503:
            return oauth_error_response("temporarily_unavailable", e.message, 503)
        return oauth_error_response("server_error", e.message, e.status_code)
    except Exception:
        logger.exception("Token request failed")
        return oauth_error_response("server_error", "Internal server error processing token request", 500)

    return JSONResponse(payload, status_code=status, headers=NO_STORE_HEADERS)


@app.post("/register")
async def register(request: Request):
    if "application/json" not in request.headers.get("content-type", ""):
        return oauth_error_response("invalid_client_metadata", "Content-Type must be application/json")
    try:
        req = ClientRegistrationRequest.model_validate_json(await request.body())
    except ValidationError:
        return oauth_error_response("invalid_client_metadata", "Invalid JSON in request body")

    # Stateless: credentials are minted per call and never stored.
    registration = ClientRegistrationResponse(
        client_id=f"mcp_{uuid.uuid4()}",
        client_secret=f"secret_{uuid.uuid4()}",
        client_id_issued_at=int(time.time()),
        client_secret_expires_at=0,
        redirect_uris=req.redirect_uris or [settings.callback_uri],
        token_endpoint_auth_method=req.token_endpoint_auth_method or "none",
        grant_types=req.grant_types or ["authorization_code", "refresh_token"],
        response_types=req.response_types or ["code"],
        scope=req.scope or DEFAULT_SCOPE,
        client_name=req.client_name,
        client_uri=req.client_uri,
        logo_uri=req.logo_uri,
        software_id=req.software_id,
        software_version=req.software_version,
    )
    logger.info("Issued client registration %s", registration.client_id)
    return JSONResponse(registration.model_dump(exclude_none=True))


# ----- Discovery -----

@app.get("/.well-known/oauth-authorization-server")
async def authorization_server_metadata(request: Request):
    origin = _origin(request)
    return {
        "issuer": origin,
        "authorization_endpoint": f"{origin}/authorize",
        "token_endpoint": f"{origin}/token",
        "registration_endpoint": f"{origin}/register",
        "jwks_uri": settings.jwks_uri,
        "response_types_supported": ["code"],
        "grant_types_supported": ["authorization_code", "refresh_token"],
        "code_challenge_methods_supported": ["S256"],
        "scopes_supported": list(SUPPORTED_SCOPES),
        "resource": f"{origin}/",
    }


@app.get("/.well-known/oauth-protected-resource")
@app.get("/.well-known/oauth-protected-resource/mcp")
async def protected_resource_metadata(request: Request):
    origin = _origin(request)
    return {
        "resource": f"{origin}/mcp",
        "authorization_servers": [origin],
        "scopes_supported": list(SUPPORTED_SCOPES),
        "bearer_methods_supported": ["header"],
        "resource_documentation": f"{origin}/docs",
    }


# MCP streamable HTTP lives at /mcp; mounted last so the routes above win.
app.mount("/", mcp_app)


# Entry point (local dev)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.SERVER_HOST, port=settings.SERVER_PORT)
