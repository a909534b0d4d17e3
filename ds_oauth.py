import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote, unquote

import httpx

from errors import AppError
from models import AuthorizationRequest, OAuthError, RelayState, UserInfo
from settings import DEFAULT_SCOPE, SUPPORTED_SCOPES, settings

logger = logging.getLogger(__name__)

DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}
ALLOWED_SCHEMES = {"https", "http", "vscode", "ms-vscode", "chrome-extension", "moz-extension"}
LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}
# Errors that must never be bounced back to a caller-supplied redirect_uri.
NON_REDIRECTABLE_ERRORS = {"invalid_request", "unauthorized_client"}


def upstream_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)


def _basic_auth_header() -> str:
    basic = base64.b64encode(f"{settings.DOCUSIGN_INTEGRATION_KEY}:{settings.DOCUSIGN_SECRET_KEY}".encode()).decode()
    return f"Basic {basic}"


def now_ms() -> int:
    return int(time.time() * 1000)


# ===== Relay state =====
# base64(JSON) then percent-encoded; not signed, freshness is the only check.

def encode_state(state: RelayState) -> str:
    raw = state.model_dump_json(exclude_none=True)
    return quote(base64.b64encode(raw.encode("utf-8")).decode("ascii"), safe="")


def decode_state(encoded: str) -> Optional[RelayState]:
    try:
        raw = base64.b64decode(unquote(encoded), validate=True).decode("utf-8")
        return RelayState.model_validate_json(raw)
    except ValueError:
        # binascii.Error, UnicodeDecodeError and ValidationError all land here
        return None


def is_state_fresh(state: RelayState, max_age_ms: int, now: Optional[int] = None) -> bool:
    current = now_ms() if now is None else now
    return current - state.timestamp <= max_age_ms


# ===== Authorization request validation =====

def parse_scope(scope: Optional[str]) -> List[str]:
    """Split a scope string on spaces or '+' (clients sometimes double-encode)."""
    return [s for s in (scope or "").replace("+", " ").split(" ") if s]


def is_valid_redirect_uri(redirect_uri: str) -> bool:
    try:
        url = httpx.URL(redirect_uri)
    except httpx.InvalidURL:
        return False
    scheme = url.scheme.lower()
    if not scheme or scheme in DANGEROUS_SCHEMES:
        return False
    # plain http is only for local development
    if scheme == "http" and url.host not in LOOPBACK_HOSTS:
        return False
    return scheme in ALLOWED_SCHEMES


def _is_absolute_uri(value: str) -> bool:
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL:
        return False
    return bool(url.scheme)


def validate_authorization_request(req: AuthorizationRequest) -> Optional[OAuthError]:
    if req.response_type != "code":
        return OAuthError(error="unsupported_response_type", error_description="Only authorization code flow is supported")
    if not req.client_id:
        return OAuthError(error="invalid_request", error_description="client_id parameter is required")
    if not req.redirect_uri:
        return OAuthError(error="invalid_request", error_description="redirect_uri parameter is required")
    if not is_valid_redirect_uri(req.redirect_uri):
        return OAuthError(error="invalid_request", error_description="redirect_uri is not allowed")
    if not req.code_challenge:
        return OAuthError(error="invalid_request", error_description="code_challenge parameter is required")
    if req.code_challenge_method != "S256":
        return OAuthError(error="invalid_request", error_description="code_challenge_method must be S256")
    if req.scope:
        unsupported = [s for s in parse_scope(req.scope) if s not in SUPPORTED_SCOPES]
        if unsupported:
            return OAuthError(error="invalid_scope", error_description=f"Unsupported scope(s): {', '.join(unsupported)}")
    if req.resource and not _is_absolute_uri(req.resource):
        return OAuthError(error="invalid_request", error_description="resource parameter must be a valid URI")
    return None


def can_redirect_error(error: OAuthError, redirect_uri: Optional[str]) -> bool:
    return bool(redirect_uri) and is_valid_redirect_uri(redirect_uri) and error.error not in NON_REDIRECTABLE_ERRORS


def with_query(uri: str, params: Mapping[str, str]) -> str:
    """Return `uri` with `params` set on its query string, replacing existing keys."""
    return str(httpx.URL(uri).copy_merge_params(dict(params)))


def build_authorize_url(req: AuthorizationRequest, encoded_state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": settings.DOCUSIGN_INTEGRATION_KEY,
        "redirect_uri": settings.callback_uri,
        "state": encoded_state,
        "scope": " ".join(parse_scope(req.scope)) or DEFAULT_SCOPE,
        "code_challenge": req.code_challenge,
        "code_challenge_method": req.code_challenge_method,
    }
    return with_query(settings.authorization_endpoint, params)


# ===== Token exchange =====

def build_token_grant(form: Mapping[str, str]) -> Optional[Dict[str, str]]:
    """Translate the caller's token request into the upstream grant, or None if unsupported."""
    grant_type = form.get("grant_type")
    if grant_type == "authorization_code":
        return {
            "grant_type": "authorization_code",
            "code": form.get("code") or "",
            "redirect_uri": settings.callback_uri,
            "code_verifier": form.get("code_verifier") or "",
        }
    if grant_type == "refresh_token":
        return {
            "grant_type": "refresh_token",
            "refresh_token": form.get("refresh_token") or "",
        }
    return None


def normalize_token_payload(payload: Dict) -> Dict:
    """Overwrite the granted scope with DEFAULT_SCOPE on any payload carrying an access token.

    Every other field is relayed exactly as upstream sent it.
    """
    if not isinstance(payload, dict) or not payload.get("access_token"):
        return payload
    return {**payload, "scope": DEFAULT_SCOPE}


async def exchange_token(grant: Mapping[str, str]) -> Tuple[int, Dict]:
    """POST a grant to the upstream token endpoint. Returns (upstream status, payload)."""
    headers = {
        "Authorization": _basic_auth_header(),
        "Content-Type": "application/x-www-form-urlencoded",
        "Accept": "application/json",
    }
    try:
        async with upstream_client() as client:
            resp = await client.post(settings.token_endpoint, data=dict(grant), headers=headers)
    except httpx.RequestError as e:
        logger.error("Token exchange failed: %r", e, extra={"context": "oauth_token_exchange"})
        raise AppError("Authentication service unavailable", 503) from e

    try:
        data = resp.json()
    except json.JSONDecodeError as e:
        logger.error("Token endpoint returned non-JSON body (status %s)", resp.status_code)
        raise AppError("Invalid response from authorization server", 502) from e

    if resp.is_error:
        logger.warning(
            "DocuSign token request failed: status=%s grant_type=%s error=%s",
            resp.status_code, grant.get("grant_type"), data.get("error") if isinstance(data, dict) else None,
        )
    return resp.status_code, normalize_token_payload(data)


# ===== User info / token validation =====

def _unauthorized_reason(body: str) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        return "Invalid access token"
    error = data.get("error") if isinstance(data, dict) else None
    if error == "internal_server_error":
        # DocuSign answers expired tokens this way
        return "Access token has expired or is invalid. Please re-authenticate with DocuSign."
    if error:
        return f"Authentication failed: {error}"
    return "Invalid access token"


async def fetch_user_info(access_token: str) -> UserInfo:
    if not access_token:
        raise AppError("Invalid access token", 401)
    try:
        async with upstream_client() as client:
            resp = await client.get(settings.userinfo_endpoint, headers={"Authorization": f"Bearer {access_token}"})
    except httpx.RequestError as e:
        logger.error("DocuSign userinfo request failed: %r", e)
        raise AppError("DocuSign service unavailable", 503) from e

    if resp.status_code == 401:
        raise AppError(_unauthorized_reason(resp.text), 401)
    if resp.is_error:
        logger.error("DocuSign userinfo request failed: status=%s body=%s", resp.status_code, resp.text[:500])
        raise AppError("Failed to retrieve user information", resp.status_code)

    try:
        return UserInfo.model_validate(resp.json())
    except ValueError as e:
        raise AppError("Failed to retrieve user information", 502) from e


@dataclass(frozen=True)
class TokenValidation:
    is_valid: bool
    user_info: Optional[UserInfo] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


async def validate_token(access_token: str) -> TokenValidation:
    """Round-trip the token to DocuSign's userinfo endpoint. Never raises."""
    try:
        user_info = await fetch_user_info(access_token)
    except AppError as e:
        if e.status_code == 401:
            logger.warning("DocuSign token expired or invalid: %s", e.message)
        else:
            logger.error("DocuSign token validation failed: status=%s %s", e.status_code, e.message)
        return TokenValidation(is_valid=False, error=e.message, status_code=e.status_code)
    return TokenValidation(is_valid=True, user_info=user_info)
