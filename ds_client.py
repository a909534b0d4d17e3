import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ds_oauth import fetch_user_info, upstream_client
from errors import AppError
from settings import NAVIGATOR_DOCS_URL, settings

logger = logging.getLogger(__name__)

NAVIGATOR_DENIED = (
    "Access denied - DocuSign Navigator may not be enabled for this account. "
    f"To get access, please visit: {NAVIGATOR_DOCS_URL}"
)
NAVIGATOR_UNAVAILABLE = (
    "DocuSign Navigator API not found - may not be available for this account. "
    f"To get access, please visit: {NAVIGATOR_DOCS_URL}"
)


def _is_navigator_missing(body: str) -> bool:
    return "Navigator" in body or "not available" in body


class DSClient:
    """Navigator API calls on behalf of one caller's access token."""

    def __init__(self, access_token: str):
        if not access_token:
            raise AppError("Invalid access token", 401)
        self.token = access_token
        self.api = settings.NAVIGATOR_API_BASE.rstrip("/")

    async def get_account_id(self) -> str:
        user = await fetch_user_info(self.token)
        if not user.accounts:
            raise AppError("No DocuSign accounts found for user", 404)
        account = user.default_account or user.accounts[0]
        return account.account_id

    async def _get(self, path: str, api_name: str, context: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"Authorization": f"Bearer {self.token}", "Accept": "application/json"}
        try:
            async with upstream_client() as client:
                resp = await client.get(f"{self.api}{path}", headers=headers)
        except httpx.RequestError as e:
            logger.error("Navigator request failed: api=%s %r", api_name, e, extra=context or {})
            raise AppError("DocuSign Navigator service unavailable", 503) from e

        if resp.is_success:
            try:
                return resp.json()
            except ValueError as e:
                raise AppError(f"Failed to retrieve {api_name}: invalid JSON response", 502) from e

        body = resp.text
        if resp.status_code >= 500:
            logger.error("DocuSign Navigator API error: status=%s api=%s body=%s", resp.status_code, api_name, body[:500], extra=context or {})

        if resp.status_code == 401:
            raise AppError("Invalid access token", 401)
        if resp.status_code == 403:
            raise AppError(NAVIGATOR_DENIED, 403)
        if resp.status_code == 404:
            if _is_navigator_missing(body):
                raise AppError(NAVIGATOR_UNAVAILABLE, 404)
            raise AppError("Agreement not found" if api_name == "agreement_by_id" else "Resource not found", 404)
        raise AppError(f"Failed to retrieve {api_name} ({resp.status_code}): {body}", resp.status_code)

    async def list_agreements(self) -> Dict[str, Any]:
        account_id = await self.get_account_id()
        data = await self._get(f"/accounts/{account_id}/agreements", "agreements")
        return data if isinstance(data, dict) else {"data": data or []}

    async def get_agreement(self, agreement_id: str) -> Dict[str, Any]:
        if not agreement_id or not agreement_id.strip():
            raise AppError("Invalid agreement ID", 400)
        account_id = await self.get_account_id()
        return await self._get(
            f"/accounts/{account_id}/agreements/{quote(agreement_id, safe='')}",
            "agreement_by_id",
            context={"agreementId": agreement_id},
        )
