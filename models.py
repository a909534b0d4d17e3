# models.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ----- OAuth -----

class AuthorizationRequest(BaseModel):
    response_type: str = ""
    client_id: str = ""
    redirect_uri: str = ""
    scope: Optional[str] = None
    state: Optional[str] = None
    code_challenge: str = ""
    code_challenge_method: str = ""
    resource: Optional[str] = None


class RelayState(BaseModel):
    """Caller's OAuth parameters carried through the upstream `state` parameter."""
    model_config = ConfigDict(frozen=True)

    client_id: str
    redirect_uri: str
    original_state: Optional[str] = None
    code_challenge: str
    code_challenge_method: str
    resource: Optional[str] = None
    timestamp: int  # epoch milliseconds


class OAuthError(BaseModel):
    error: str
    error_description: Optional[str] = None
    error_uri: Optional[str] = None
    state: Optional[str] = None


class ClientRegistrationRequest(BaseModel):
    client_name: Optional[str] = None
    client_uri: Optional[str] = None
    logo_uri: Optional[str] = None
    scope: Optional[str] = None
    redirect_uris: Optional[List[str]] = None
    token_endpoint_auth_method: Optional[str] = None
    grant_types: Optional[List[str]] = None
    response_types: Optional[List[str]] = None
    software_id: Optional[str] = None
    software_version: Optional[str] = None


class ClientRegistrationResponse(BaseModel):
    client_id: str
    client_secret: str
    client_id_issued_at: int
    client_secret_expires_at: int = 0  # never expires
    redirect_uris: List[str]
    token_endpoint_auth_method: str
    grant_types: List[str]
    response_types: List[str]
    scope: str
    client_name: Optional[str] = None
    client_uri: Optional[str] = None
    logo_uri: Optional[str] = None
    software_id: Optional[str] = None
    software_version: Optional[str] = None


# ----- DocuSign user info -----

class UserAccount(BaseModel):
    model_config = ConfigDict(extra="allow")

    account_id: str
    account_name: Optional[str] = None
    is_default: bool = False
    base_uri: Optional[str] = None


class UserInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    sub: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    accounts: List[UserAccount] = Field(default_factory=list)

    @property
    def default_account(self) -> Optional[UserAccount]:
        return next((acc for acc in self.accounts if acc.is_default), None)


# ----- Navigator agreements -----

class AgreementParty(BaseModel):
    model_config = ConfigDict(extra="allow")

    preferred_name: Optional[str] = None
    name_in_agreement: Optional[str] = None


class AgreementProvisions(BaseModel):
    model_config = ConfigDict(extra="allow")

    effective_date: Optional[str] = None
    expiration_date: Optional[str] = None
    total_agreement_value: Optional[Any] = None


class AgreementMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    created_at: Optional[str] = None


class Agreement(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    file_name: Optional[str] = None
    summary: Optional[str] = None
    parties: Optional[List[AgreementParty]] = None
    provisions: Optional[AgreementProvisions] = None
    metadata: Optional[AgreementMetadata] = None


# ----- Tool context -----

class AuthInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    scopes: List[str] = Field(default_factory=list)
    client_id: str = "unknown"
    extra: Dict[str, Any] = Field(default_factory=dict)


class ToolContext(BaseModel):
    """Per-request context handed to every tool handler."""
    model_config = ConfigDict(frozen=True)

    auth_info: Optional[AuthInfo] = None
