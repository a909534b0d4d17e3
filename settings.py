# settings.py
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

REQUIRED_SCOPES = ("signature",)
OPTIONAL_SCOPES = ("impersonation", "adm_store_unified_repo_read", "models_read")
SUPPORTED_SCOPES = REQUIRED_SCOPES + OPTIONAL_SCOPES
# Returned on every token response; clients match it against their manifest.
DEFAULT_SCOPE = " ".join(SUPPORTED_SCOPES)

NAVIGATOR_DOCS_URL = "https://developers.docusign.com/docs/navigator-api/"


class Settings(BaseSettings):
    # DocuSign OAuth
    DOCUSIGN_INTEGRATION_KEY: str = Field(..., min_length=1, description="DocuSign integration key (client id)")
    DOCUSIGN_SECRET_KEY: str = Field(..., min_length=1, description="DocuSign secret key (client secret)")
    DOCUSIGN_AUTH_SERVER: str = Field("https://account-d.docusign.com")
    DOCUSIGN_REDIRECT_URI: Optional[str] = Field(None, description="Registered redirect URI; defaults to <SERVER_BASE_URL>/auth/callback")

    # Navigator API
    NAVIGATOR_API_BASE: str = Field("https://api-d.docusign.com/v1")

    # Server
    SERVER_BASE_URL: str = Field("http://localhost:3000")
    SERVER_HOST: str = Field("0.0.0.0")
    SERVER_PORT: int = Field(3000, gt=0)

    # Behavior
    STATE_EXPIRATION_MS: int = Field(10 * 60 * 1000, gt=0)
    HTTP_TIMEOUT_SECONDS: float = Field(30.0, gt=0)
    LOG_LEVEL: str = Field("INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        frozen=True,
    )

    @property
    def auth_server(self) -> str:
        return self.DOCUSIGN_AUTH_SERVER.rstrip("/")

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.auth_server}/oauth/auth"

    @property
    def token_endpoint(self) -> str:
        return f"{self.auth_server}/oauth/token"

    @property
    def userinfo_endpoint(self) -> str:
        return f"{self.auth_server}/oauth/userinfo"

    @property
    def jwks_uri(self) -> str:
        return f"{self.auth_server}/oauth/jwks"

    @property
    def callback_uri(self) -> str:
        return self.DOCUSIGN_REDIRECT_URI or f"{self.SERVER_BASE_URL.rstrip('/')}/auth/callback"


settings = Settings()
