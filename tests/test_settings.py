# Tests for settings.py (environment configuration).
# Created: 2026-10-18

import pytest
from pydantic import ValidationError

from settings import DEFAULT_SCOPE, SUPPORTED_SCOPES, Settings, settings


def _settings(**overrides):
    values = {"DOCUSIGN_INTEGRATION_KEY": "ik", "DOCUSIGN_SECRET_KEY": "sk"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    def test_loaded_from_environment(self):
        assert settings.DOCUSIGN_INTEGRATION_KEY == "test-integration-key"
        assert settings.SERVER_BASE_URL == "http://testserver"

    def test_defaults(self, monkeypatch):
        for name in ("DOCUSIGN_AUTH_SERVER", "NAVIGATOR_API_BASE", "SERVER_BASE_URL", "STATE_EXPIRATION_MS"):
            monkeypatch.delenv(name, raising=False)
        s = _settings()
        assert s.DOCUSIGN_AUTH_SERVER == "https://account-d.docusign.com"
        assert s.NAVIGATOR_API_BASE == "https://api-d.docusign.com/v1"
        assert s.STATE_EXPIRATION_MS == 600_000
        assert s.SERVER_PORT == 3000

    def test_derived_endpoints(self):
        s = _settings(DOCUSIGN_AUTH_SERVER="https://account.docusign.com/")
        assert s.authorization_endpoint == "https://account.docusign.com/oauth/auth"
        assert s.token_endpoint == "https://account.docusign.com/oauth/token"
        assert s.userinfo_endpoint == "https://account.docusign.com/oauth/userinfo"

    def test_callback_falls_back_to_base_url(self):
        assert _settings(SERVER_BASE_URL="https://mcp.example.com/").callback_uri == "https://mcp.example.com/auth/callback"

    def test_explicit_callback(self):
        s = _settings(DOCUSIGN_REDIRECT_URI="https://other.example.com/cb")
        assert s.callback_uri == "https://other.example.com/cb"

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("DOCUSIGN_SECRET_KEY", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, DOCUSIGN_INTEGRATION_KEY="ik")

    def test_frozen(self):
        with pytest.raises(ValidationError):
            settings.LOG_LEVEL = "DEBUG"

    def test_default_scope_lists_everything_supported(self):
        assert DEFAULT_SCOPE.split(" ") == list(SUPPORTED_SCOPES)
        assert SUPPORTED_SCOPES[0] == "signature"
