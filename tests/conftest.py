# Shared fixtures: test environment and a fake DocuSign upstream.
# Created: 2026-10-18

import os

# settings.py builds its Settings() at import time, so the environment has to be
# in place before any project module is imported.
os.environ["DOCUSIGN_INTEGRATION_KEY"] = "test-integration-key"
os.environ["DOCUSIGN_SECRET_KEY"] = "test-secret-key"
os.environ["DOCUSIGN_AUTH_SERVER"] = "https://account-d.docusign.com"
os.environ["NAVIGATOR_API_BASE"] = "https://api-d.docusign.com/v1"
os.environ["SERVER_BASE_URL"] = "http://testserver"
os.environ.pop("DOCUSIGN_REDIRECT_URI", None)
os.environ["STATE_EXPIRATION_MS"] = "600000"

import httpx  # noqa: E402
import pytest  # noqa: E402

import ds_client  # noqa: E402
import ds_oauth  # noqa: E402
from models import AuthInfo, ToolContext  # noqa: E402

USERINFO_URL = "https://account-d.docusign.com/oauth/userinfo"
TOKEN_URL = "https://account-d.docusign.com/oauth/token"
AGREEMENTS_URL = "https://api-d.docusign.com/v1/accounts/acc-main/agreements"

USER_INFO = {
    "sub": "user-123",
    "name": "Dana Reyes",
    "email": "dana@example.com",
    "accounts": [
        {"account_id": "acc-side", "account_name": "Side Project", "is_default": False},
        {"account_id": "acc-main", "account_name": "Reyes Legal", "is_default": True},
    ],
}

AGREEMENTS = [
    {
        "id": "agr-1",
        "title": "Mutual NDA - Acme",
        "type": "Nondisclosure",
        "category": "Confidentiality",
        "status": "ACTIVE",
        "file_name": "acme_nda.pdf",
        "summary": "Confidentiality terms between Acme and Globex.",
        "parties": [{"preferred_name": "Acme Corp"}, {"name_in_agreement": "Globex LLC"}],
        "provisions": {"effective_date": "2024-01-15T00:00:00Z", "expiration_date": "2026-01-15T00:00:00Z"},
        "metadata": {"created_at": "2024-01-10T09:30:00Z"},
    },
    {
        "id": "agr-2",
        "title": "Master Services Agreement",
        "type": "Services",
        "category": "Commercial",
        "status": "ACTIVE",
        "file_name": "msa.pdf",
        "summary": "Terms for consulting work billed hourly.",
        "parties": [{"preferred_name": "Initech Inc"}],
        "provisions": {"total_agreement_value": "120000 USD"},
    },
    {
        "id": "agr-3",
        "title": "Office Lease",
        "type": "Lease",
        "category": "Real Estate",
        "status": "EXPIRED",
        "file_name": "lease.pdf",
        "summary": "Ten year lease for the downtown office.",
        "parties": [{"preferred_name": "Hooli"}],
    },
]


class FakeUpstream:
    """Canned responses for outbound httpx calls, keyed by method and URL without query."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, url, status=200, json=None, text=None):
        def respond(request):
            if json is not None:
                return httpx.Response(status, json=json)
            return httpx.Response(status, text=text or "")
        self.routes[(method, url)] = respond

    def fail(self, method, url, exc_type=httpx.ConnectError):
        def respond(request):
            raise exc_type("upstream down", request=request)
        self.routes[(method, url)] = respond

    def handler(self, request):
        self.requests.append(request)
        key = (request.method, str(request.url).split("?")[0])
        if key not in self.routes:
            return httpx.Response(599, text=f"unexpected call {key}")
        return self.routes[key](request)

    def last(self, method, url):
        return [r for r in self.requests if r.method == method and str(r.url).split("?")[0] == url][-1]


@pytest.fixture
def upstream(monkeypatch):
    fake = FakeUpstream()

    def client_factory():
        return httpx.AsyncClient(transport=httpx.MockTransport(fake.handler), timeout=5)

    monkeypatch.setattr(ds_oauth, "upstream_client", client_factory)
    monkeypatch.setattr(ds_client, "upstream_client", client_factory)
    return fake


@pytest.fixture
def signed_in(upstream):
    upstream.add("GET", USERINFO_URL, json=USER_INFO)
    return upstream


@pytest.fixture
def ctx():
    return ToolContext(auth_info=AuthInfo(token="good-token", scopes=["signature"], client_id="unknown"))
