"""
Pytest configuration and fixtures for the SocialHub API tests.

The environment is pinned before ``socialhub`` is imported: settings are read
once at import time.
"""
import json
import os
from datetime import timedelta

from cryptography.fernet import Fernet

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FERNET_KEY"] = Fernet.generate_key().decode()
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["FACEBOOK_APP_ID"] = "fb-app-id"
os.environ["FACEBOOK_APP_SECRET"] = "fb-app-secret"
os.environ["LINKEDIN_CLIENT_ID"] = "li-client-id"
os.environ["LINKEDIN_CLIENT_SECRET"] = "li-client-secret"
os.environ["LINKEDIN_ORGANIZATION_ID"] = ""
os.environ["HF_API_TOKEN"] = ""
os.environ["CAPTION_MODELS"] = ""
os.environ["SMTP_HOST"] = ""

import httpx
import pytest
from fastapi.testclient import TestClient

from socialhub.auth.security import create_access_token, hash_password
from socialhub.clock import utcnow
from socialhub.db import credentials, crud
from socialhub.db.base import Base, SessionLocal, engine
from socialhub.db.models import Platform
from socialhub.deps import get_db, get_http_client, get_media_fetcher
from socialhub.main import app
from socialhub.services.facebook_api import FacebookClient
from socialhub.services.linkedin_api import LinkedInClient
from socialhub.services.media import MediaFetcher
from socialhub.services.schemas import TokenBundle

GRAPH = "https://graph.facebook.com/v19.0"
LINKEDIN_API = "https://api.linkedin.com"
LINKEDIN_TOKEN = "https://www.linkedin.com/oauth/v2/accessToken"


class FakeProviders:
    """
    httpx.MockTransport handler standing in for Facebook, LinkedIn and any
    other remote host. Routes are keyed by method and URL without query
    string; every request is recorded.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, url, json=None, status=200, headers=None, content=None):
        """``json`` may be a dict or a callable taking the request."""
        self.routes[(method.upper(), url)] = (json, status, headers or {}, content)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}")
        if key not in self.routes:
            return httpx.Response(404, json={"error": {"message": f"no fake route for {key}"}})
        body, status, headers, content = self.routes[key]
        if content is not None:
            return httpx.Response(status, content=content, headers=headers)
        if callable(body):
            body = body(request)
        return httpx.Response(status, json=body, headers=headers)

    def calls(self, method, url):
        return [
            r for r in self.requests
            if r.method == method.upper() and f"{r.url.scheme}://{r.url.host}{r.url.path}" == url
        ]


class FakeDNS:
    """Resolver for MediaFetcher: IP literals map to themselves, other hosts to a public address unless pinned."""

    PUBLIC = "93.184.216.34"

    def __init__(self):
        self.hosts = {}

    def __call__(self, host):
        if host in self.hosts:
            return self.hosts[host]
        if host.replace(".", "").isdigit() or ":" in host:
            return [host]
        return [self.PUBLIC]


def json_body(request: httpx.Request):
    return json.loads(request.content.decode())


@pytest.fixture(scope="function")
def db():
    """Fresh in-memory database for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    def get_test_db():
        yield session

    app.dependency_overrides[get_db] = get_test_db
    yield session

    app.dependency_overrides.clear()
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def providers():
    return FakeProviders()


@pytest.fixture(scope="function")
def http(providers):
    with httpx.Client(transport=httpx.MockTransport(providers)) as c:
        yield c


@pytest.fixture(scope="function")
def facebook_client(http):
    return FacebookClient(http=http)


@pytest.fixture(scope="function")
def linkedin_client(http):
    return LinkedInClient(http=http, organization_id="")


@pytest.fixture(scope="function")
def dns():
    return FakeDNS()


@pytest.fixture(scope="function")
def media_fetcher(http, dns):
    return MediaFetcher(http=http, resolver=dns)


@pytest.fixture(scope="function")
def client(db, http, media_fetcher):
    """Test client whose outbound provider calls hit the fake providers."""

    def get_test_http():
        yield http

    app.dependency_overrides[get_http_client] = get_test_http
    app.dependency_overrides[get_media_fetcher] = lambda: media_fetcher
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def user(db):
    return crud.create_user(db, "Test User", "test@example.com", hash_password("testpassword123"))


@pytest.fixture(scope="function")
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture(scope="function")
def facebook_connected(db, user):
    credentials.set_credential(
        db, user.id, Platform.FACEBOOK,
        TokenBundle(access_token="fb-user-token", expires_in=60 * 24 * 3600),
        provider_id="fb-user-1",
    )
    return user


@pytest.fixture(scope="function")
def linkedin_connected(db, user):
    credentials.set_credential(
        db, user.id, Platform.LINKEDIN,
        TokenBundle(access_token="li-access-token", refresh_token="li-refresh-token", expires_in=3600),
        provider_id="li-member-1",
    )
    return user


def facebook_pages_route(providers):
    return providers.add("GET", f"{GRAPH}/me/accounts", json={
        "data": [{"id": "page-1", "name": "Acme", "access_token": "page-token-1"}],
    })


def expire_credential(db, user, platform: Platform, seconds_from_now: int = -60):
    column = "facebook_token_expiry" if platform is Platform.FACEBOOK else "linkedin_expires_at"
    setattr(user, column, utcnow() + timedelta(seconds=seconds_from_now))
    db.add(user)
    db.commit()
