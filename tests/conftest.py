"""
Pytest config.

Local imports like `import glogin` rely on the repo root being on sys.path. When a
global `pytest` entrypoint is used without installing the project that doesn't
happen reliably during collection, so we pin it here.

Provider traffic never leaves the process: `fake_google` answers the token and
userinfo endpoints through `httpx.MockTransport`.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple, Union
from urllib.parse import parse_qs

import httpx
import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from glogin.auth.config import AuthConfig, load_auth_config  # noqa: E402
from glogin.auth.http import HttpxClient  # noqa: E402

TEST_SESSION_KEY = "test-secret-key-for-testing-purposes-only"
TEST_CLIENT_ID = "test-client-id"
TEST_CLIENT_SECRET = "test-client-secret"
TEST_REDIRECT_URI = "http://testserver/login/google/callback"

ResponseSpec = Union[Tuple[int, Any], Exception]


@pytest.fixture(autouse=True)
def _clear_auth_config_cache() -> Iterator[None]:
    """`load_auth_config` is cached per process; each test sees its own environment."""
    load_auth_config.cache_clear()
    yield
    load_auth_config.cache_clear()


class FakeGoogle:
    """
    Canned token + userinfo endpoints.

    Set `token` / `userinfo` to `(status, body)` (dict -> JSON, str -> raw text) or
    to an exception instance to simulate a transport failure.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.token: ResponseSpec = (
            200,
            {"access_token": "ya29.test-access-token", "token_type": "Bearer", "expires_in": 3599},
        )
        self.userinfo: ResponseSpec = (200, {"id": "42", "name": "Ada"})

    @staticmethod
    def _respond(spec: ResponseSpec) -> httpx.Response:
        if isinstance(spec, Exception):
            raise spec
        status, body = spec
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=str(body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "oauth2.googleapis.com" and request.url.path == "/token":
            return self._respond(self.token)
        if request.url.host == "www.googleapis.com" and request.url.path == "/oauth2/v3/userinfo":
            return self._respond(self.userinfo)
        return httpx.Response(404, json={"error": "not_found"})

    def client(self, timeout_seconds: float = 10.0) -> HttpxClient:
        return HttpxClient(timeout_seconds=timeout_seconds, transport=httpx.MockTransport(self.handler))

    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/token"]

    def userinfo_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/oauth2/v3/userinfo"]

    @staticmethod
    def form(request: httpx.Request) -> Dict[str, str]:
        return {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(
        google_client_id=TEST_CLIENT_ID,
        google_client_secret=TEST_CLIENT_SECRET,
        redirect_uri=TEST_REDIRECT_URI,
        session_encryption_key=TEST_SESSION_KEY,
    )
