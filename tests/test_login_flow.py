"""
Login state machine tests against a mocked provider (no HTTP server involved).
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from glogin.api.server import build_login_flow
from glogin.auth.config import GOOGLE_PROFILE_SCOPE
from glogin.auth.errors import (
    AuthorizationDeniedError,
    MissingCodeError,
    ProfileFetchError,
    StateMismatchError,
    TokenExchangeError,
)
from glogin.auth.session import USER_KEY
from glogin.auth.state import STATE_COOKIE_NAME


@pytest.fixture
def flow(auth_config, fake_google):
    return build_login_flow(auth_config, fake_google.client())


def _set_cookies(resp) -> dict:
    out = {}
    for k, v in resp.raw_headers:
        if k.decode("latin-1").lower() == "set-cookie":
            header = v.decode("latin-1")
            out[header.split("=", 1)[0]] = header
    return out


def test_initiate_redirects_to_provider_with_state_cookie(flow, auth_config, fake_google) -> None:
    resp = flow.initiate()

    assert resp.status_code == 302
    location = resp.headers["location"]
    q = parse_qs(urlsplit(location).query)
    assert location.startswith(auth_config.authorization_endpoint + "?")
    assert q["scope"] == [GOOGLE_PROFILE_SCOPE]
    assert q["prompt"] == ["select_account"]
    assert q["response_type"] == ["code"]

    cookie = _set_cookies(resp)[STATE_COOKIE_NAME]
    assert cookie.startswith(f"{STATE_COOKIE_NAME}={q['state'][0]};")
    lowered = cookie.lower()
    assert "httponly" in lowered
    assert "max-age=3600" in lowered
    assert "path=/" in lowered
    assert fake_google.requests == []


def test_initiate_generates_fresh_state_per_attempt(flow) -> None:
    s1 = parse_qs(urlsplit(flow.initiate().headers["location"]).query)["state"][0]
    s2 = parse_qs(urlsplit(flow.initiate().headers["location"]).query)["state"][0]
    assert s1 != s2


def test_initiate_without_prompt_hint(auth_config, fake_google) -> None:
    flow = build_login_flow(auth_config, fake_google.client())
    flow.prompt = None
    q = parse_qs(urlsplit(flow.initiate().headers["location"]).query)
    assert "prompt" not in q


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "stored_state, state",
    [
        (None, "abc"),
        ("abc", None),
        (None, None),
        ("abc", "abd"),
    ],
)
async def test_callback_state_guard_blocks_before_any_network(flow, fake_google, stored_state, state) -> None:
    session = flow.sessions.new_session()

    with pytest.raises(StateMismatchError):
        await flow.callback(session, state=state, code="code", stored_state=stored_state)

    assert fake_google.requests == []
    assert session.modified is False
    assert USER_KEY not in session


@pytest.mark.asyncio
async def test_callback_provider_denial_skips_exchange(flow, fake_google) -> None:
    session = flow.sessions.new_session()
    with pytest.raises(AuthorizationDeniedError) as exc:
        await flow.callback(session, state="s", code=None, stored_state="s", error="access_denied")
    assert exc.value.error == "access_denied"
    assert fake_google.requests == []
    assert session.modified is False


@pytest.mark.asyncio
async def test_callback_without_code_is_a_client_error(flow, fake_google) -> None:
    session = flow.sessions.new_session()
    with pytest.raises(MissingCodeError):
        await flow.callback(session, state="s", code=None, stored_state="s")
    assert fake_google.requests == []
    assert session.modified is False


@pytest.mark.asyncio
async def test_callback_rejected_code_leaves_session_untouched(flow, fake_google) -> None:
    fake_google.token = (400, {"error": "invalid_grant"})
    session = flow.sessions.new_session()

    with pytest.raises(TokenExchangeError):
        await flow.callback(session, state="s", code="bad", stored_state="s")

    assert USER_KEY not in session
    assert session.modified is False
    assert fake_google.userinfo_requests() == []


@pytest.mark.asyncio
async def test_callback_profile_failure_leaves_session_untouched(flow, fake_google) -> None:
    fake_google.userinfo = (500, "boom")
    session = flow.sessions.new_session()

    with pytest.raises(ProfileFetchError):
        await flow.callback(session, state="s", code="good", stored_state="s")

    assert USER_KEY not in session
    assert session.modified is False


@pytest.mark.asyncio
async def test_callback_success_exchange_then_fetch_then_store(flow, fake_google) -> None:
    session = flow.sessions.new_session()

    resp = await flow.callback(session, state="s", code="good", stored_state="s")

    assert [r.url.path for r in fake_google.requests] == ["/token", "/oauth2/v3/userinfo"]
    assert fake_google.userinfo_requests()[0].headers["authorization"] == "Bearer ya29.test-access-token"
    assert session.get(USER_KEY) == {"id": "42", "name": "Ada"}
    assert resp.status_code == 302
    assert resp.headers["location"] == "/"

    cookies = _set_cookies(resp)
    assert "max-age=0" in cookies[STATE_COOKIE_NAME].lower()
    assert flow.sessions.cookie_name in cookies


def test_logout_without_session_is_noop(flow) -> None:
    session = flow.sessions.new_session()
    resp = flow.logout(session)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/"
    resp = flow.logout(session)
    assert resp.status_code == 302
