"""
Login state machine.

Per browser, implicit in the cookies:

    Anonymous --initiate--> PendingCallback --callback--> Authenticated
                                   |                           |
                                   +--(any failure)--> Anonymous <--logout--+

The callback is strictly ordered: verify state, exchange code, fetch profile,
then (and only then) write the profile into the session.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from starlette.responses import RedirectResponse, Response

from glogin.auth.config import AuthConfig
from glogin.auth.errors import AuthorizationDeniedError, MissingCodeError, StateMismatchError
from glogin.auth.oauth2 import OAuth2Client
from glogin.auth.session import USER_KEY, Session, SessionStore
from glogin.auth.state import STATE_COOKIE_NAME, generate_state, verify_state
from glogin.auth.userinfo import UserInfoFetcher
from glogin.auth.util import redact

logger = logging.getLogger(__name__)

HOME_PATH = "/"


class LoginFlowController:
    def __init__(
        self,
        *,
        oauth: OAuth2Client,
        userinfo: UserInfoFetcher,
        sessions: SessionStore,
        scopes: Sequence[str],
        prompt: Optional[str] = None,
        state_ttl_seconds: int = 3600,
        cookie_secure: bool = False,
    ) -> None:
        self.oauth = oauth
        self.userinfo = userinfo
        self.sessions = sessions
        self.scopes = tuple(scopes)
        self.prompt = prompt
        self.state_ttl_seconds = state_ttl_seconds
        self.cookie_secure = cookie_secure

    @classmethod
    def from_config(
        cls,
        cfg: AuthConfig,
        *,
        oauth: OAuth2Client,
        userinfo: UserInfoFetcher,
        sessions: SessionStore,
    ) -> "LoginFlowController":
        return cls(
            oauth=oauth,
            userinfo=userinfo,
            sessions=sessions,
            scopes=cfg.scopes,
            prompt=cfg.prompt,
            state_ttl_seconds=cfg.state_ttl_seconds,
            cookie_secure=cfg.cookie_secure,
        )

    def _state_cookie_kwargs(self, value: str, max_age: int) -> dict:
        return {
            "key": STATE_COOKIE_NAME,
            "value": value,
            "max_age": max_age,
            "httponly": True,
            "secure": self.cookie_secure,
            "samesite": "lax",
            "path": "/",
        }

    def clear_state_cookie(self, response: Response) -> None:
        response.set_cookie(**self._state_cookie_kwargs("", 0))

    def initiate(self) -> RedirectResponse:
        """Anonymous -> PendingCallback: state cookie + redirect to the provider. No network I/O."""
        state = generate_state()
        extra: Dict[str, str] = {}
        if self.prompt:
            extra["prompt"] = self.prompt
        url = self.oauth.create_authorization_url(state, self.scopes, extra_params=extra)
        logger.debug("Login initiated (state=%s): redirecting to %s", redact(state), self.oauth.authorization_endpoint)

        resp = RedirectResponse(url=url, status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**self._state_cookie_kwargs(state, self.state_ttl_seconds))
        return resp

    async def callback(
        self,
        session: Session,
        *,
        state: Optional[str],
        code: Optional[str],
        stored_state: Optional[str],
        error: Optional[str] = None,
    ) -> RedirectResponse:
        """
        PendingCallback -> Authenticated.

        Args:
            session: Session loaded for this request (mutated only on success)
            state: `state` query parameter echoed by the provider
            code: `code` query parameter
            stored_state: value of the state cookie set by `initiate`
            error: provider `error` query parameter (user denied consent, ...)

        Raises:
            StateMismatchError: state missing or different; nothing else is attempted
            AuthorizationDeniedError: provider returned `error`; no exchange attempted
            MissingCodeError: no `code` on the callback; no exchange attempted
            TokenExchangeError: the exchange failed
            ProfileFetchError: userinfo endpoint failed
        """
        if not verify_state(stored_state, state):
            logger.warning(
                "OAuth callback rejected: state mismatch (cookie=%s query=%s)", redact(stored_state), redact(state)
            )
            raise StateMismatchError("Invalid OAuth state")

        if error:
            raise AuthorizationDeniedError(f"Authorization not granted (error={error})", error=error)
        if not code:
            raise MissingCodeError("Missing authorization code")

        tokens = await self.oauth.validate_authorization_code(code)
        profile = await self.userinfo.fetch(tokens.access_token)

        session.set(USER_KEY, profile)
        logger.info("Login succeeded (user id=%s)", profile.get("id") or profile.get("sub") or "<unknown>")

        resp = RedirectResponse(url=HOME_PATH, status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        self.clear_state_cookie(resp)
        self.sessions.commit(session, resp)
        return resp

    def logout(self, session: Session) -> RedirectResponse:
        """Authenticated -> Anonymous. Safe to call without an active session."""
        had_user = USER_KEY in session
        session.destroy()
        if had_user:
            logger.info("Logout (session=%s)", redact(session.id))

        resp = RedirectResponse(url=HOME_PATH, status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        self.sessions.commit(session, resp)
        return resp
