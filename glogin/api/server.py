"""
Google login web server.

Serves the home view plus the three login-flow endpoints (initiate, callback,
logout). All protocol work lives in `glogin.auth`; this module only wires it to
HTTP routes, maps flow errors to responses and runs uvicorn.
"""

from __future__ import annotations

import html
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from glogin.auth.config import AuthConfig, load_auth_config
from glogin.auth.deps import authenticate_request, get_login_flow, load_session
from glogin.auth.errors import (
    AuthorizationDeniedError,
    CallbackRequestError,
    ProfileFetchError,
    TokenExchangeError,
)
from glogin.auth.flow import LoginFlowController
from glogin.auth.http import HttpxClient
from glogin.auth.oauth2 import OAuth2Client
from glogin.auth.session import USER_KEY, Session, SessionStore
from glogin.auth.state import STATE_COOKIE_NAME
from glogin.auth.userinfo import UserInfoFetcher

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_FAILED_HTML = """<html>
<body>
<div>Login failed.</div>
<a href="/login/google">Try again</a>
</body>
</html>
"""


def build_login_flow(cfg: AuthConfig, http: Optional[HttpxClient] = None) -> LoginFlowController:
    http = http or HttpxClient(timeout_seconds=cfg.http_timeout_seconds)
    return LoginFlowController.from_config(
        cfg,
        oauth=OAuth2Client.from_config(cfg, http),
        userinfo=UserInfoFetcher(userinfo_endpoint=cfg.userinfo_endpoint, http=http),
        sessions=SessionStore.from_config(cfg),
    )


def render_home(user: Optional[Dict[str, Any]]) -> str:
    if user is not None:
        body = (
            f"<div>User: {html.escape(json.dumps(user, ensure_ascii=False))}</div>\n"
            '<a href="/logout">Logout</a>'
        )
    else:
        body = '<div>\n<a href="/login/google">Google Login</a>\n</div>'
    return f"<html>\n<body>\n{body}\n</body>\n</html>\n"


@router.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@router.get("/", response_class=HTMLResponse)
async def home(
    flow: LoginFlowController = Depends(get_login_flow),
    session: Session = Depends(load_session),
) -> HTMLResponse:
    resp = HTMLResponse(render_home(session.get(USER_KEY)))
    resp.headers["Cache-Control"] = "no-store"
    # Re-issuing the cookie keeps the idle timeout sliding.
    flow.sessions.commit(session, resp)
    return resp


@router.get("/login/google")
async def login_google(flow: LoginFlowController = Depends(get_login_flow)) -> RedirectResponse:
    """Start the Google login: state cookie + redirect to the account chooser."""
    return flow.initiate()


@router.get("/login/google/callback")
async def login_google_callback(
    request: Request,
    state: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    flow: LoginFlowController = Depends(get_login_flow),
    session: Session = Depends(load_session),
) -> RedirectResponse:
    """Handle Google's redirect back after the user picked an account."""
    return await flow.callback(
        session,
        state=state,
        code=code,
        stored_state=request.cookies.get(STATE_COOKIE_NAME),
        error=error,
    )


@router.get("/logout")
async def logout(
    flow: LoginFlowController = Depends(get_login_flow),
    session: Session = Depends(load_session),
) -> RedirectResponse:
    return flow.logout(session)


@router.get("/api/auth/me")
async def auth_me(request: Request) -> Dict[str, Any]:
    user = authenticate_request(request)
    if user is None:
        # No `WWW-Authenticate`: browsers would pop a basic-auth modal.
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"ok": True, "user": user}


async def _bad_callback_handler(request: Request, exc: CallbackRequestError) -> Response:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _login_failed_handler(request: Request, exc: Exception) -> Response:
    logger.warning("Login failed: %s", str(exc))
    # Declined consent -> 403; provider failures -> 502.
    status_code = 403 if isinstance(exc, AuthorizationDeniedError) else 502
    resp = HTMLResponse(LOGIN_FAILED_HTML, status_code=status_code)
    resp.headers["Cache-Control"] = "no-store"
    # The state was consumed by this attempt.
    get_login_flow(request).clear_state_cookie(resp)
    return resp


def create_app(cfg: Optional[AuthConfig] = None, *, http: Optional[HttpxClient] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        cfg: Auth configuration (default: loaded from the environment once)
        http: Provider HTTP client override (tests pass one backed by httpx.MockTransport)

    Raises:
        ValueError: when required configuration is missing
    """
    cfg = cfg or load_auth_config()
    cfg.validate()

    app = FastAPI(title="glogin")
    app.state.auth_config = cfg
    app.state.login_flow = build_login_flow(cfg, http)

    app.add_exception_handler(CallbackRequestError, _bad_callback_handler)
    app.add_exception_handler(AuthorizationDeniedError, _login_failed_handler)
    app.add_exception_handler(TokenExchangeError, _login_failed_handler)
    app.add_exception_handler(ProfileFetchError, _login_failed_handler)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming HTTP requests."""
        start_time = time.time()
        logger.debug("%s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise

    app.include_router(router)
    return app


def run(host: str = "0.0.0.0", port: int = 3000) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    cfg = load_auth_config()
    app = create_app(cfg)
    logger.info(
        "Starting login server on %s:%d (redirect_uri=%s cookie_secure=%s session_ttl=%ds log_level=%s)",
        host,
        port,
        cfg.redirect_uri,
        cfg.cookie_secure,
        cfg.session_ttl_seconds,
        log_level,
    )
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
