from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

GOOGLE_AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_ENDPOINT = "https://www.googleapis.com/oauth2/v3/userinfo"
GOOGLE_PROFILE_SCOPE = "https://www.googleapis.com/auth/userinfo.profile"

DEFAULT_REDIRECT_URI = "http://localhost:3000/login/google/callback"
MIN_SESSION_KEY_LENGTH = 32

# Where the client credentials go on the token request.
CLIENT_AUTH_REQUEST_BODY = "request_body"
CLIENT_AUTH_HTTP_BASIC = "http_basic_auth"
CLIENT_AUTH_METHODS = (CLIENT_AUTH_REQUEST_BODY, CLIENT_AUTH_HTTP_BASIC)


@dataclass(frozen=True)
class AuthConfig:
    # Google OAuth2 client
    google_client_id: Optional[str]
    google_client_secret: Optional[str]
    redirect_uri: str
    authorization_endpoint: str = GOOGLE_AUTHORIZATION_ENDPOINT
    token_endpoint: str = GOOGLE_TOKEN_ENDPOINT
    userinfo_endpoint: str = GOOGLE_USERINFO_ENDPOINT
    scopes: Tuple[str, ...] = (GOOGLE_PROFILE_SCOPE,)
    prompt: Optional[str] = "select_account"  # Provider hint appended to the authorize URL
    http_timeout_seconds: float = 10.0
    client_auth_method: str = CLIENT_AUTH_REQUEST_BODY

    # Session configuration
    session_encryption_key: Optional[str] = None
    session_ttl_seconds: int = 900  # Idle timeout
    state_ttl_seconds: int = 3600
    cookie_secure: bool = False

    @property
    def session_enabled(self) -> bool:
        return len(self.session_encryption_key or "") >= MIN_SESSION_KEY_LENGTH

    def validate(self) -> None:
        """Raise ValueError naming every missing/invalid setting."""
        problems: List[str] = []
        if not self.google_client_id:
            problems.append("GOOGLE_CLIENT_ID is required")
        if not self.google_client_secret:
            problems.append("GOOGLE_CLIENT_SECRET is required")
        if not self.session_encryption_key:
            problems.append("SESSION_ENCRYPTION_KEY is required")
        elif not self.session_enabled:
            problems.append(f"SESSION_ENCRYPTION_KEY must be at least {MIN_SESSION_KEY_LENGTH} characters")
        if not self.redirect_uri.startswith(("http://", "https://")):
            problems.append("AUTH_REDIRECT_URI must be an absolute http(s) URL")
        if self.client_auth_method not in CLIENT_AUTH_METHODS:
            problems.append("GOOGLE_CLIENT_AUTH_METHOD must be one of: " + ", ".join(CLIENT_AUTH_METHODS))
        if problems:
            raise ValueError("Invalid auth configuration: " + "; ".join(problems))


def _parse_scopes(value: str) -> Tuple[str, ...]:
    items = [x.strip() for x in (value or "").replace(",", " ").split()]
    out: List[str] = []
    for x in items:
        if x and x not in out:
            out.append(x)
    return tuple(out)


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name, "") or "").strip() or default


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    Built once at process start; request handlers receive the resulting object
    through the app and never read the environment themselves.
    """
    redirect_uri = _env("AUTH_REDIRECT_URI", DEFAULT_REDIRECT_URI)
    cookie_secure_env = _env("AUTH_COOKIE_SECURE").lower()
    if cookie_secure_env in ("1", "true", "yes", "on"):
        cookie_secure = True
    elif cookie_secure_env in ("0", "false", "no", "off"):
        cookie_secure = False
    else:
        # Default: secure cookies when the callback is served over https; otherwise allow local dev.
        cookie_secure = redirect_uri.startswith("https://")

    ttl = int(float(_env("AUTH_SESSION_TTL_SECONDS", "900")))
    if ttl <= 60:
        ttl = 60

    # The state cookie only has to outlive one trip to the provider.
    state_ttl = int(float(_env("AUTH_STATE_TTL_SECONDS", "3600")))
    state_ttl = max(60, min(state_ttl, 3600))

    timeout = float(_env("AUTH_HTTP_TIMEOUT_SECONDS", "10"))
    if timeout <= 0:
        timeout = 10.0

    # GOOGLE_OAUTH_PROMPT="" disables the hint; unset keeps the account chooser.
    prompt_env = os.getenv("GOOGLE_OAUTH_PROMPT")
    prompt = "select_account" if prompt_env is None else (prompt_env.strip() or None)

    scopes = _parse_scopes(_env("GOOGLE_OAUTH_SCOPES", GOOGLE_PROFILE_SCOPE))

    return AuthConfig(
        google_client_id=_env("GOOGLE_CLIENT_ID") or None,
        google_client_secret=_env("GOOGLE_CLIENT_SECRET") or None,
        redirect_uri=redirect_uri,
        authorization_endpoint=_env("GOOGLE_AUTHORIZATION_ENDPOINT", GOOGLE_AUTHORIZATION_ENDPOINT),
        token_endpoint=_env("GOOGLE_TOKEN_ENDPOINT", GOOGLE_TOKEN_ENDPOINT),
        userinfo_endpoint=_env("GOOGLE_USERINFO_ENDPOINT", GOOGLE_USERINFO_ENDPOINT),
        scopes=scopes or (GOOGLE_PROFILE_SCOPE,),
        prompt=prompt,
        http_timeout_seconds=timeout,
        client_auth_method=_env("GOOGLE_CLIENT_AUTH_METHOD", CLIENT_AUTH_REQUEST_BODY).lower(),
        session_encryption_key=_env("SESSION_ENCRYPTION_KEY") or None,
        session_ttl_seconds=ttl,
        state_ttl_seconds=state_ttl,
        cookie_secure=cookie_secure,
    )
