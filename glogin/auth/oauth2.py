from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from glogin.auth.config import CLIENT_AUTH_HTTP_BASIC, CLIENT_AUTH_METHODS, CLIENT_AUTH_REQUEST_BODY, AuthConfig
from glogin.auth.errors import TokenExchangeError
from glogin.auth.http import HttpPoster
from glogin.auth.models import AuthorizationRequest, TokenExchangeResult, dedupe_scopes

logger = logging.getLogger(__name__)


def _basic_auth_header(client_id: str, client_secret: str) -> str:
    # RFC 6749 2.3.1: form-urlencode both parts before joining.
    raw = f"{quote(client_id, safe='')}:{quote(client_secret, safe='')}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def _provider_error(data: Any) -> Dict[str, Optional[str]]:
    if not isinstance(data, dict):
        return {"error": None, "error_description": None}
    err = data.get("error")
    desc = data.get("error_description")
    return {
        "error": str(err) if err else None,
        "error_description": str(desc) if desc else None,
    }


class OAuth2Client:
    """
    OAuth2 authorization-code client for a single provider.

    Holds the endpoints, the client credentials and the fixed redirect URI.
    Building the authorize URL is pure; only `validate_authorization_code`
    touches the network (once, no retries).
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        authorization_endpoint: str,
        token_endpoint: str,
        redirect_uri: str,
        http: HttpPoster,
        authenticate_with: str = CLIENT_AUTH_REQUEST_BODY,
    ) -> None:
        if authenticate_with not in CLIENT_AUTH_METHODS:
            raise ValueError(f"Unsupported client authentication: {authenticate_with}")
        self.client_id = client_id
        self.authorization_endpoint = authorization_endpoint
        self.token_endpoint = token_endpoint
        self.redirect_uri = redirect_uri
        self.authenticate_with = authenticate_with
        self._client_secret = client_secret
        self._http = http

    @classmethod
    def from_config(cls, cfg: AuthConfig, http: HttpPoster) -> "OAuth2Client":
        if not cfg.google_client_id or not cfg.google_client_secret:
            raise ValueError("Google client ID/secret not configured")
        return cls(
            client_id=cfg.google_client_id,
            client_secret=cfg.google_client_secret,
            authorization_endpoint=cfg.authorization_endpoint,
            token_endpoint=cfg.token_endpoint,
            redirect_uri=cfg.redirect_uri,
            http=http,
            authenticate_with=cfg.client_auth_method,
        )

    def create_authorization_url(
        self,
        state: str,
        scopes: Sequence[str],
        extra_params: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Build the provider's authorize URL.

        Args:
            state: CSRF state for this attempt (echoed back on the callback)
            scopes: Requested scopes (space-joined; omitted when empty)
            extra_params: Provider hints such as `prompt`; cannot override the core parameters

        Returns:
            Absolute URL the browser should be redirected to
        """
        req = AuthorizationRequest(
            state=state,
            redirect_uri=self.redirect_uri,
            scopes=dedupe_scopes(scopes),
            extra_params=dict(extra_params or {}),
        )
        return req.to_url(self.authorization_endpoint, self.client_id)

    async def validate_authorization_code(self, code: str) -> TokenExchangeResult:
        """
        Exchange an authorization code for an access token.

        Raises:
            TokenExchangeError: transport failure/timeout, non-2xx, non-JSON body,
                provider `error` field, or missing `access_token`
        """
        body: Dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
        }
        headers = {"Accept": "application/json"}
        if self.authenticate_with == CLIENT_AUTH_HTTP_BASIC:
            headers["Authorization"] = _basic_auth_header(self.client_id, self._client_secret)
        else:
            body["client_secret"] = self._client_secret

        try:
            r = await self._http.post_form(self.token_endpoint, body, headers=headers)
        except httpx.TimeoutException as e:
            raise TokenExchangeError("Token exchange timed out") from e
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"Token exchange request failed: {type(e).__name__}") from e

        try:
            data = r.json()
        except ValueError:
            data = None

        if not (200 <= r.status_code < 300):
            info = _provider_error(data)
            # Avoid leaking sensitive info; include minimal context.
            raise TokenExchangeError(
                f"Token exchange failed (status={r.status_code}, error={info['error'] or 'unknown'})",
                status_code=r.status_code,
                **info,
            )
        if not isinstance(data, dict):
            raise TokenExchangeError("Invalid token response (expected JSON object)", status_code=r.status_code)
        if data.get("error"):
            info = _provider_error(data)
            raise TokenExchangeError(
                f"Token exchange failed (error={info['error']})",
                status_code=r.status_code,
                **info,
            )

        try:
            result = TokenExchangeResult.model_validate(data)
        except ValidationError as e:
            raise TokenExchangeError("Token response missing access_token", status_code=r.status_code) from e

        logger.debug("Token exchange OK (token_type=%s expires_in=%s)", result.token_type, result.expires_in)
        return result
