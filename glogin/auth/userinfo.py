from __future__ import annotations

import logging

import httpx

from glogin.auth.errors import ProfileFetchError
from glogin.auth.http import HttpGetter
from glogin.auth.models import UserProfile

logger = logging.getLogger(__name__)


class UserInfoFetcher:
    """Fetch the provider's profile for an access token (single attempt)."""

    def __init__(self, *, userinfo_endpoint: str, http: HttpGetter) -> None:
        self.userinfo_endpoint = userinfo_endpoint
        self._http = http

    async def fetch(self, access_token: str) -> UserProfile:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        try:
            r = await self._http.get(self.userinfo_endpoint, headers=headers)
        except httpx.TimeoutException as e:
            raise ProfileFetchError("Profile fetch timed out") from e
        except httpx.HTTPError as e:
            raise ProfileFetchError(f"Profile fetch request failed: {type(e).__name__}") from e

        if not (200 <= r.status_code < 300):
            raise ProfileFetchError(f"Profile fetch failed (status={r.status_code})", status_code=r.status_code)
        try:
            data = r.json()
        except ValueError as e:
            raise ProfileFetchError("Invalid profile response (not JSON)", status_code=r.status_code) from e
        if not isinstance(data, dict):
            raise ProfileFetchError("Invalid profile response (expected JSON object)", status_code=r.status_code)

        logger.debug("Profile fetched (claims=%s)", ",".join(sorted(data.keys())))
        return data
