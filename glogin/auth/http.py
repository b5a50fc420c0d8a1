"""
Narrow HTTP capabilities used to talk to the provider.

The core only ever needs "POST a form" (token exchange) and "GET with headers"
(userinfo). Both are async so a request waiting on the provider yields the event
loop instead of holding a worker thread.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Protocol

import httpx


class HttpPoster(Protocol):
    async def post_form(
        self,
        url: str,
        data: Mapping[str, str],
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        """
        POST an application/x-www-form-urlencoded body.

        Raises httpx.HTTPError on transport failures (including timeouts).
        """


class HttpGetter(Protocol):
    async def get(self, url: str, *, headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        """
        GET a URL.

        Raises httpx.HTTPError on transport failures (including timeouts).
        """


class HttpxClient:
    """
    httpx-backed implementation of HttpPoster + HttpGetter.

    A client is opened per call: nothing is shared between concurrent requests.
    `transport` lets tests plug in `httpx.MockTransport`.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: str = "glogin",
    ) -> None:
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport
        self._headers: Dict[str, str] = {"User-Agent": user_agent}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport, headers=self._headers)

    async def post_form(
        self,
        url: str,
        data: Mapping[str, str],
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        async with self._client() as client:
            return await client.post(url, data=dict(data), headers=dict(headers or {}))

    async def get(self, url: str, *, headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        async with self._client() as client:
            return await client.get(url, headers=dict(headers or {}))
