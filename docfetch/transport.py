"""Transports: the single network primitive the fetcher dials through.

A transport performs one request and returns a :class:`TransportResponse`
whose body is read lazily. Connection-level failures are raised as
:class:`TransportError`; HTTP error statuses are ordinary responses.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Union
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from .auth import AuthConfig
from .config import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from .uris import protocol

LOGGER = logging.getLogger(__name__)

CREDENTIAL_HEADERS = ("authorization", "cookie")


class TransportError(Exception):
    """A request that produced no HTTP response.

    ``status`` is 0, the same as a masked cross-origin failure.
    """

    def __init__(self, message: str, status: int = 0, status_text: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text or message


class TransportResponse:
    """Status, headers and a deferred body of one response."""

    def __init__(
        self,
        status: int,
        status_text: str = "",
        headers: Optional[Mapping[str, str]] = None,
        url: str = "",
        history: Optional[List[str]] = None,
        body: Optional[str] = None,
    ) -> None:
        self.status = status
        self.status_text = status_text
        # Header names are lowercased; repeated headers are comma-joined.
        self.headers: Dict[str, str] = {
            name.lower(): value for name, value in (headers or {}).items()
        }
        self.url = url
        self.history = list(history or [])
        self._body = body

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    async def text(self) -> str:
        return self._body or ""

    async def aclose(self) -> None:
        return None


class HttpxResponse(TransportResponse):
    """A streamed :class:`httpx.Response`; the body is read on demand."""

    def __init__(self, response: httpx.Response) -> None:
        headers = {
            name: ", ".join(response.headers.get_list(name))
            for name in response.headers.keys()
        }
        super().__init__(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=headers,
            url=str(response.url),
            history=[str(previous.url) for previous in response.history],
        )
        self._response = response
        self._text: Optional[str] = None

    async def text(self) -> str:
        if self._text is None:
            try:
                await self._response.aread()
            except httpx.HTTPError as exc:
                raise TransportError(f"Failed reading body of {self.url}: {exc}") from exc
            finally:
                await self._response.aclose()
            self._text = self._response.text
        return self._text

    async def aclose(self) -> None:
        await self._response.aclose()


class Transport(Protocol):
    async def send(
        self,
        uri: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[Union[str, bytes]] = None,
        credentials: bool = False,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        ...


class HttpxTransport:
    """HTTP(S) and ``file:`` transport backed by :class:`httpx.AsyncClient`.

    Redirects are followed by httpx; the URIs passed through are reported in
    ``TransportResponse.history``. Credentials (the :class:`AuthConfig`
    cookies and headers, plus any caller-supplied ``Authorization`` or
    ``Cookie`` header) are only sent when ``credentials`` is true.
    """

    def __init__(
        self,
        auth: Optional[AuthConfig] = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.auth = auth
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _request_headers(
        self, uri: str, headers: Optional[Mapping[str, str]], credentials: bool
    ) -> Dict[str, str]:
        merged = {name.lower(): value for name, value in (headers or {}).items()}
        if not credentials:
            for name in CREDENTIAL_HEADERS:
                merged.pop(name, None)
            return merged
        if self.auth and not self.auth.is_empty:
            for name, value in (self.auth.headers or {}).items():
                merged.setdefault(name.lower(), value)
            cookie = self.auth.cookie_header(uri)
            if cookie and "cookie" not in merged:
                merged["cookie"] = cookie
        return merged

    async def send(
        self,
        uri: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[Union[str, bytes]] = None,
        credentials: bool = False,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        if protocol(uri) == "file":
            return await self._send_file(uri, method)

        request = self.client.build_request(
            method,
            uri,
            headers=self._request_headers(uri, headers, credentials),
            content=body,
            timeout=timeout if timeout is not None else self.timeout,
        )
        LOGGER.debug("%s %s (credentials=%s)", method, uri, credentials)
        try:
            response = await self.client.send(request, stream=True)
        except httpx.RequestError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        return HttpxResponse(response)

    async def _send_file(self, uri: str, method: str) -> TransportResponse:
        if method.upper() not in ("GET", "HEAD"):
            raise TransportError(f"Cannot {method} a file: URI: {uri}")
        path = Path(url2pathname(urlparse(uri).path))
        if not path.is_file():
            return TransportResponse(404, "Not Found", url=uri)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise TransportError(f"Cannot read {path}: {exc}") from exc
        return TransportResponse(200, "OK", url=uri, body=text)
