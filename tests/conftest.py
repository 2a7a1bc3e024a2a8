"""Shared fixtures: a scripted in-memory transport and a fetcher wired to it."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

from docfetch.config import FetcherSettings
from docfetch.fetcher import Fetcher
from docfetch.transport import TransportError, TransportResponse


@dataclass
class SentRequest:
    uri: str
    method: str
    headers: Dict[str, str]
    body: Any
    credentials: bool


Responder = Callable[[SentRequest], TransportResponse]
Route = Union[dict, TransportError, Responder]


class FakeTransport:
    """Answers requests from a table of routes keyed by (method, uri).

    Unknown URIs get a 404. Every request is recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.calls: List[SentRequest] = []

    def route(
        self,
        uri: str,
        body: str = "",
        *,
        status: int = 200,
        status_text: str = "OK",
        headers: Optional[Dict[str, str]] = None,
        method: str = "GET",
        history: Optional[List[str]] = None,
        delay: float = 0.0,
    ) -> None:
        self.routes[(method, uri)] = {
            "status": status,
            "status_text": status_text,
            "headers": headers or {},
            "body": body,
            "history": history,
            "delay": delay,
        }

    def fail(self, uri: str, message: str = "Connection refused", *, method: str = "GET") -> None:
        self.routes[(method, uri)] = TransportError(message)

    def respond_with(self, uri: str, responder: Responder, *, method: str = "GET") -> None:
        self.routes[(method, uri)] = responder

    def uris(self) -> List[str]:
        return [call.uri for call in self.calls]

    async def send(
        self,
        uri,
        *,
        method="GET",
        headers=None,
        body=None,
        credentials=False,
        timeout=None,
    ) -> TransportResponse:
        request = SentRequest(uri, method.upper(), dict(headers or {}), body, credentials)
        self.calls.append(request)

        route = self.routes.get((request.method, uri))
        if route is None:
            return TransportResponse(404, "Not Found", url=uri)
        if isinstance(route, TransportError):
            raise route
        if callable(route):
            return route(request)

        if route["delay"]:
            await asyncio.sleep(route["delay"])
        return TransportResponse(
            route["status"],
            route["status_text"],
            headers=route["headers"],
            url=uri,
            history=route["history"],
            body=route["body"],
        )


TURTLE_CARD = """\
@prefix foaf: <http://xmlns.com/foaf/0.1/> .
<#me> a foaf:Person ;
    foaf:name "Alice" .
"""

RDF_XML_CARD = """\
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns:foaf="http://xmlns.com/foaf/0.1/">
  <foaf:Person rdf:about="http://example.org/people#alice">
    <foaf:name>Alice</foaf:name>
  </foaf:Person>
</rdf:RDF>
"""


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def settings() -> FetcherSettings:
    return FetcherSettings(timeout=5.0)


@pytest.fixture
def fetcher(transport: FakeTransport, settings: FetcherSettings) -> Fetcher:
    return Fetcher(transport=transport, settings=settings)
