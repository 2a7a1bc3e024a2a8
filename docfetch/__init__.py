"""Linked-data document fetcher with content sniffing and format dispatch.

This module provides a clean API for dereferencing URIs into an RDF
knowledge store. It supports:

- Content negotiation driven by the registered format handlers
- Sniffing of the real format behind misleading content types
- Parsing RDF/XML, Turtle, N3, JSON-LD, and RDFa in XHTML
- Per-document fetch state, so each document is loaded once
- Request/response provenance and a status log per request
- Cross-site proxy and credential-suppression retries

Example usage:

    from docfetch import Fetcher, fetch_document

    # One-shot, synchronous
    result, fetcher = fetch_document("https://www.w3.org/People/Berners-Lee/card")
    print(result.ok, result.status)

    # Several documents into one store
    async with Fetcher() as fetcher:
        outcomes = await fetcher.fetch([
            "https://example.org/a.ttl",
            "https://example.org/b.rdf",
        ])
        for outcome in outcomes:
            print(outcome.uri, outcome.ok)
        print(fetcher.store.serialize("https://example.org/a.ttl"))

    # Authenticated fetch (credentials go only with credentialed requests)
    from docfetch.auth import AuthConfig
    auth = AuthConfig(headers={"Authorization": "Bearer xyz"})
    async with Fetcher(auth=auth) as fetcher:
        await fetcher.fetch("https://pod.example.org/private.ttl")
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Tuple

from .auth import AuthConfig
from .config import FetcherSettings, SettingsOverrides, load_settings
from .document import FetchFailure, FetchOptions, FetchOutcome, FetchResult
from .events import FetchEvent
from .fetcher import Fetcher
from .negotiation import HandlerRegistry
from .state import FetchState
from .store import KnowledgeStore
from .transport import HttpxTransport, TransportError

__all__ = [
    # Orchestrator
    "Fetcher",
    "fetch_document",
    "fetch_document_async",
    # Results and options
    "FetchOptions",
    "FetchResult",
    "FetchFailure",
    "FetchOutcome",
    "FetchState",
    "FetchEvent",
    # Store and registry
    "KnowledgeStore",
    "HandlerRegistry",
    # Transport and auth
    "HttpxTransport",
    "TransportError",
    "AuthConfig",
    # Config
    "FetcherSettings",
    "SettingsOverrides",
    "load_settings",
    # MCP Server
    "mcp",
]


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


async def fetch_document_async(
    uri: str,
    *,
    store: Optional[KnowledgeStore] = None,
    settings: Optional[FetcherSettings] = None,
    auth: Optional[AuthConfig] = None,
    **options: Any,
) -> Tuple[FetchOutcome, Fetcher]:
    """
    Fetch a single document with a fresh fetcher.

    Args:
        uri: The URI to fetch.
        store: Store to parse into (a new one by default).
        settings: Fetcher settings (from ``DOCFETCH_*`` by default).
        auth: Credentials for credentialed requests.
        **options: :class:`FetchOptions` fields, e.g. ``force=True``.

    Returns:
        The outcome and the fetcher, whose store holds the parsed data.
    """
    async with Fetcher(store, settings=settings, auth=auth) as fetcher:
        outcome = await fetcher.fetch(uri, **options)
    return outcome, fetcher


def fetch_document(
    uri: str,
    *,
    store: Optional[KnowledgeStore] = None,
    settings: Optional[FetcherSettings] = None,
    auth: Optional[AuthConfig] = None,
    **options: Any,
) -> Tuple[FetchOutcome, Fetcher]:
    """Synchronous wrapper for fetch_document_async."""
    return asyncio.run(
        fetch_document_async(uri, store=store, settings=settings, auth=auth, **options)
    )
