"""Data structures passed into and returned from a fetch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from rdflib import BNode, URIRef


class FailureReason:
    """Symbolic failure codes used when there is no HTTP status."""

    UNSUPPORTED_PROTOCOL = "unsupported_protocol"
    PARSE_ERROR = "parse_error"
    TIMEOUT = "timeout"
    REDIRECT_LOOP = "redirect_loop"
    UNSUPPORTED_CONTENT_TYPE = "unsupported_content_type"


StatusCode = Union[int, str]


@dataclass
class FetchOptions:
    """Per-call fetch options.

    Attributes:
        force: Load even if fetched (or failed) before; sends
            ``Cache-Control: no-cache``.
        with_credentials: Send credentials. ``None`` means "only for https".
        force_content_type: Treat the response as this type, whatever the
            server says.
        content_type: Content type of the request body (for writes).
        no_meta: Do not record request/response metadata in the store.
        no_rdfa: Skip the RDFa pass over XHTML documents.
        clear_previous_data: On a 2xx, drop what the store already holds
            from this document before parsing.
        referring_term: The resource in which the link was found.
        base_uri: URI to preserve through proxying (defaults to the URI).
        timeout: Seconds before the call resolves as timed out.
        headers: Extra request headers.
        method: HTTP method; anything but GET/HEAD is a write.
        body: Request body for writes.
    """

    force: bool = False
    with_credentials: Optional[bool] = None
    force_content_type: Optional[str] = None
    content_type: Optional[str] = None
    no_meta: bool = False
    no_rdfa: bool = False
    clear_previous_data: bool = False
    referring_term: Optional[str] = None
    base_uri: Optional[str] = None
    timeout: Optional[float] = None
    headers: Dict[str, str] = field(default_factory=dict)
    method: str = "GET"
    body: Optional[Union[str, bytes]] = None

    @property
    def is_read(self) -> bool:
        return self.method.upper() in ("GET", "HEAD")


@dataclass
class RequestDescriptor:
    """Everything known about one fetch attempt while it is in flight."""

    resource: URIRef
    original: URIRef
    req: BNode
    options: FetchOptions
    headers: Dict[str, str] = field(default_factory=dict)
    requested_uri: Optional[str] = None
    actual_proxy_uri: Optional[str] = None
    credentials: bool = False
    proxy_used: bool = False
    retried_without_credentials: bool = False
    # Filled in from the response.
    content_type: Optional[str] = None
    content_location: Optional[str] = None
    response_text: Optional[str] = None

    @property
    def no_meta(self) -> bool:
        return self.options.no_meta


@dataclass(slots=True)
class FetchResult:
    """A successful fetch (possibly served from the state cache)."""

    uri: str
    status: int
    status_text: str = ""
    ok: bool = True
    content_type: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    response_text: Optional[str] = None
    final_url: Optional[str] = None
    redirects: List[str] = field(default_factory=list)
    cached: bool = False
    req: Optional[BNode] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class FetchFailure:
    """A failed fetch. Returned, never raised."""

    uri: str
    error: str
    status: StatusCode
    ok: bool = False
    req: Optional[BNode] = None


FetchOutcome = Union[FetchResult, FetchFailure]
