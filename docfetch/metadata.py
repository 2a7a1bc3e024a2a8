"""Request and response provenance written into the knowledge store.

Each fetch attempt gets a request node (a blank node) carrying the requested
URI, a human-readable label, a creation time and an RDF collection used as
a status log. Responses get their own node with the HTTP status and one
statement per header. Retries never rewrite an earlier request node; they
create a new one and link it to the old one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from rdflib import BNode, Literal, URIRef
from rdflib.term import Node

from .document import RequestDescriptor
from .namespaces import DCTERMS, HTTP, HTTPH, LINK, RDF, RDFS, media_type_class
from .store import KnowledgeStore

LOGGER = logging.getLogger(__name__)

# Shorter error bodies are placeholders, not worth keeping.
MIN_ERROR_CONTENT_LENGTH = 10
REDIRECT_STATUSES = ("301", "302")


def _timestamp(with_millis: bool = True) -> str:
    now = datetime.now()
    if with_millis:
        return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"
    return now.strftime("%H:%M:%S")


class MetadataWriter:
    """Writes fetch provenance for one fetcher session.

    ``app_node`` denotes the session; session-level facts (request labels,
    document types) are stored with it as their provenance.
    """

    def __init__(self, store: KnowledgeStore, app_node: Optional[BNode] = None) -> None:
        self.store = store
        self.app_node = app_node if app_node is not None else store.bnode()

    def save_request_metadata(self, docuri: str, descriptor: RequestDescriptor) -> None:
        store = self.store
        req = descriptor.req
        referring_term = descriptor.options.referring_term

        if referring_term:
            store.add(URIRef(docuri), LINK.requestedBy, URIRef(str(referring_term)), self.app_node)

        if descriptor.original is not None and str(descriptor.original) != docuri:
            store.add(req, LINK.originalURI, Literal(str(descriptor.original)), self.app_node)

        store.add(
            req,
            RDFS.label,
            Literal(f"[{_timestamp(with_millis=False)}] Request for {docuri}"),
            self.app_node,
        )
        store.add(req, DCTERMS.created, Literal(datetime.now(timezone.utc)), self.app_node)
        store.add(req, LINK.requestedURI, Literal(docuri), self.app_node)
        store.add(req, LINK.status, store.collection(), self.app_node)

    def add_status(self, req: Node, message: str) -> None:
        """Append a timestamped message to the status log of *req*."""
        head = self.store.value(req, LINK.status)
        if head is None:
            LOGGER.debug("No status log for %s: %s", req, message)
            return
        entry = Literal(f"[{_timestamp()}] {message}")
        self.store.append_to_collection(head, entry, self.app_node)

    def status_log(self, req: Node) -> List[str]:
        head = self.store.value(req, LINK.status)
        if head is None:
            return []
        return [str(item) for item in self.store.collection_items(head)]

    def save_response_metadata(self, response, descriptor: RequestDescriptor) -> BNode:
        store = self.store
        response_node = store.bnode()

        store.add(descriptor.req, LINK.response, response_node, self.app_node)
        store.add(response_node, HTTP.status, Literal(response.status), response_node)
        store.add(response_node, HTTP.statusText, Literal(response.status_text), response_node)

        if not str(descriptor.resource).startswith("http"):
            return response_node

        for header, value in response.headers.items():
            header = header.lower()
            store.add(response_node, HTTPH[header], Literal(value), response_node)
            if header == "content-type":
                store.add(
                    descriptor.resource,
                    RDF.type,
                    media_type_class(value),
                    response_node,
                )
        return response_node

    async def save_error_response(self, response, response_node: BNode) -> None:
        """Keep the body of an error response, unless it is trivially short."""
        content = await response.text()
        if len(content) > MIN_ERROR_CONTENT_LENGTH:
            self.store.add(response_node, HTTP.content, Literal(content), response_node)

    def add_type(
        self,
        rdf_type: Union[str, URIRef],
        req: Node,
        content_location: Optional[str] = None,
        history: Iterable[str] = (),
    ) -> None:
        """Type every URI the request went through as *rdf_type*.

        That is the requested URI, a differing ``Content-Location``, URIs the
        transport was redirected through, and earlier requests that led here
        by an HTTP 301/302.
        """
        store = self.store
        rdf_type = URIRef(str(rdf_type))

        if content_location:
            requested = store.value(req, LINK.requestedURI)
            if requested is None or str(requested) != content_location:
                store.add(URIRef(content_location), RDF.type, rdf_type, self.app_node)

        for uri in history:
            store.add(URIRef(uri), RDF.type, rdf_type, self.app_node)

        previous: Optional[Node] = req
        seen = set()
        while previous is not None and previous not in seen:
            seen.add(previous)
            doc = store.value(previous, LINK.requestedURI)
            if doc is not None:
                store.add(URIRef(str(doc)), RDF.type, rdf_type, self.app_node)
            previous = store.subject(LINK.redirectedRequest, previous)
            if previous is None:
                break
            response = store.value(previous, LINK.response)
            if response is None:
                break
            status = store.value(response, HTTP.status)
            if status is None or str(status) not in REDIRECT_STATUSES:
                break

    def link_retry(self, old_req: Node, new_req: Node, new_uri: Optional[str] = None) -> None:
        """Link a retried request to the request it replaces."""
        if new_uri is not None:
            self.store.add(old_req, LINK.redirectedTo, URIRef(new_uri), old_req)
        self.store.add(old_req, LINK.redirectedRequest, new_req, self.app_node)

    def record_error(self, original: Union[str, URIRef], message: str) -> None:
        self.store.add(URIRef(str(original)), LINK.error, Literal(message), self.app_node)

    def get_header(self, doc: str, header: str) -> Optional[List[str]]:
        """Recorded values of *header* in the response for *doc*.

        ``None`` when no response was recorded, ``[]`` when the response
        did not carry the header.
        """
        store = self.store
        for request in store.subjects(LINK.requestedURI, Literal(str(doc))):
            response = store.value(request, LINK.response)
            if response is None:
                continue
            values = store.objects(response, HTTPH[header.lower()])
            return [str(value) for value in values]
        return None
