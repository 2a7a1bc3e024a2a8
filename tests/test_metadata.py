"""Tests for docfetch.metadata module."""

import re

import pytest
from rdflib import BNode, Literal, URIRef

from docfetch.document import FetchOptions, RequestDescriptor
from docfetch.metadata import MetadataWriter
from docfetch.namespaces import DCTERMS, HTTP, HTTPH, LINK, RDF, RDFS, media_type_class
from docfetch.store import KnowledgeStore
from docfetch.transport import TransportResponse

DOC = "http://example.org/card.ttl"


def _descriptor(uri: str = DOC, original: str = DOC, **options) -> RequestDescriptor:
    return RequestDescriptor(
        resource=URIRef(uri),
        original=URIRef(original),
        req=BNode(),
        options=FetchOptions(**options),
    )


@pytest.fixture
def writer() -> MetadataWriter:
    return MetadataWriter(KnowledgeStore())


class TestRequestMetadata:
    def test_request_node(self, writer):
        descriptor = _descriptor(referring_term="http://example.org/index")
        writer.save_request_metadata(DOC, descriptor)
        store = writer.store
        req = descriptor.req

        assert store.value(req, LINK.requestedURI) == Literal(DOC)
        assert re.match(r"^\[\d\d:\d\d:\d\d\] Request for ", str(store.value(req, RDFS.label)))
        assert store.value(req, DCTERMS.created) is not None
        assert store.holds(DOC, LINK.requestedBy, URIRef("http://example.org/index"))
        assert store.value(req, LINK.originalURI) is None

    def test_original_uri_when_proxied(self, writer):
        proxy = "https://proxy.example.org/?uri=x"
        descriptor = _descriptor(uri=proxy, original=DOC)
        writer.save_request_metadata(proxy, descriptor)
        assert writer.store.value(descriptor.req, LINK.originalURI) == Literal(DOC)

    def test_status_log(self, writer):
        descriptor = _descriptor()
        writer.save_request_metadata(DOC, descriptor)

        writer.add_status(descriptor.req, "first")
        writer.add_status(descriptor.req, "second")

        log = writer.status_log(descriptor.req)
        assert len(log) == 2
        assert re.match(r"^\[\d\d:\d\d:\d\d\.\d{3}\] first$", log[0])
        assert log[1].endswith("] second")

    def test_status_without_request_node_is_ignored(self, writer):
        req = BNode()
        writer.add_status(req, "nobody listens")
        assert writer.status_log(req) == []


class TestResponseMetadata:
    def test_headers_and_status(self, writer):
        descriptor = _descriptor()
        response = TransportResponse(
            200, "OK", headers={"Content-Type": "text/turtle", "ETag": '"abc"'}
        )

        node = writer.save_response_metadata(response, descriptor)

        store = writer.store
        assert store.value(descriptor.req, LINK.response) == node
        assert store.value(node, HTTP.status) == Literal(200)
        assert store.value(node, HTTP.statusText) == Literal("OK")
        assert store.value(node, HTTPH["etag"]) == Literal('"abc"')
        assert store.holds(DOC, RDF.type, media_type_class("text/turtle"))

    def test_headers_only_for_http(self, writer):
        descriptor = _descriptor(uri="file:///tmp/card.ttl", original="file:///tmp/card.ttl")
        response = TransportResponse(200, "OK", headers={"Content-Type": "text/turtle"})

        node = writer.save_response_metadata(response, descriptor)

        assert writer.store.value(node, HTTPH["content-type"]) is None

    def test_get_header(self, writer):
        descriptor = _descriptor()
        writer.save_request_metadata(DOC, descriptor)
        writer.save_response_metadata(
            TransportResponse(200, "OK", headers={"WAC-Allow": 'user="read"'}), descriptor
        )

        assert writer.get_header(DOC, "wac-allow") == ['user="read"']
        assert writer.get_header(DOC, "link") == []
        assert writer.get_header("http://example.org/nope", "link") is None

    @pytest.mark.asyncio
    async def test_error_body_kept_when_long_enough(self, writer):
        node = BNode()
        await writer.save_error_response(TransportResponse(500, body="short"), node)
        assert writer.store.value(node, HTTP.content) is None

        await writer.save_error_response(
            TransportResponse(500, body="Internal failure while rendering"), node
        )
        assert str(writer.store.value(node, HTTP.content)) == "Internal failure while rendering"


class TestAddType:
    def test_types_requested_and_located_uris(self, writer):
        descriptor = _descriptor()
        writer.save_request_metadata(DOC, descriptor)

        writer.add_type(
            LINK.Document,
            descriptor.req,
            content_location="http://example.org/card.ttl.v2",
            history=["http://example.org/old-card"],
        )

        store = writer.store
        for uri in (DOC, "http://example.org/card.ttl.v2", "http://example.org/old-card"):
            assert store.holds(uri, RDF.type, LINK.Document)

    def test_walks_back_through_redirect_requests(self, writer):
        store = writer.store
        old = _descriptor(uri="http://example.org/moved", original="http://example.org/moved")
        writer.save_request_metadata("http://example.org/moved", old)
        writer.save_response_metadata(TransportResponse(301, "Moved Permanently"), old)
        new = _descriptor()
        writer.save_request_metadata(DOC, new)
        writer.link_retry(old.req, new.req)

        writer.add_type(LINK.Document, new.req)

        assert store.holds("http://example.org/moved", RDF.type, LINK.Document)

    def test_does_not_walk_past_non_redirect(self, writer):
        store = writer.store
        old = _descriptor(uri="http://example.org/blocked", original="http://example.org/blocked")
        writer.save_request_metadata("http://example.org/blocked", old)
        new = _descriptor()
        writer.save_request_metadata(DOC, new)
        writer.link_retry(old.req, new.req, DOC)

        writer.add_type(LINK.Document, new.req)

        assert store.holds(DOC, RDF.type, LINK.Document)
        assert not store.holds("http://example.org/blocked", RDF.type, LINK.Document)
        assert store.value(old.req, LINK.redirectedTo) == URIRef(DOC)


def test_record_error(writer):
    writer.record_error(DOC, "Request timed out")
    assert writer.store.holds(DOC, LINK.error, Literal("Request timed out"))
