"""Format interpreters and the dialect dispatch table.

:func:`dispatch` classifies a body once (see :mod:`docfetch.sniffing`) and
calls the single interpreter for the resulting dialect. Every interpreter
settles the fetch through ``fetcher.done_fetch`` or ``fetcher.fail_fetch``
and returns what that call returns. Parser exceptions never escape an
interpreter; they become ``parse_error`` failures.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterator

from lxml import etree
from rdflib import Literal

from .document import FailureReason, FetchOutcome, RequestDescriptor
from .links import link_data
from .namespaces import DC, LINK, RDF
from .rdfa import parse_rdfa
from .sniffing import Classification, Dialect, HandlerSpec, classify_body
from .store import rdflib_format

if TYPE_CHECKING:
    from .fetcher import Fetcher
    from .transport import TransportResponse

LOGGER = logging.getLogger(__name__)

HTML_TITLE = re.compile(r"<title>([\s\S]+?)</title>", re.IGNORECASE | re.MULTILINE)
UNKNOWN_XML_PREVIEW = 80


@dataclass
class Body:
    """A response body on its way through dispatch."""

    text: str
    content_type: str
    descriptor: RequestDescriptor
    response: "TransportResponse"
    classification: Classification


Interpreter = Callable[["Fetcher", Body], FetchOutcome]


def _elements(root: etree._Element, localname: str) -> Iterator[etree._Element]:
    for element in root.iter(etree.Element):
        if etree.QName(element).localname == localname:
            yield element


def _parse_failure(fetcher: "Fetcher", body: Body, kind: str, exc: Exception) -> FetchOutcome:
    LOGGER.info("Could not parse %s as %s: %s", body.descriptor.resource, kind, exc)
    message = f"Error trying to parse {body.descriptor.resource} as {kind}:\n{exc}"
    return fetcher.fail_fetch(body.descriptor, message, FailureReason.PARSE_ERROR)


def _mark_rdf_document(fetcher: "Fetcher", body: Body) -> None:
    if not body.descriptor.no_meta:
        fetcher.store.add(
            body.descriptor.original, RDF.type, LINK.RDFDocument, fetcher.app_node
        )


def interpret_rdf_xml(fetcher: "Fetcher", body: Body) -> FetchOutcome:
    descriptor = body.descriptor
    try:
        fetcher.store.parse(
            body.text.lstrip("\ufeff \t\r\n"),
            "application/rdf+xml",
            base=str(descriptor.original),
            why=descriptor.original,
        )
    except Exception as exc:
        return fetcher.fail_fetch(
            descriptor,
            f"Syntax error parsing RDF/XML! {exc}",
            FailureReason.PARSE_ERROR,
        )
    _mark_rdf_document(fetcher, body)
    return fetcher.done_fetch(descriptor, body.response)


def interpret_n3(fetcher: "Fetcher", body: Body) -> FetchOutcome:
    descriptor = body.descriptor
    content_type = "text/turtle" if "turtle" in body.content_type else "text/n3"
    try:
        added = fetcher.store.parse(
            body.text,
            content_type,
            base=str(descriptor.original),
            why=descriptor.original,
        )
    except Exception as exc:
        return _parse_failure(fetcher, body, "Notation3", exc)
    lines = body.text.count("\n") + 1
    fetcher.add_status(descriptor.req, f"N3 parsed: {added} triples in {lines} lines.")
    _mark_rdf_document(fetcher, body)
    return fetcher.done_fetch(descriptor, body.response)


def interpret_json_ld(fetcher: "Fetcher", body: Body) -> FetchOutcome:
    descriptor = body.descriptor
    try:
        added = fetcher.store.parse(
            body.text,
            "application/ld+json",
            base=str(descriptor.original),
            why=descriptor.original,
        )
    except Exception as exc:
        return _parse_failure(fetcher, body, "JSON-LD", exc)
    fetcher.add_status(descriptor.req, f"JSON-LD parsed: {added} triples.")
    _mark_rdf_document(fetcher, body)
    return fetcher.done_fetch(descriptor, body.response)


def interpret_xhtml(fetcher: "Fetcher", body: Body) -> FetchOutcome:
    descriptor = body.descriptor
    store = fetcher.store
    dom = body.classification.dom
    original = descriptor.original

    title = next(_elements(dom, "title"), None)
    if title is not None:
        store.add(original, DC.title, Literal("".join(title.itertext())), original)

    for link in reversed(list(_elements(dom, "link"))):
        relation = link.get("rel")
        reverse = False
        if not relation:
            relation = link.get("rev")
            reverse = True
        if relation:
            link_data(store, original, relation, link.get("href"), original, reverse)

    # Data islands
    for script in _elements(dom, "script"):
        island_type = script.get("type") or ""
        if rdflib_format(island_type) is None:
            continue
        try:
            store.parse(
                "".join(script.itertext()),
                island_type,
                base=str(original),
                why=original,
            )
        except Exception as exc:
            return _parse_failure(fetcher, body, f"{island_type} data island", exc)

    if not descriptor.no_meta:
        store.add(original, RDF.type, LINK.WebPage, fetcher.app_node)

    if not descriptor.options.no_rdfa and fetcher.settings.enable_rdfa:
        try:
            parse_rdfa(dom, store, str(original), why=original)
        except Exception as exc:
            return _parse_failure(fetcher, body, "RDFa", exc)

    return fetcher.done_fetch(descriptor, body.response)


def interpret_html(fetcher: "Fetcher", body: Body) -> FetchOutcome:
    descriptor = body.descriptor
    store = fetcher.store
    original = descriptor.original
    match = HTML_TITLE.search(body.text)
    if match:
        store.add(original, DC.title, Literal(match.group(1)), original)
    store.add(original, RDF.type, LINK.WebPage, fetcher.app_node)
    fetcher.add_status(descriptor.req, "non-XML HTML document, not parsed for data.")
    return fetcher.done_fetch(descriptor, body.response)


def interpret_text(fetcher: "Fetcher", body: Body) -> FetchOutcome:
    fetcher.add_status(body.descriptor.req, "Plain text document, no known RDF semantics.")
    return fetcher.done_fetch(body.descriptor, body.response)


def interpret_unknown_xml(fetcher: "Fetcher", body: Body) -> FetchOutcome:
    return fetcher.fail_fetch(
        body.descriptor,
        "Unsupported dialect of XML: not RDF or XHTML namespace, etc.\n"
        + body.text[:UNKNOWN_XML_PREVIEW],
        FailureReason.PARSE_ERROR,
    )


def interpret_malformed_xml(fetcher: "Fetcher", body: Body) -> FetchOutcome:
    return fetcher.fail_fetch(
        body.descriptor,
        f"Badly formed XML in {body.descriptor.resource}: {body.classification.error}",
        FailureReason.PARSE_ERROR,
    )


INTERPRETERS: Dict[Dialect, Interpreter] = {
    Dialect.RDF_XML: interpret_rdf_xml,
    Dialect.XHTML: interpret_xhtml,
    Dialect.HTML: interpret_html,
    Dialect.TEXT: interpret_text,
    Dialect.N3: interpret_n3,
    Dialect.JSON_LD: interpret_json_ld,
    Dialect.UNKNOWN_XML: interpret_unknown_xml,
    Dialect.MALFORMED_XML: interpret_malformed_xml,
}


def dispatch(
    fetcher: "Fetcher",
    handler: HandlerSpec,
    text: str,
    content_type: str,
    descriptor: RequestDescriptor,
    response: "TransportResponse",
) -> FetchOutcome:
    """Classify *text* starting from *handler* and run the matching interpreter."""
    classification = classify_body(text, handler.dialect)
    for note in classification.notes:
        fetcher.add_status(descriptor.req, note)
    if classification.dialect is not handler.dialect:
        LOGGER.debug(
            "%s: %s body sniffed as %s",
            descriptor.resource,
            handler.name,
            classification.dialect.value,
        )
    interpreter = INTERPRETERS[classification.dialect]
    body = Body(text, content_type, descriptor, response, classification)
    return interpreter(fetcher, body)
