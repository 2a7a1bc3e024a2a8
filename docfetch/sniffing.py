"""Decide what a response body really is.

The declared content type only picks the starting handler. The body is then
sniffed: generic XML may turn out to be RDF/XML or XHTML, HTML may really be
XHTML, and plain text may be XML. :func:`classify_body` resolves all of that
up front into a single :class:`Dialect`, so interpreters never hand work to
each other.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Pattern, Tuple

from lxml import etree

from .namespaces import RDF_NS, XHTML_NS


class Dialect(str, Enum):
    RDF_XML = "rdf+xml"
    XHTML = "xhtml"
    XML = "xml"
    HTML = "html"
    TEXT = "text"
    N3 = "n3"
    JSON_LD = "json-ld"
    # Terminal outcomes of sniffing generic XML.
    UNKNOWN_XML = "unknown-xml"
    MALFORMED_XML = "malformed-xml"


@dataclass(frozen=True)
class HandlerSpec:
    """A format handler: what it matches and what it asks for."""

    name: str
    dialect: Dialect
    pattern: Pattern[str]
    # (media type, q) pairs contributed to the Accept header.
    media_types: Tuple[Tuple[str, Optional[float]], ...]

    def matches(self, content_type: str) -> bool:
        return bool(self.pattern.search(content_type))


# Dispatch priority order: the first matching handler wins.
HANDLERS: Tuple[HandlerSpec, ...] = (
    HandlerSpec(
        "RDFXMLHandler",
        Dialect.RDF_XML,
        re.compile(r"application/rdf\+xml"),
        (("application/rdf+xml", 0.9),),
    ),
    HandlerSpec(
        "XHTMLHandler",
        Dialect.XHTML,
        re.compile(r"application/xhtml"),
        (("application/xhtml+xml", None),),
    ),
    HandlerSpec(
        "XMLHandler",
        Dialect.XML,
        re.compile(r"(text|application)/(.*)xml"),
        (("text/xml", 0.5), ("application/xml", 0.5)),
    ),
    HandlerSpec(
        "HTMLHandler",
        Dialect.HTML,
        re.compile(r"text/html"),
        (("text/html", 0.9),),
    ),
    HandlerSpec(
        "TextHandler",
        Dialect.TEXT,
        re.compile(r"text/plain"),
        (("text/plain", 0.5),),
    ),
    HandlerSpec(
        "N3Handler",
        Dialect.N3,
        re.compile(r"(application|text)/(x-)?(rdf\+)?(n3|turtle)"),
        (("text/n3", 1.0), ("text/turtle", 1.0)),
    ),
    HandlerSpec(
        "JSONLDHandler",
        Dialect.JSON_LD,
        re.compile(r"application/(.*\+)?ld\+json"),
        (("application/ld+json", 0.9),),
    ),
)

XML_DECLARATION = re.compile(r"\s*<\?xml\s+version\s*=[^<>]+\?>")
XHTML_DOCTYPE = re.compile(
    r"<!DOCTYPE\s+html[^<]+-//W3C//DTD XHTML[^<]+http://www\.w3\.org/TR/xhtml[^<]+>"
)
XHTML_DEFAULT_NAMESPACE = re.compile(
    r"<html\s+[^<]*xmlns=['\"]http://www\.w3\.org/1999/xhtml[\"'][^<]*>"
)
XMLNS_PREFIX = re.compile(r"xmlns:")
TEXT_SNIFF_LENGTH = 500


@dataclass
class Classification:
    """Result of sniffing a body."""

    dialect: Dialect
    notes: List[str] = field(default_factory=list)
    dom: Optional[etree._Element] = None
    error: Optional[str] = None


def parse_xml(text: str) -> etree._Element:
    """Parse *text* as XML without touching the network.

    *text* is already decoded, so an encoding named by the XML declaration
    is ignored.

    Raises:
        etree.XMLSyntaxError: If the text is not well-formed.
    """
    parser = etree.XMLParser(encoding="utf-8", resolve_entities=False, no_network=True)
    source = text.lstrip("\ufeff \t\r\n")
    return etree.fromstring(source.encode("utf-8"), parser)


def classify_body(text: str, dialect: Dialect) -> Classification:
    """Refine the dialect picked from the content type by looking at *text*."""
    if dialect is Dialect.XML:
        return _classify_xml(text)
    if dialect is Dialect.XHTML:
        return _classify_xhtml(text, [])
    if dialect is Dialect.HTML:
        return _classify_html(text)
    if dialect is Dialect.TEXT:
        return _classify_text(text)
    return Classification(dialect)


def _classify_xml(text: str, notes: Optional[List[str]] = None) -> Classification:
    notes = list(notes or [])
    try:
        root = parse_xml(text)
    except etree.XMLSyntaxError as exc:
        return Classification(Dialect.MALFORMED_XML, notes, error=str(exc))

    if etree.QName(root).namespace == RDF_NS:
        notes.append("Has XML root element in the RDF namespace, so assume RDF/XML.")
        return Classification(Dialect.RDF_XML, notes, dom=root)

    docinfo = root.getroottree().docinfo
    if (
        docinfo.root_name == "html"
        and re.match(r"^-//W3C//DTD XHTML", docinfo.public_id or "")
        and re.search(r"http://www\.w3\.org/TR/xhtml", docinfo.system_url or "")
    ):
        notes.append("Has XHTML DOCTYPE. Switching to XHTML Handler.")
        return Classification(Dialect.XHTML, notes, dom=root)

    html = _first_html_element(root)
    if html is not None and (etree.QName(html).namespace or "").startswith(XHTML_NS):
        notes.append(
            "Has a default namespace for XHTML. Switching to XHTMLHandler."
        )
        return Classification(Dialect.XHTML, notes, dom=root)

    return Classification(Dialect.UNKNOWN_XML, notes, dom=root)


def _classify_xhtml(text: str, notes: List[str]) -> Classification:
    try:
        root = parse_xml(text)
    except etree.XMLSyntaxError as exc:
        return Classification(Dialect.MALFORMED_XML, notes, error=str(exc))
    return Classification(Dialect.XHTML, notes, dom=root)


def _classify_html(text: str) -> Classification:
    reason = None
    if XML_DECLARATION.search(text):
        reason = (
            "Has an XML declaration. We'll assume it's XHTML as the "
            "content-type was text/html."
        )
    elif XHTML_DOCTYPE.search(text):
        reason = "Has XHTML DOCTYPE. Switching to XHTMLHandler."
    elif XHTML_DEFAULT_NAMESPACE.search(text):
        reason = "Has default namespace for XHTML, so switching to XHTMLHandler."

    if reason is None:
        return Classification(Dialect.HTML)

    result = _classify_xhtml(text, [reason])
    if result.dialect is Dialect.MALFORMED_XML:
        # Looked like XHTML but is not well-formed: plain HTML after all.
        return Classification(
            Dialect.HTML,
            [reason, "Not well-formed XML, treating as HTML."],
        )
    return result


def _classify_text(text: str) -> Classification:
    if XML_DECLARATION.search(text):
        note = (
            "Has an XML declaration. We'll assume it's XML but its "
            "content-type wasn't XML."
        )
        return _classify_xml(text, [note])
    if XMLNS_PREFIX.search(text[:TEXT_SNIFF_LENGTH]):
        note = (
            "May have an XML namespace. We'll assume it's XML but its "
            "content-type wasn't XML."
        )
        return _classify_xml(text, [note])
    return Classification(Dialect.TEXT)


def _first_html_element(root: etree._Element) -> Optional[etree._Element]:
    for element in root.iter(etree.Element):
        if etree.QName(element).localname == "html":
            return element
    return None
