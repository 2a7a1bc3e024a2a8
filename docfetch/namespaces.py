"""RDF vocabularies used when recording fetch provenance."""

from __future__ import annotations

from rdflib import Namespace, URIRef
from rdflib.namespace import DC, DCTERMS, OWL, RDF, RDFS

LINK = Namespace("http://www.w3.org/2007/ont/link#")
HTTP = Namespace("http://www.w3.org/2007/ont/http#")
# One predicate per response header, named by the lowercased header.
HTTPH = Namespace("http://www.w3.org/2007/ont/httph#")
IANA_LINK_RELATIONS = "http://www.iana.org/assignments/link-relations/"
MEDIA_TYPES = "http://www.w3.org/ns/iana/media-types/"
# DCTERMS is a closed namespace in rdflib and lacks this class.
IMAGE = URIRef(f"{DCTERMS}Image")

RDF_NS = str(RDF)
XHTML_NS = "http://www.w3.org/1999/xhtml"

__all__ = [
    "DC",
    "DCTERMS",
    "HTTP",
    "HTTPH",
    "IANA_LINK_RELATIONS",
    "IMAGE",
    "LINK",
    "MEDIA_TYPES",
    "OWL",
    "RDF",
    "RDFS",
    "RDF_NS",
    "XHTML_NS",
    "media_type_class",
]


def media_type_class(content_type: str) -> URIRef:
    """Class URI for documents of a media type (parameters dropped)."""
    media_type = content_type.split(";")[0].strip()
    return URIRef(f"{MEDIA_TYPES}{media_type}#Resource")
