"""RDFa Lite extraction over a parsed XHTML tree.

Supports the RDFa Lite attribute set (``vocab``, ``prefix``, ``about``,
``typeof``, ``property``, ``resource``) plus ``href``, ``src`` and
``content``. Datatypes, language tags, ``rel``/``rev`` chaining and list
handling of full RDFa 1.1 are not implemented.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from lxml import etree
from rdflib import BNode, Literal, URIRef
from rdflib.term import Node

from .namespaces import RDF
from .store import KnowledgeStore
from .uris import join

LOGGER = logging.getLogger(__name__)

# Subset of the RDFa initial context.
INITIAL_PREFIXES: Dict[str, str] = {
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "owl": "http://www.w3.org/2002/07/owl#",
    "xsd": "http://www.w3.org/2001/XMLSchema#",
    "dc": "http://purl.org/dc/terms/",
    "dcterms": "http://purl.org/dc/terms/",
    "foaf": "http://xmlns.com/foaf/0.1/",
    "schema": "http://schema.org/",
}

REFERENCE_ATTRIBUTES = ("resource", "href", "src")


class RDFaError(ValueError):
    """Raised when the document uses RDFa in a way that cannot be read."""


def parse_prefixes(value: str) -> Dict[str, str]:
    """Parse a ``prefix`` attribute: ``"p1: iri1 p2: iri2"``."""
    tokens = value.split()
    if len(tokens) % 2:
        raise RDFaError(f"Unbalanced prefix attribute: {value!r}")
    mappings = {}
    for name, iri in zip(tokens[::2], tokens[1::2]):
        if not name.endswith(":"):
            raise RDFaError(f"Bad prefix name {name!r} in {value!r}")
        mappings[name[:-1]] = iri
    return mappings


class _Extractor:
    def __init__(self, store: KnowledgeStore, base: str, why: Union[str, Node]) -> None:
        self.store = store
        self.base = base
        self.why = why
        self.count = 0

    def resolve(self, reference: str) -> Node:
        if reference.startswith("_:"):
            return BNode(reference[2:])
        return URIRef(join(reference, self.base))

    def expand(self, term: str, vocab: Optional[str], prefixes: Dict[str, str]) -> Optional[URIRef]:
        prefix, colon, local = term.partition(":")
        if colon and prefix in prefixes:
            return URIRef(prefixes[prefix] + local)
        if colon:
            return URIRef(term)
        if vocab:
            return URIRef(vocab + term)
        LOGGER.debug("Dropping term %r: no vocab in scope", term)
        return None

    def expand_all(self, value: str, vocab: Optional[str], prefixes: Dict[str, str]) -> List[URIRef]:
        terms = (self.expand(term, vocab, prefixes) for term in value.split())
        return [term for term in terms if term is not None]

    def emit(self, subject: Node, predicate: Node, obj: Node) -> None:
        self.store.add(subject, predicate, obj, self.why)
        self.count += 1

    def walk(
        self,
        element: etree._Element,
        subject: Node,
        vocab: Optional[str],
        prefixes: Dict[str, str],
    ) -> None:
        attrs = element.attrib

        if "vocab" in attrs:
            vocab = attrs["vocab"] or None
        if "prefix" in attrs:
            prefixes = {**prefixes, **parse_prefixes(attrs["prefix"])}

        about = attrs.get("about")
        typeof = attrs.get("typeof")
        properties = attrs.get("property")
        reference = next(
            (attrs[name] for name in REFERENCE_ATTRIBUTES if name in attrs), None
        )

        if about is not None:
            subject = self.resolve(about)

        child_subject = subject
        if typeof is not None:
            if properties is not None or about is None:
                typed = self.resolve(reference) if reference is not None else BNode()
            else:
                typed = subject
            for rdf_type in self.expand_all(typeof, vocab, prefixes):
                self.emit(typed, RDF.type, rdf_type)
            child_subject = typed
            if properties is not None:
                for predicate in self.expand_all(properties, vocab, prefixes):
                    self.emit(subject, predicate, typed)
        elif properties is not None:
            if reference is not None:
                obj: Node = self.resolve(reference)
            elif "content" in attrs:
                obj = Literal(attrs["content"])
            else:
                obj = Literal("".join(element.itertext()))
            for predicate in self.expand_all(properties, vocab, prefixes):
                self.emit(subject, predicate, obj)

        for child in element:
            if isinstance(child.tag, str):
                self.walk(child, child_subject, vocab, prefixes)


def parse_rdfa(
    root: etree._Element,
    store: KnowledgeStore,
    base: str,
    why: Optional[Union[str, Node]] = None,
) -> int:
    """Extract RDFa statements from *root* into *store*; return the count.

    Raises:
        RDFaError: On a malformed ``prefix`` attribute.
    """
    extractor = _Extractor(store, base, why if why is not None else base)
    extractor.walk(root, URIRef(base), None, dict(INITIAL_PREFIXES))
    LOGGER.debug("RDFa pass over %s found %d statement(s)", base, extractor.count)
    return extractor.count
