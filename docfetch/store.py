"""Quad store adapter over :class:`rdflib.Dataset`.

Every statement is stored in the named graph of its provenance ("why"):
parsed data lives in the graph of the document it came from, request and
response metadata in the graph of the fetch session or response node.
Removing a document is therefore removing one named graph.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterator, List, Optional, Set, Tuple, Union

from rdflib import BNode, Dataset, Graph, Literal, URIRef
from rdflib.collection import Collection
from rdflib.term import Node

from .namespaces import DC, DCTERMS, HTTP, HTTPH, LINK, OWL, RDFS

LOGGER = logging.getLogger(__name__)

Quad = Tuple[Node, Node, Node, Optional[Node]]

# Content type -> rdflib plugin name, for parsing and serializing.
RDFLIB_FORMATS = {
    "application/rdf+xml": "xml",
    "text/turtle": "turtle",
    "text/n3": "n3",
    "application/n-triples": "nt",
    "application/ld+json": "json-ld",
}


def rdflib_format(content_type: str) -> Optional[str]:
    """rdflib plugin name for a content type, ignoring parameters."""
    media_type = content_type.split(";")[0].strip().lower()
    return RDFLIB_FORMATS.get(media_type)


def as_node(value: Union[str, Node]) -> Node:
    """Coerce a plain string to a URIRef; leave rdflib terms alone."""
    if isinstance(value, Node):
        return value
    return URIRef(value)


class KnowledgeStore:
    """The triple store the fetcher writes facts and provenance into."""

    def __init__(self, dataset: Optional[Dataset] = None) -> None:
        self.dataset = dataset if dataset is not None else Dataset(default_union=True)
        namespace_manager = self.dataset.namespace_manager
        for prefix, namespace in (
            ("link", LINK),
            ("http", HTTP),
            ("httph", HTTPH),
            ("dc", DC),
            ("dcterms", DCTERMS),
        ):
            namespace_manager.bind(prefix, namespace, override=False)

    def __len__(self) -> int:
        return len(self.dataset)

    # -- term constructors -------------------------------------------------

    def sym(self, uri: Union[str, Node]) -> Node:
        return as_node(uri)

    def bnode(self) -> BNode:
        return BNode()

    def literal(self, value: Any) -> Literal:
        return Literal(value)

    # -- writes ------------------------------------------------------------

    def graph(self, why: Union[str, Node]) -> Graph:
        """Named graph holding the statements whose provenance is *why*."""
        return self.dataset.graph(as_node(why))

    def add(
        self,
        subject: Union[str, Node],
        predicate: Union[str, Node],
        obj: Any,
        why: Union[str, Node],
    ) -> None:
        if not isinstance(obj, Node):
            obj = Literal(obj)
        self.graph(why).add((as_node(subject), as_node(predicate), obj))

    def remove_document(self, why: Union[str, Node]) -> int:
        """Remove every statement whose provenance is *why*; return the count."""
        graph = self.graph(why)
        count = len(graph)
        graph.remove((None, None, None))
        if count:
            LOGGER.debug("Removed %d statement(s) with provenance %s", count, why)
        return count

    def parse(
        self,
        data: str,
        content_type: str,
        *,
        base: str,
        why: Union[str, Node],
    ) -> int:
        """Parse *data* into the graph of *why*; return the statements added.

        Parser exceptions propagate to the caller.
        """
        fmt = rdflib_format(content_type)
        if fmt is None:
            raise ValueError(f"No RDF parser for content type {content_type!r}")
        graph = self.graph(why)
        before = len(graph)
        graph.parse(data=data, format=fmt, publicID=base)
        return len(graph) - before

    # -- collections -------------------------------------------------------

    def collection(self) -> BNode:
        """Head node of a new, empty RDF collection."""
        return BNode()

    def append_to_collection(
        self, head: Node, item: Node, why: Union[str, Node]
    ) -> None:
        Collection(self.graph(why), head).append(item)

    def collection_items(self, head: Node) -> List[Node]:
        return list(Collection(self.dataset, head))

    # -- reads -------------------------------------------------------------

    def match(
        self,
        subject: Optional[Union[str, Node]] = None,
        predicate: Optional[Union[str, Node]] = None,
        obj: Optional[Any] = None,
        why: Optional[Union[str, Node]] = None,
    ) -> List[Quad]:
        """Statements matching a pattern; ``None`` matches anything."""
        s = as_node(subject) if subject is not None else None
        p = as_node(predicate) if predicate is not None else None
        if obj is not None and not isinstance(obj, Node):
            obj = Literal(obj)
        context = as_node(why) if why is not None else None
        seen: Set[Quad] = set()
        results: List[Quad] = []
        for quad in self.dataset.quads((s, p, obj, context)):
            if context is not None and quad[3] != context:
                continue
            if quad not in seen:
                seen.add(quad)
                results.append(quad)
        return results

    def value(
        self, subject: Union[str, Node], predicate: Union[str, Node]
    ) -> Optional[Node]:
        return self.dataset.value(as_node(subject), as_node(predicate))

    def subject(
        self, predicate: Union[str, Node], obj: Any
    ) -> Optional[Node]:
        if not isinstance(obj, Node):
            obj = Literal(obj)
        return self.dataset.value(predicate=as_node(predicate), object=obj)

    def objects(
        self, subject: Union[str, Node], predicate: Union[str, Node]
    ) -> List[Node]:
        return list(self.dataset.objects(as_node(subject), as_node(predicate)))

    def subjects(self, predicate: Union[str, Node], obj: Any) -> List[Node]:
        if not isinstance(obj, Node):
            obj = Literal(obj)
        return list(self.dataset.subjects(as_node(predicate), obj))

    def holds(
        self,
        subject: Union[str, Node],
        predicate: Union[str, Node],
        obj: Any,
        why: Optional[Union[str, Node]] = None,
    ) -> bool:
        return bool(self.match(subject, predicate, obj, why))

    def statements_in(self, why: Union[str, Node]) -> Iterator[Tuple[Node, Node, Node]]:
        yield from self.graph(why)

    def uris(self, term: Union[str, Node]) -> List[str]:
        """Every URI denoting *term*, following ``owl:sameAs`` both ways."""
        start = as_node(term)
        seen: Set[Node] = {start}
        order: List[Node] = [start]
        queue = deque([start])
        while queue:
            node = queue.popleft()
            aliases = list(self.dataset.objects(node, OWL.sameAs))
            aliases += list(self.dataset.subjects(OWL.sameAs, node))
            for alias in aliases:
                if alias not in seen:
                    seen.add(alias)
                    order.append(alias)
                    queue.append(alias)
        return [str(node) for node in order if isinstance(node, URIRef)]

    # -- serialization -----------------------------------------------------

    def serialize(self, doc: Union[str, Node], content_type: str = "text/turtle") -> str:
        """Serialize the statements whose provenance is *doc*."""
        fmt = rdflib_format(content_type)
        if fmt is None:
            raise ValueError(f"No RDF serializer for content type {content_type!r}")
        graph = Graph()
        for prefix, namespace in self.dataset.namespace_manager.namespaces():
            graph.bind(prefix, namespace, override=False)
        graph.bind("rdfs", RDFS, override=False)
        for triple in self.graph(doc):
            graph.add(triple)
        return graph.serialize(format=fmt)
