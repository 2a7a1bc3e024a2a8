"""Link-relation facts from ``<link>`` elements and HTTP ``Link`` headers."""

from __future__ import annotations

import logging
import re
from typing import Iterator, Optional, Tuple, Union
from urllib.parse import quote

from rdflib import URIRef
from rdflib.term import Node

from .namespaces import IANA_LINK_RELATIONS, RDF, RDFS
from .store import KnowledgeStore
from .uris import join

LOGGER = logging.getLogger(__name__)

SEE_ALSO_RELATIONS = ("alternate", "seeAlso", "meta", "describedby")

_TOKEN = r"[^\(\)<>@,;:\"/\[\]\?={} \t]+"
_PARAM = rf"{_TOKEN}=(?:{_TOKEN}|\"[^\"]*\")"
LINK_VALUE = re.compile(rf"<[^>]*>\s*(?:\s*;\s*{_PARAM})*(?:,|$)")
LINK_PARAM = re.compile(_PARAM)


def relation_predicate(rel: str) -> URIRef:
    if rel == "type":
        return RDF.type
    if rel in SEE_ALSO_RELATIONS:
        return RDFS.seeAlso
    return URIRef(IANA_LINK_RELATIONS + quote(rel, safe=""))


def link_data(
    store: KnowledgeStore,
    original: Union[str, URIRef],
    rel: str,
    href: Optional[str],
    why: Union[str, Node],
    reverse: bool = False,
) -> None:
    """Record that *original* is related to *href* by *rel*.

    ``rev`` links (``reverse=True``) point the other way. A see-also style
    link back to the document itself says nothing and is dropped.
    """
    if not href:
        return
    original = URIRef(str(original))
    target = URIRef(join(href, original))
    if rel in SEE_ALSO_RELATIONS and target == original:
        return
    predicate = relation_predicate(rel)
    if reverse:
        store.add(target, predicate, original, why)
    else:
        store.add(original, predicate, target, why)


def iter_link_header(header: str) -> Iterator[Tuple[str, str]]:
    """Yield ``(href, rel)`` pairs from a ``Link`` header value.

    Every parameter value is taken as a relation, as in ``rel="next"``.
    """
    for match in LINK_VALUE.finditer(header):
        href, _, params = match.group(0).partition(">")
        href = href[1:]
        for param in LINK_PARAM.findall(params):
            _, _, value = param.partition("=")
            yield href, value.replace('"', "").replace("'", "")


def parse_link_header(
    store: KnowledgeStore,
    header: Optional[str],
    original: Union[str, URIRef],
    why: Union[str, Node],
) -> int:
    """Record link-relation facts for every link in *header*."""
    if not header:
        return 0
    count = 0
    for href, rel in iter_link_header(header):
        link_data(store, original, rel, href, why)
        count += 1
    LOGGER.debug("Parsed %d link(s) from Link header of %s", count, original)
    return count
