"""Content negotiation: the outgoing Accept header and the effective type.

The :class:`HandlerRegistry` is both tables at once. Every registered handler
contributes ``media-type;q=weight`` entries to the Accept header, and the
same handlers, in registration order, are matched against the effective
content type of a response.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlparse

from .sniffing import HANDLERS, HandlerSpec
from .uris import protocol

LOGGER = logging.getLogger(__name__)

# Always present, so arbitrary binary resources stay fetchable without being
# taken for structured data.
SEED_MEDIA_TYPES: Dict[str, Optional[float]] = {
    "image/*": 0.9,
    "*/*": 0.1,
}

# Minimal extension table, for servers that send no (or a useless) type.
CONTENT_TYPE_BY_EXT: Dict[str, str] = {
    "rdf": "application/rdf+xml",
    "owl": "application/rdf+xml",
    "n3": "text/n3",
    "ttl": "text/turtle",
    "nt": "text/n3",
    "acl": "text/n3",
    "html": "text/html",
    "xml": "text/xml",
    "jsonld": "application/ld+json",
}

OCTET_STREAM = "application/octet-stream"
XML_BY_DEFAULT_PROTOCOLS = ("file", "chrome")


class HandlerRegistry:
    """Registered format handlers and the media types they accept."""

    def __init__(self, handlers: Iterable[HandlerSpec] = HANDLERS) -> None:
        self.media_types: Dict[str, Optional[float]] = dict(SEED_MEDIA_TYPES)
        self.handlers: List[HandlerSpec] = []
        for handler in handlers:
            self.add_handler(handler)

    def add_handler(self, handler: HandlerSpec) -> None:
        self.handlers.append(handler)
        for media_type, weight in handler.media_types:
            self.register(media_type, weight)

    def register(self, media_type: str, weight: Optional[float] = None) -> None:
        """Accept *media_type*, optionally with a quality weight."""
        self.media_types[media_type] = weight

    def accept_string(self) -> str:
        parts = []
        for media_type, weight in self.media_types.items():
            if weight is None:
                parts.append(media_type)
            else:
                parts.append(f"{media_type};q={float(weight)}")
        return ", ".join(parts)

    def handler_for(self, content_type: Optional[str]) -> Optional[HandlerSpec]:
        """First handler matching *content_type*; ``None`` means "no data"."""
        if not content_type:
            return None
        for handler in self.handlers:
            if handler.matches(content_type):
                return handler
        return None


def guess_content_type(uri: str) -> Optional[str]:
    suffix = PurePosixPath(urlparse(str(uri)).path).suffix
    return CONTENT_TYPE_BY_EXT.get(suffix.lstrip(".").lower())


def normalized_content_type(
    uri: str,
    headers: Mapping[str, str],
    force_content_type: Optional[str] = None,
) -> Optional[str]:
    """Effective content type of a response for *uri*.

    Priority: a forced type; the declared type unless it is missing or
    ``application/octet-stream`` and the extension says better; ``text/xml``
    for untyped ``file:``/``chrome:`` resources.
    """
    if force_content_type:
        return force_content_type

    content_type = headers.get("content-type")

    if not content_type or OCTET_STREAM in content_type:
        guess = guess_content_type(uri)
        if guess:
            LOGGER.debug("Guessed content type %s for %s", guess, uri)
            return guess

    if not content_type and protocol(uri) in XML_BY_DEFAULT_PROTOCOLS:
        return "text/xml"

    return content_type
