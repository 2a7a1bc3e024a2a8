"""Small URI helpers built on :mod:`urllib.parse`."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urldefrag, urljoin, urlparse


def doc_part(uri: str) -> str:
    """The document URI: *uri* with any fragment stripped."""
    return urldefrag(str(uri))[0]


def protocol(uri: str) -> str:
    """Lowercased scheme of *uri*, ``""`` when there is none."""
    return urlparse(str(uri)).scheme.lower()


def host_part(uri: str) -> Optional[str]:
    """``host[:port]`` of *uri*, lowercased, or ``None``."""
    netloc = urlparse(str(uri)).netloc
    return netloc.lower() or None


def join(reference: str, base: str) -> str:
    """Resolve *reference* against *base*."""
    return urljoin(str(base), str(reference))
