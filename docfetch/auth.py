"""Credentials sent by the HTTP transport when a request carries credentials.

    from docfetch import AuthConfig, Fetcher

    pod = AuthConfig(
        cookies=[{"name": "sid", "value": "s3cr3t", "domain": ".pod.example.org"}],
        headers={"Authorization": "Bearer xyz"},
    )
    async with Fetcher(auth=pod) as fetcher:
        await fetcher.fetch("https://pod.example.org/private/card.ttl")

Requests dialed without credentials (plain ``http:`` by default, or a retry
after a blocked cross-site request) never carry any of this.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

LOGGER = logging.getLogger(__name__)


@dataclass
class AuthConfig:
    """Cookies and headers attached to credentialed requests.

    Attributes:
        cookies: List of cookie dicts with 'name', 'value' and optionally
            'domain' and 'path' keys.
        headers: Dict of custom HTTP headers (e.g. Authorization).
    """

    cookies: Optional[List[Dict[str, Any]]] = None
    headers: Optional[Dict[str, str]] = None

    @property
    def is_empty(self) -> bool:
        """No cookies and no headers."""
        return not self.cookies and not self.headers

    def cookie_header(self, url: str) -> Optional[str]:
        """``Cookie`` header value for *url*, or None if no cookie applies."""
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        path = parsed.path or "/"
        pairs = []
        for cookie in self.cookies or []:
            if "name" not in cookie or "value" not in cookie:
                LOGGER.warning("Skipping cookie without name/value: %r", cookie)
                continue
            domain = str(cookie.get("domain") or "").lstrip(".").lower()
            if domain and host != domain and not host.endswith("." + domain):
                continue
            if not path.startswith(cookie.get("path") or "/"):
                continue
            pairs.append(f"{cookie['name']}={cookie['value']}")
        return "; ".join(pairs) or None


def _load_json(path: Path, what: str) -> Optional[Any]:
    if not path.is_file():
        LOGGER.warning("%s file not found: %s", what, path)
        return None
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def load_auth_from_env() -> Optional[AuthConfig]:
    """Credentials named by ``DOCFETCH_AUTH_COOKIES_FILE`` (a JSON list of
    cookie objects) and ``DOCFETCH_AUTH_HEADERS_FILE`` (a JSON object).

    Returns None when neither variable is set. A missing file is logged and
    contributes nothing.
    """
    cookies_file = os.environ.get("DOCFETCH_AUTH_COOKIES_FILE")
    headers_file = os.environ.get("DOCFETCH_AUTH_HEADERS_FILE")

    if not any([cookies_file, headers_file]):
        return None

    cookies = None
    if cookies_file:
        cookies = _load_json(Path(cookies_file).expanduser(), "Cookies")
        if cookies is not None:
            LOGGER.info("Loaded %d cookie(s) from %s", len(cookies), cookies_file)

    headers = None
    if headers_file:
        headers = _load_json(Path(headers_file).expanduser(), "Headers")
        if headers is not None:
            LOGGER.info("Loaded %d header(s) from %s", len(headers), headers_file)

    return AuthConfig(cookies=cookies, headers=headers)


def load_auth_from_file(path: str) -> AuthConfig:
    """Credentials from a JSON object with optional ``cookies`` and
    ``headers`` keys, as written for ``--auth-file``.

    Raises FileNotFoundError for a missing file and JSONDecodeError for
    malformed JSON.
    """
    auth_path = Path(path).expanduser()
    if not auth_path.is_file():
        raise FileNotFoundError(f"No such credentials file: {auth_path}")
    data = json.loads(auth_path.read_text(encoding="utf-8"))

    return AuthConfig(cookies=data.get("cookies"), headers=data.get("headers"))
