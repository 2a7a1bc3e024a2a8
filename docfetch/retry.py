"""Credential, proxy and offline policy for outgoing requests.

The controller only decides. Acting on a decision (re-issuing the fetch,
recording provenance) is the fetcher's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional
from urllib.parse import quote

from .config import FetcherSettings
from .document import FetchOptions, RequestDescriptor
from .uris import host_part, protocol

LOGGER = logging.getLogger(__name__)

UNSUPPORTED_PROTOCOLS = ("tel", "mailto", "urn")
# Characters encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


class RetryAction(str, Enum):
    FAIL = "fail"
    RETRY_WITHOUT_CREDENTIALS = "retry_without_credentials"
    RETRY_VIA_PROXY = "retry_via_proxy"


@dataclass(slots=True)
class RetryDecision:
    action: RetryAction
    proxy_uri: Optional[str] = None


class RetryController:
    """Decides how a request is dialed and what happens when it fails."""

    def __init__(self, settings: FetcherSettings) -> None:
        self.settings = settings

    @staticmethod
    def unsupported_protocol(uri: str) -> bool:
        return protocol(uri) in UNSUPPORTED_PROTOCOLS

    @staticmethod
    def with_credentials(requested_uri: str, options: FetchOptions) -> bool:
        """Credentials go to https by default; the option overrides."""
        if options.with_credentials is not None:
            return options.with_credentials
        return requested_uri.startswith("https:")

    def is_cross_site(self, uri: str) -> bool:
        """Whether *uri* is on another host than the configured origin."""
        origin = self.settings.origin
        if not origin:
            return False
        here, there = host_part(origin), host_part(uri)
        return bool(here and there and here != there)

    def cross_site_proxy(self, uri: str) -> Optional[str]:
        template = self.settings.cross_site_proxy_template
        if not template:
            return None
        return template.replace("{uri}", quote(uri, safe=_URI_COMPONENT_SAFE))

    def offline_override(self, uri: str) -> str:
        """Map ``http://host/...`` to a localhost mirror in offline mode."""
        if not self.settings.offline_mode:
            return uri
        if uri.startswith("http://") and not uri[7:].startswith("localhost/"):
            mirrored = "http://localhost/" + uri[7:]
            LOGGER.warning("Offline mode: actually getting <%s>", mirrored)
            return mirrored
        return uri

    def proxy_if_necessary(self, uri: str) -> str:
        """URI to dial for *uri*: a local site mapping, a proxy, or itself."""
        mapped = self._lookup_local_site(uri)
        if mapped:
            LOGGER.debug("Local site map: %s -> %s", uri, mapped)
            return mapped

        # A secure origin cannot load insecure data directly.
        origin = self.settings.origin or ""
        if origin.startswith("https:") and uri.startswith("http:"):
            proxied = self.cross_site_proxy(uri)
            if proxied:
                LOGGER.info("Mixed content: fetching %s through proxy", uri)
                return proxied
        return uri

    def _lookup_local_site(self, uri: str) -> Optional[str]:
        site_map: Mapping[str, Any] = self.settings.local_site_map
        if not site_map:
            return None
        parts = uri.split("/")[2:]
        index: Any = site_map
        while parts:
            entry = index.get(parts.pop(0)) if isinstance(index, Mapping) else None
            if not entry:
                return None
            if isinstance(entry, str):
                return entry + "/".join(parts)
            index = entry
        return None

    def decide(self, docuri: str, descriptor: RequestDescriptor) -> RetryDecision:
        """What to do after a transport error or a masked (status 0) failure.

        Each retry kind is tried at most once per request chain.
        """
        if self.is_cross_site(docuri):
            if descriptor.credentials and not descriptor.retried_without_credentials:
                return RetryDecision(RetryAction.RETRY_WITHOUT_CREDENTIALS)
            proxy_uri = self.cross_site_proxy(docuri)
            if proxy_uri and not descriptor.proxy_used:
                return RetryDecision(RetryAction.RETRY_VIA_PROXY, proxy_uri)
        return RetryDecision(RetryAction.FAIL)
