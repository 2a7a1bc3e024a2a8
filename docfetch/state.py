"""Per-document fetch state.

The tracker is owned by a :class:`~docfetch.fetcher.Fetcher`; it is the
single source of truth for "has this document been fetched, and with what
outcome". States are written only when a request starts or settles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Set

from .document import FailureReason, StatusCode
from .uris import doc_part

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECT_HOPS = 10


class FetchState(str, Enum):
    UNREQUESTED = "unrequested"
    REQUESTED = "requested"
    FETCHED = "fetched"
    FAILED = "failed"
    REDIRECTED = "redirected"


@dataclass(slots=True)
class StateRecord:
    """Raw tracker entry for one document URI."""

    state: FetchState
    code: Optional[StatusCode] = None
    reason: Optional[str] = None
    redirected_to: Optional[str] = None


_UNREQUESTED = StateRecord(FetchState.UNREQUESTED)


class StateTracker:
    """Maps document URIs to their fetch state."""

    def __init__(self, max_redirect_hops: int = DEFAULT_MAX_REDIRECT_HOPS) -> None:
        self.max_redirect_hops = max_redirect_hops
        self._records: Dict[str, StateRecord] = {}
        # URIs confirmed absent (HTTP 404 or deleted).
        self.nonexistent: Set[str] = set()
        # URIs whose denoting identifiers have all been dereferenced.
        self.looked_up: Set[str] = set()

    def __contains__(self, uri: str) -> bool:
        return doc_part(uri) in self._records

    def record(self, uri: str) -> StateRecord:
        return self._records.get(doc_part(uri), _UNREQUESTED)

    def get_state(self, uri: str) -> FetchState:
        """Symbolic state of *uri*, resolving redirects to a terminal state."""
        return self.resolve(uri).state

    def resolve(self, uri: str) -> StateRecord:
        """Follow redirect entries until a non-redirect record is found.

        A chain that revisits a URI or exceeds ``max_redirect_hops`` resolves
        to a failure with code ``redirect_loop``.
        """
        current = doc_part(uri)
        visited = {current}
        record = self.record(current)
        hops = 0
        while record.state is FetchState.REDIRECTED:
            target = doc_part(record.redirected_to or "")
            hops += 1
            if not target or target in visited or hops > self.max_redirect_hops:
                LOGGER.warning(
                    "Redirect chain from %s does not terminate (%d hop(s))",
                    uri,
                    hops,
                )
                return StateRecord(
                    FetchState.FAILED,
                    code=FailureReason.REDIRECT_LOOP,
                    reason=f"Redirect loop at {target or current}",
                )
            visited.add(target)
            record = self.record(target)
        return record

    def is_pending(self, uri: str) -> bool:
        return self.record(uri).state is FetchState.REQUESTED

    def mark_requested(self, uri: str) -> None:
        self._records[doc_part(uri)] = StateRecord(FetchState.REQUESTED)

    def mark_fetched(self, uri: str) -> None:
        self._records[doc_part(uri)] = StateRecord(FetchState.FETCHED)

    def mark_failed(self, uri: str, code: StatusCode, reason: str) -> None:
        self._records[doc_part(uri)] = StateRecord(
            FetchState.FAILED, code=code, reason=reason
        )

    def mark_redirected(self, uri: str, target: str) -> None:
        self._records[doc_part(uri)] = StateRecord(
            FetchState.REDIRECTED, redirected_to=doc_part(target)
        )

    def forget(self, uri: str) -> None:
        """Clear the tracked state so the document can be fetched again."""
        self._records.pop(doc_part(uri), None)

    def snapshot(self) -> Dict[str, FetchState]:
        return {uri: record.state for uri, record in self._records.items()}
