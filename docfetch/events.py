"""Lifecycle notifications fired by the fetcher."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List

LOGGER = logging.getLogger(__name__)

Listener = Callable[..., Any]


class FetchEvent(str, Enum):
    REQUEST = "request"
    FAIL = "fail"
    DONE = "done"
    REFRESH = "refresh"
    RETRACT = "retract"


class EventBus:
    """Observer lists keyed by event kind.

    Listeners are called synchronously, in subscription order. A listener
    that raises is logged and skipped; it never affects the fetch.
    """

    def __init__(self) -> None:
        self._listeners: Dict[FetchEvent, List[Listener]] = {
            kind: [] for kind in FetchEvent
        }

    def subscribe(self, kind: FetchEvent, listener: Listener) -> None:
        self._listeners[FetchEvent(kind)].append(listener)

    def unsubscribe(self, kind: FetchEvent, listener: Listener) -> None:
        try:
            self._listeners[FetchEvent(kind)].remove(listener)
        except ValueError:
            pass

    def fire(self, kind: FetchEvent, *args: Any) -> None:
        for listener in list(self._listeners[FetchEvent(kind)]):
            try:
                listener(*args)
            except Exception:
                LOGGER.exception("%s listener %r failed", kind.value, listener)
