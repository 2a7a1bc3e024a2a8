"""The request orchestrator.

A :class:`Fetcher` dereferences URIs into a :class:`KnowledgeStore`: it
negotiates content, dials the transport, retries blocked cross-site
requests, dispatches bodies to format interpreters and keeps per-document
fetch state. Failures are returned as :class:`FetchFailure` values, never
raised, so batch fetches compose without cancelling each other.

Example usage:

    from docfetch import Fetcher

    async with Fetcher() as fetcher:
        result = await fetcher.fetch("https://example.org/card.ttl")
        if result.ok:
            print(fetcher.store.serialize("https://example.org/card.ttl"))
        else:
            print(result.status, result.error)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, List, Optional, Sequence, Union, overload

from rdflib import BNode, URIRef
from rdflib.term import Node

from .auth import AuthConfig
from .config import FetcherSettings, load_settings
from .document import (
    FailureReason,
    FetchFailure,
    FetchOptions,
    FetchOutcome,
    FetchResult,
    RequestDescriptor,
    StatusCode,
)
from .events import EventBus, FetchEvent
from .handlers import dispatch
from .links import parse_link_header
from .metadata import MetadataWriter
from .namespaces import IMAGE, LINK
from .negotiation import HandlerRegistry, normalized_content_type
from .retry import RetryAction, RetryController
from .state import FetchState, StateTracker
from .store import KnowledgeStore
from .transport import HttpxTransport, Transport, TransportError, TransportResponse
from .uris import doc_part, join

LOGGER = logging.getLogger(__name__)

UriLike = Union[str, Node]
FetchCallback = Callable[[bool, Optional[str], Optional[FetchOutcome]], Any]


def _is_image(content_type: str) -> bool:
    return "image/" in content_type or "application/pdf" in content_type


class Fetcher:
    """Fetches documents into a store and tracks what has been fetched.

    Attributes:
        store: Where parsed statements and provenance are written.
        settings: Timeouts, proxy and offline policy.
        transport: Network primitive; defaults to :class:`HttpxTransport`.
        registry: Format handlers, in dispatch order.
        state: Per-document fetch state owned by this fetcher.
        events: ``request``/``fail``/``done``/``refresh``/``retract`` listeners.
        app_node: Blank node denoting this fetcher session.
    """

    def __init__(
        self,
        store: Optional[KnowledgeStore] = None,
        *,
        transport: Optional[Transport] = None,
        settings: Optional[FetcherSettings] = None,
        registry: Optional[HandlerRegistry] = None,
        auth: Optional[AuthConfig] = None,
    ) -> None:
        self.store = store if store is not None else KnowledgeStore()
        self.settings = settings if settings is not None else load_settings()
        if transport is None:
            transport = HttpxTransport(
                auth,
                user_agent=self.settings.user_agent,
                timeout=self.settings.timeout,
            )
        self.transport = transport
        self.registry = registry if registry is not None else HandlerRegistry()
        self.state = StateTracker(self.settings.max_redirect_hops)
        self.events = EventBus()
        self.retry = RetryController(self.settings)
        self.app_node: BNode = self.store.bnode()
        self.metadata = MetadataWriter(self.store, self.app_node)

    async def aclose(self) -> None:
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def timeout(self) -> float:
        return self.settings.timeout

    # -- public fetch API --------------------------------------------------

    @overload
    async def fetch(
        self, uri: UriLike, options: Optional[FetchOptions] = None, **overrides: Any
    ) -> FetchOutcome: ...

    @overload
    async def fetch(
        self,
        uri: Sequence[UriLike],
        options: Optional[FetchOptions] = None,
        **overrides: Any,
    ) -> List[FetchOutcome]: ...

    async def fetch(self, uri, options=None, **overrides):
        """Fetch one URI, or a list of URIs concurrently.

        Keyword overrides (``force=True``, ``no_meta=True``, ...) are applied
        over *options*. A list input returns outcomes in input order.
        """
        if isinstance(uri, (list, tuple)):
            results = await asyncio.gather(
                *(self.fetch(member, options, **overrides) for member in uri),
                return_exceptions=True,
            )
            return [
                self._as_outcome(member, result) for member, result in zip(uri, results)
            ]

        descriptor = self._new_descriptor(str(uri), options, overrides)
        return await self._fetch_with_timeout(descriptor)

    load = fetch

    async def now_or_when_fetched(
        self,
        uri: UriLike,
        callback: Optional[FetchCallback] = None,
        options: Optional[FetchOptions] = None,
        *,
        referring_term: Optional[UriLike] = None,
    ) -> FetchOutcome:
        """Fetch *uri* if necessary, then call ``callback(ok, error, result)``."""
        options = replace(options) if options is not None else FetchOptions()
        if referring_term is not None:
            options.referring_term = str(referring_term)
        try:
            result = await self.fetch(uri, options)
        except Exception as exc:
            LOGGER.exception("Fetching %s failed", uri)
            if callback:
                callback(False, str(exc), None)
            raise
        if callback:
            callback(result.ok, None if result.ok else result.error, result)
        return result

    get = now_or_when_fetched

    async def web_operation(
        self,
        method: str,
        uri: UriLike,
        options: Optional[FetchOptions] = None,
        **overrides: Any,
    ) -> FetchOutcome:
        return await self.fetch(uri, options, method=method, **overrides)

    async def put_back(
        self, uri: UriLike, options: Optional[FetchOptions] = None, **overrides: Any
    ) -> FetchOutcome:
        """Upload what the store holds about the document *uri*."""
        content_type = (
            overrides.pop("content_type", None)
            or (options.content_type if options else None)
            or "text/turtle"
        )
        try:
            data = self.store.serialize(doc_part(str(uri)), content_type)
        except ValueError as exc:
            LOGGER.warning("Cannot put back %s: %s", uri, exc)
            return FetchFailure(
                uri=str(uri), error=str(exc), status=FailureReason.UNSUPPORTED_CONTENT_TYPE
            )
        return await self.web_operation(
            "PUT", uri, options, body=data, content_type=content_type, **overrides
        )

    async def web_copy(
        self, here: UriLike, there: UriLike, content_type: Optional[str] = None
    ) -> FetchOutcome:
        """GET *here* and PUT its body to *there*."""
        result = await self.web_operation("GET", here, force=True)
        if not result.ok:
            return result
        return await self.web_operation(
            "PUT",
            there,
            body=result.response_text or "",
            content_type=content_type or result.content_type,
        )

    async def delete(
        self, uri: UriLike, options: Optional[FetchOptions] = None, **overrides: Any
    ) -> FetchOutcome:
        """DELETE *uri*; on success forget its data and record it as gone."""
        result = await self.web_operation("DELETE", uri, options, **overrides)
        if result.ok:
            docuri = doc_part(str(uri))
            self.unload(docuri)
            self.state.mark_failed(docuri, 404, "Deleted")
            self.state.nonexistent.add(docuri)
        return result

    async def refresh(
        self, uri: UriLike, callback: Optional[FetchCallback] = None
    ) -> FetchOutcome:
        self.events.fire(FetchEvent.REFRESH, str(uri))
        return await self.now_or_when_fetched(
            uri, callback, FetchOptions(force=True, clear_previous_data=True)
        )

    async def object_refresh(self, term: UriLike) -> List[FetchOutcome]:
        """Refresh every document denoting *term*."""
        return [await self.refresh(doc_part(uri)) for uri in self.store.uris(term)]

    def retract(self, uri: UriLike) -> None:
        """Drop what *uri* said, without fetching it again."""
        self.store.remove_document(doc_part(str(uri)))
        self.state.forget(str(uri))
        self.events.fire(FetchEvent.RETRACT, str(uri))

    def unload(self, uri: UriLike) -> None:
        """Drop what *uri* said so that it can be loaded again."""
        self.store.remove_document(doc_part(str(uri)))
        self.state.forget(str(uri))

    def get_state(self, uri: UriLike) -> FetchState:
        return self.state.get_state(str(uri))

    def is_pending(self, uri: UriLike) -> bool:
        return self.state.is_pending(str(uri))

    async def look_up_thing(
        self,
        term: UriLike,
        referring_term: Optional[UriLike] = None,
        options: Optional[FetchOptions] = None,
        one_done: Optional[Callable[[bool, str], Any]] = None,
        all_done: Optional[Callable[[bool, str], Any]] = None,
    ) -> List[FetchOutcome]:
        """Fetch every document denoting *term* and mark those URIs looked up."""
        uris = self.store.uris(term)
        options = replace(options) if options is not None else FetchOptions()
        if referring_term is not None:
            options.referring_term = str(referring_term)
        self.state.looked_up.update(uris)

        outcomes = await self.fetch([doc_part(uri) for uri in uris], options)

        errors = []
        for uri, outcome in zip(uris, outcomes):
            if outcome.ok:
                if one_done:
                    one_done(True, uri)
            else:
                if one_done:
                    one_done(False, outcome.error)
                errors.append(outcome.error)
        if all_done and uris:
            all_done(not errors, "".join(f"{error}\n" for error in errors))
        return outcomes

    async def now_known_as(self, was: UriLike, now: UriLike) -> List[FetchOutcome]:
        """Two terms were found to denote the same thing.

        If only one of them was looked up, look up the other so that every
        URI of the merged thing gets dereferenced.
        """
        was, now = str(was), str(now)
        looked_up = self.state.looked_up
        if was in looked_up and now not in looked_up:
            return await self.look_up_thing(now, was)
        if now in looked_up and was not in looked_up:
            return await self.look_up_thing(was, now)
        return []

    def get_header(self, doc: UriLike, header: str) -> Optional[List[str]]:
        return self.metadata.get_header(doc_part(str(doc)), header)

    def status_log(self, req: Node) -> List[str]:
        return self.metadata.status_log(req)

    def add_status(self, req: Node, message: str) -> None:
        self.metadata.add_status(req, message)

    # -- request lifecycle -------------------------------------------------

    def _new_descriptor(
        self,
        uri: str,
        options: Optional[FetchOptions],
        overrides: Optional[dict] = None,
    ) -> RequestDescriptor:
        options = replace(options or FetchOptions(), **(overrides or {}))
        options.headers = dict(options.headers)
        base_uri = options.base_uri or uri
        descriptor = RequestDescriptor(
            resource=URIRef(uri),
            original=URIRef(base_uri),
            req=self.store.bnode(),
            options=options,
            headers={name.lower(): value for name, value in options.headers.items()},
        )
        if options.content_type:
            descriptor.headers["content-type"] = options.content_type
        return descriptor

    def _derive(self, descriptor: RequestDescriptor, uri: str, **changes: Any) -> RequestDescriptor:
        """A new attempt for *descriptor*, keeping its original URI and retry flags."""
        options = replace(descriptor.options, base_uri=str(descriptor.original), **changes)
        derived = self._new_descriptor(uri, options)
        derived.retried_without_credentials = descriptor.retried_without_credentials
        derived.proxy_used = descriptor.proxy_used
        return derived

    def _as_outcome(self, uri: UriLike, result: Any) -> FetchOutcome:
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            LOGGER.error("Fetch of %s raised", uri, exc_info=result)
            return FetchFailure(uri=str(uri), error=f"Unexpected error: {result}", status=0)
        return result

    async def _fetch_with_timeout(self, descriptor: RequestDescriptor) -> FetchOutcome:
        timeout = descriptor.options.timeout
        if timeout is None:
            timeout = self.timeout

        task = asyncio.ensure_future(self._fetch_uri(str(descriptor.resource), descriptor))
        done, _ = await asyncio.wait({task}, timeout=timeout)

        if task not in done:
            # Soft cancellation: the request keeps running, its result is dropped.
            task.add_done_callback(self._discard_late_result)
            LOGGER.warning("Request for %s timed out after %ss", descriptor.resource, timeout)
            return self.fail_fetch(descriptor, "Request timed out", FailureReason.TIMEOUT)

        try:
            return task.result()
        except Exception as exc:
            LOGGER.exception("Unexpected error fetching %s", descriptor.resource)
            return self.fail_fetch(descriptor, f"Unexpected error: {exc}", 0)

    @staticmethod
    def _discard_late_result(task: "asyncio.Future[FetchOutcome]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("Late request failed after timeout: %s", exc)
        else:
            LOGGER.debug("Discarding late result %r", task.result())

    async def _fetch_uri(self, uri: str, descriptor: RequestDescriptor) -> FetchOutcome:
        docuri = doc_part(uri)
        options = descriptor.options

        if self.retry.unsupported_protocol(docuri):
            return self.fail_fetch(
                descriptor, "Unsupported protocol", FailureReason.UNSUPPORTED_PROTOCOL
            )

        if options.force:
            descriptor.headers["cache-control"] = "no-cache"

        accept = self.registry.accept_string()
        descriptor.headers["accept"] = accept

        if options.is_read:
            if not options.force:
                record = self.state.resolve(docuri)
                if record.state is FetchState.FETCHED:
                    return self.done_fetch(descriptor)
                if record.state is FetchState.FAILED:
                    return self.fail_fetch(
                        descriptor, f"Previously failed: {record.code}", record.code
                    )
            else:
                self.state.nonexistent.discard(docuri)

        self.events.fire(FetchEvent.REQUEST, docuri)
        if options.is_read:
            self.state.mark_requested(docuri)

        requested_uri = self.retry.offline_override(docuri)
        descriptor.requested_uri = requested_uri
        descriptor.credentials = self.retry.with_credentials(requested_uri, options)
        descriptor.actual_proxy_uri = self.retry.proxy_if_necessary(requested_uri)

        if not descriptor.no_meta:
            self.metadata.save_request_metadata(docuri, descriptor)
        self.add_status(descriptor.req, f"Accept: {accept}")

        try:
            response = await self.transport.send(
                descriptor.actual_proxy_uri,
                method=options.method,
                headers=descriptor.headers,
                body=options.body,
                credentials=descriptor.credentials,
                timeout=options.timeout if options.timeout is not None else self.timeout,
            )
        except TransportError as exc:
            LOGGER.info("Transport error for %s: %s", descriptor.actual_proxy_uri, exc)
            return await self.retry_on_error(exc.status, exc.status_text, docuri, descriptor)

        try:
            return await self.handle_response(response, docuri, descriptor)
        finally:
            await response.aclose()

    async def handle_response(
        self, response: TransportResponse, docuri: str, descriptor: RequestDescriptor
    ) -> FetchOutcome:
        options = descriptor.options
        req = descriptor.req

        response_node = None
        if not descriptor.no_meta:
            response_node = self.metadata.save_response_metadata(response, descriptor)

        content_location = response.headers.get("content-location")
        if content_location:
            content_location = join(content_location, docuri)

        content_type = (
            normalized_content_type(
                str(descriptor.resource), response.headers, options.force_content_type
            )
            or ""
        )
        descriptor.content_type = content_type or None

        if response.status == 0:
            LOGGER.info("Masked error - status 0 for %s", docuri)
            return await self.retry_on_error(0, response.status_text, docuri, descriptor)

        if response.status >= 400:
            if response.status == 404:
                self.state.nonexistent.add(docuri)
            if response_node is not None:
                try:
                    await self.metadata.save_error_response(response, response_node)
                except TransportError as exc:
                    LOGGER.debug("Could not read error body of %s: %s", docuri, exc)
            return self.fail_fetch(
                descriptor,
                f"HTTP error for {descriptor.resource}: "
                f"{response.status} {response.status_text}",
                response.status,
            )

        if not response.ok:
            return self.fail_fetch(
                descriptor,
                f"Unexpected HTTP status for {descriptor.resource}: "
                f"{response.status} {response.status_text}",
                response.status,
            )

        if not descriptor.no_meta:
            self.metadata.add_type(LINK.Document, req, content_location, response.history)
            if _is_image(content_type):
                self.metadata.add_type(IMAGE, req, content_location, response.history)

        # Clear old data, but only once a 2xx says there is new data.
        if options.clear_previous_data:
            self.store.remove_document(descriptor.original)
            if descriptor.resource != descriptor.original:
                self.store.remove_document(descriptor.resource)

        if content_location:
            located = doc_part(content_location)
            if (
                not options.force
                and located != docuri
                and self.state.get_state(located) is FetchState.FETCHED
            ):
                # Already have the data from that location.
                return self.done_fetch(descriptor, response)
            if located != docuri and options.is_read:
                descriptor.content_location = located
                self.state.mark_requested(located)

        parse_link_header(self.store, response.headers.get("link"), descriptor.original, req)

        try:
            descriptor.response_text = await response.text()
        except TransportError as exc:
            return self.fail_fetch(descriptor, str(exc), exc.status)

        handler = self.registry.handler_for(content_type)
        if handler is None or options.method.upper() != "GET":
            self.add_status(req, "Fetch over. No data handled.")
            return self.done_fetch(descriptor, response)

        return dispatch(self, handler, descriptor.response_text, content_type, descriptor, response)

    async def retry_on_error(
        self,
        status: StatusCode,
        status_text: str,
        docuri: str,
        descriptor: RequestDescriptor,
    ) -> FetchOutcome:
        """Handle a transport error or masked failure: retry once, or fail."""
        decision = self.retry.decide(docuri, descriptor)
        if decision.action is RetryAction.RETRY_WITHOUT_CREDENTIALS:
            return await self.retry_no_credentials(docuri, descriptor)
        if decision.action is RetryAction.RETRY_VIA_PROXY:
            LOGGER.info("Direct request for %s failed; trying proxy %s", docuri, decision.proxy_uri)
            return await self.redirect_to(decision.proxy_uri, descriptor)
        return self.fail_fetch(descriptor, f"Request failed: {status} {status_text}", status)

    async def retry_no_credentials(
        self, docuri: str, descriptor: RequestDescriptor
    ) -> FetchOutcome:
        LOGGER.info("Retrying %s with credentials suppressed", descriptor.resource)
        descriptor.retried_without_credentials = True
        if descriptor.options.is_read:
            self.state.forget(docuri)
        self.add_status(
            descriptor.req,
            "Abort: Will retry with credentials SUPPRESSED to see if that helps",
        )
        retry = self._derive(descriptor, docuri, with_credentials=False)
        if not descriptor.no_meta:
            self.metadata.link_retry(descriptor.req, retry.req)
        return await self._fetch_uri(docuri, retry)

    async def redirect_to(self, new_uri: str, descriptor: RequestDescriptor) -> FetchOutcome:
        """Re-issue the request to *new_uri* (a proxy) under a new request node."""
        old_req = descriptor.req
        self.add_status(old_req, f"BLOCKED -> Cross-site Proxy to <{new_uri}>")
        descriptor.proxy_used = True

        retry = self._derive(descriptor, new_uri)
        if not descriptor.no_meta:
            self.metadata.link_retry(old_req, retry.req, new_uri)
            self.add_status(old_req, "redirected to new request")

        if descriptor.options.is_read:
            self.state.mark_redirected(str(descriptor.resource), new_uri)

        return await self._fetch_uri(new_uri, retry)

    # -- terminal outcomes -------------------------------------------------

    def done_fetch(
        self,
        descriptor: RequestDescriptor,
        response: Optional[TransportResponse] = None,
    ) -> FetchResult:
        """Settle a fetch as successful.

        Without a *response* the success is synthetic: the document was
        already fetched.
        """
        self.add_status(descriptor.req, "Done.")
        original = str(descriptor.original)

        if descriptor.options.is_read:
            self.state.mark_fetched(original)
            if str(descriptor.resource) != original:
                self.state.mark_fetched(str(descriptor.resource))
            if descriptor.content_location:
                self.state.mark_fetched(descriptor.content_location)

        self.events.fire(FetchEvent.DONE, original)

        if response is None:
            return FetchResult(
                uri=original, status=200, status_text="OK", cached=True, req=descriptor.req
            )
        return FetchResult(
            uri=original,
            status=response.status,
            status_text=response.status_text,
            content_type=descriptor.content_type,
            headers=dict(response.headers),
            response_text=descriptor.response_text,
            final_url=response.url or None,
            redirects=list(response.history),
            req=descriptor.req,
            metadata={
                "requested_uri": descriptor.requested_uri,
                "actual_proxy_uri": descriptor.actual_proxy_uri,
                "credentials": descriptor.credentials,
            },
        )

    def fail_fetch(
        self, descriptor: RequestDescriptor, message: str, code: StatusCode
    ) -> FetchFailure:
        """Settle a fetch as failed and record why."""
        self.add_status(descriptor.req, message)
        original = str(descriptor.original)

        if not descriptor.no_meta:
            self.metadata.record_error(original, message)

        if str(descriptor.resource) != original:
            LOGGER.info("Recording failure for %s (as %s): %s", original, descriptor.resource, code)
        else:
            LOGGER.info("Recording failure for %s: %s", original, code)

        if descriptor.options.is_read:
            self.state.mark_failed(original, code, message)
            if str(descriptor.resource) != original:
                self.state.mark_failed(str(descriptor.resource), code, message)

        self.events.fire(FetchEvent.FAIL, original, message)
        return FetchFailure(uri=original, error=message, status=code, req=descriptor.req)
