"""Tests for docfetch.state and docfetch.events."""

from docfetch.document import FailureReason
from docfetch.events import EventBus, FetchEvent
from docfetch.state import FetchState, StateTracker

A = "http://example.org/a"
B = "http://example.org/b"
C = "http://example.org/c"


class TestStateTracker:
    def test_unknown_uri_is_unrequested(self):
        tracker = StateTracker()
        assert tracker.get_state(A) is FetchState.UNREQUESTED
        assert A not in tracker

    def test_transitions(self):
        tracker = StateTracker()
        tracker.mark_requested(A)
        assert tracker.is_pending(A)
        tracker.mark_fetched(A)
        assert tracker.get_state(A) is FetchState.FETCHED
        assert not tracker.is_pending(A)

    def test_failure_keeps_code_and_reason(self):
        tracker = StateTracker()
        tracker.mark_failed(A, 403, "Forbidden")
        record = tracker.resolve(A)
        assert record.state is FetchState.FAILED
        assert record.code == 403
        assert record.reason == "Forbidden"

    def test_fragment_is_ignored(self):
        tracker = StateTracker()
        tracker.mark_fetched(A + "#it")
        assert tracker.get_state(A) is FetchState.FETCHED
        assert A + "#other" in tracker

    def test_redirect_is_followed(self):
        tracker = StateTracker()
        tracker.mark_redirected(A, B)
        tracker.mark_redirected(B, C)
        tracker.mark_fetched(C)
        assert tracker.get_state(A) is FetchState.FETCHED
        assert tracker.record(A).state is FetchState.REDIRECTED

    def test_redirect_to_unrequested_target(self):
        tracker = StateTracker()
        tracker.mark_redirected(A, B)
        assert tracker.get_state(A) is FetchState.UNREQUESTED

    def test_redirect_cycle_is_a_loop(self):
        tracker = StateTracker()
        tracker.mark_redirected(A, B)
        tracker.mark_redirected(B, A)
        record = tracker.resolve(A)
        assert record.state is FetchState.FAILED
        assert record.code == FailureReason.REDIRECT_LOOP

    def test_self_redirect_is_a_loop(self):
        tracker = StateTracker()
        tracker.mark_redirected(A, A + "#x")
        assert tracker.resolve(A).code == FailureReason.REDIRECT_LOOP

    def test_too_many_hops(self):
        tracker = StateTracker(max_redirect_hops=2)
        uris = [f"http://example.org/{i}" for i in range(4)]
        for here, there in zip(uris, uris[1:]):
            tracker.mark_redirected(here, there)
        tracker.mark_fetched(uris[-1])
        assert tracker.resolve(uris[0]).code == FailureReason.REDIRECT_LOOP
        assert tracker.get_state(uris[1]) is FetchState.FETCHED

    def test_forget(self):
        tracker = StateTracker()
        tracker.mark_failed(A, 500, "Server Error")
        tracker.forget(A)
        assert tracker.get_state(A) is FetchState.UNREQUESTED

    def test_snapshot(self):
        tracker = StateTracker()
        tracker.mark_requested(A)
        tracker.mark_fetched(B)
        assert tracker.snapshot() == {A: FetchState.REQUESTED, B: FetchState.FETCHED}


class TestEventBus:
    def test_listeners_called_in_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe(FetchEvent.DONE, lambda uri: calls.append(("first", uri)))
        bus.subscribe(FetchEvent.DONE, lambda uri: calls.append(("second", uri)))

        bus.fire(FetchEvent.DONE, A)

        assert calls == [("first", A), ("second", A)]

    def test_events_are_separate(self):
        bus = EventBus()
        calls = []
        bus.subscribe(FetchEvent.FAIL, lambda uri, message: calls.append(message))

        bus.fire(FetchEvent.DONE, A)
        bus.fire(FetchEvent.FAIL, A, "boom")

        assert calls == ["boom"]

    def test_unsubscribe(self):
        bus = EventBus()
        calls = []
        listener = calls.append
        bus.subscribe("request", listener)
        bus.unsubscribe(FetchEvent.REQUEST, listener)
        bus.unsubscribe(FetchEvent.REQUEST, listener)

        bus.fire(FetchEvent.REQUEST, A)

        assert calls == []

    def test_failing_listener_does_not_stop_others(self):
        bus = EventBus()
        calls = []

        def broken(uri):
            raise RuntimeError("listener bug")

        bus.subscribe(FetchEvent.RETRACT, broken)
        bus.subscribe(FetchEvent.RETRACT, calls.append)

        bus.fire(FetchEvent.RETRACT, A)

        assert calls == [A]
