"""Tests for url_store.py - history-backed query state and notifications."""

from heritage_search.application.session.url_store import InMemoryHistory, UrlStateStore
from heritage_search.models import QueryState


class TestInMemoryHistory:
    def test_push_truncates_forward_entries(self):
        history = InMemoryHistory("q=a")
        history.push("q=b")
        history.push("q=c")
        history.back()
        history.back()
        history.push("q=d")
        assert history.length == 2
        assert history.location() == "q=d"
        assert history.forward() is False

    def test_replace_keeps_length(self):
        history = InMemoryHistory("q=a")
        history.replace("q=b")
        assert history.length == 1
        assert history.location() == "q=b"

    def test_navigation_fires_pop_listeners(self):
        history = InMemoryHistory("q=a")
        history.push("q=b")
        fired = []
        history.add_pop_listener(lambda: fired.append(history.location()))
        assert history.back() is True
        assert history.back() is False
        assert history.forward() is True
        assert fired == ["q=a", "q=b"]

    def test_href_keeps_path_and_fragment(self):
        history = InMemoryHistory("q=a", path="/harvard", fragment="results")
        assert history.href() == "/harvard?q=a#results"
        assert history.href("") == "/harvard#results"


class TestRead:
    def test_initial_location_is_parsed(self, codec):
        store = UrlStateStore(codec, InMemoryHistory("q=prints&size=500"))
        state = store.read()
        assert state.term == "prints"
        assert state.size == 100

    def test_default_history(self, codec):
        assert UrlStateStore(codec).read() == QueryState()


class TestWrite:
    def test_push_and_replace(self, store, history):
        store.write(QueryState(term="prints"))
        assert history.length == 2
        store.write(QueryState(term="prints", page=2), replace=True)
        assert history.length == 2
        assert "page=2" in history.location()

    def test_write_returns_normalized_snapshot(self, store):
        snapshot = store.write(QueryState(term=" prints ", size=1))
        assert snapshot == store.read()
        assert (snapshot.term, snapshot.size) == ("prints", 5)

    def test_every_subscriber_notified_once(self, store):
        seen_a, seen_b = [], []
        store.subscribe(seen_a.append)
        store.subscribe(seen_b.append)
        store.write(QueryState(term="maps"))
        assert [s.term for s in seen_a] == ["maps"]
        assert [s.term for s in seen_b] == ["maps"]

    def test_silent_write_updates_without_notifying(self, store, history):
        seen = []
        store.subscribe(seen.append)
        store.write(QueryState(term="maps"), silent=True)
        assert seen == []
        assert store.read().term == "maps"
        assert history.location().startswith("q=maps")

    def test_listener_failure_does_not_block_others(self, store):
        seen = []

        def broken(state):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(seen.append)
        store.write(QueryState(term="maps"))
        assert len(seen) == 1

    def test_reentrant_write_is_delivered_after_current_round(self, store):
        order = []

        def redirect(state):
            order.append(("redirect", state.term))
            if state.term == "old":
                store.write(QueryState(term="new"), replace=True)

        def observer(state):
            order.append(("observer", state.term))

        store.subscribe(redirect)
        store.subscribe(observer)
        store.write(QueryState(term="old"))
        assert order == [
            ("redirect", "old"),
            ("observer", "old"),
            ("redirect", "new"),
            ("observer", "new"),
        ]
        assert store.read().term == "new"


class TestPopNavigation:
    def test_back_notifies_with_previous_state(self, store, history):
        seen = []
        store.subscribe(seen.append)
        store.write(QueryState(term="first"))
        store.write(QueryState(term="second"))
        history.back()
        assert [s.term for s in seen] == ["first", "second", "first"]
        assert store.read().term == "first"

    def test_pop_listener_attached_only_while_subscribed(self, store, history):
        assert history.pop_listener_count == 0
        unsubscribe_a = store.subscribe(lambda s: None)
        unsubscribe_b = store.subscribe(lambda s: None)
        assert history.pop_listener_count == 1
        unsubscribe_a()
        assert history.pop_listener_count == 1
        unsubscribe_b()
        assert history.pop_listener_count == 0
        assert store.subscriber_count == 0

    def test_unsubscribe_is_idempotent(self, store, history):
        keep = store.subscribe(lambda s: None)
        drop = store.subscribe(lambda s: None)
        drop()
        drop()
        assert store.subscriber_count == 1
        assert history.pop_listener_count == 1
        keep()

    def test_navigation_without_subscribers_is_not_observed(self, store, history):
        store.write(QueryState(term="first"))
        store.write(QueryState(term="second"))
        history.back()
        # No pop listener attached, so the snapshot keeps the last write
        assert store.read().term == "second"
