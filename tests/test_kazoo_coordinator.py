from unittest.mock import MagicMock

import pytest
from kazoo.exceptions import ConnectionLoss, NodeExistsError, NoNodeError, SessionExpiredError
from kazoo.protocol.states import EventType, KeeperState, WatchedEvent

import zk.kazoo_coordinator as kazoo_coordinator
from zk.coordinator import Outcome, SessionState, WatchKind
from zk.kazoo_coordinator import KazooCoordinator


class CompletedResult:
    """Minimal stand-in for a completed kazoo ``IAsyncResult``."""

    def __init__(self, value=None, exception=None):
        self.value = value
        self.exception = exception

    def get_nowait(self):
        if self.exception is not None:
            raise self.exception
        return self.value

    def rawlink(self, callback):
        callback(self)


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


def collect(results):
    return results.append


class TestCreate:
    """Ephemeral create through ``create_async``."""

    def test_success(self, client):
        client.create_async.return_value = CompletedResult("/leader")
        results = []

        KazooCoordinator(client).create("/leader", b"me", ["acl"], collect(results))

        client.create_async.assert_called_once_with("/leader", b"me", acl=["acl"], ephemeral=True)
        assert results[0].outcome is Outcome.OK

    def test_node_exists(self, client):
        client.create_async.return_value = CompletedResult(exception=NodeExistsError())
        results = []

        KazooCoordinator(client).create("/leader", b"me", None, collect(results))

        assert results[0].outcome is Outcome.NODE_EXISTS

    @pytest.mark.parametrize("error", [ConnectionLoss(), SessionExpiredError()])
    def test_other_errors(self, client, error):
        client.create_async.return_value = CompletedResult(exception=error)
        results = []

        KazooCoordinator(client, error_delay=0).create("/leader", b"me", None, collect(results))

        assert results[0].outcome is Outcome.ERROR
        assert results[0].error is error


class TestRead:
    """Reads through ``get_async``."""

    def test_success(self, client):
        stat = object()
        client.get_async.return_value = CompletedResult((b"Candidate2", stat))
        results = []

        KazooCoordinator(client).read("/leader", collect(results))

        client.get_async.assert_called_once_with("/leader")
        assert results[0].outcome is Outcome.OK
        assert results[0].data == b"Candidate2"
        assert results[0].stat is stat

    def test_missing(self, client):
        client.get_async.return_value = CompletedResult(exception=NoNodeError())
        results = []

        KazooCoordinator(client).read("/leader", collect(results))

        assert results[0].outcome is Outcome.NO_NODE


class TestExistsWithWatch:
    """Existence checks and watch translation."""

    def test_existing_node(self, client):
        stat = object()
        client.exists_async.return_value = CompletedResult(stat)
        results = []

        KazooCoordinator(client).exists_with_watch("/leader", lambda kind: None, collect(results))

        assert results[0].outcome is Outcome.OK
        assert results[0].stat is stat

    def test_missing_node(self, client):
        client.exists_async.return_value = CompletedResult(None)
        results = []

        KazooCoordinator(client).exists_with_watch("/leader", lambda kind: None, collect(results))

        assert results[0].outcome is Outcome.NO_NODE

    def test_error(self, client):
        client.exists_async.return_value = CompletedResult(exception=ConnectionLoss())
        results = []

        KazooCoordinator(client, error_delay=0).exists_with_watch("/leader", lambda kind: None, collect(results))

        assert results[0].outcome is Outcome.ERROR

    @pytest.mark.parametrize(
        "event_type, kind",
        [
            (EventType.DELETED, WatchKind.DELETED),
            (EventType.CREATED, WatchKind.CREATED),
            (EventType.CHANGED, WatchKind.CHANGED),
            (EventType.CHILD, WatchKind.OTHER),
            (EventType.NONE, WatchKind.OTHER),
        ],
    )
    def test_watch_events_are_translated(self, client, event_type, kind):
        client.exists_async.return_value = CompletedResult(object())
        changes = []

        KazooCoordinator(client).exists_with_watch("/leader", changes.append, lambda r: None)
        watcher = client.exists_async.call_args.kwargs["watch"]
        watcher(WatchedEvent(event_type, KeeperState.CONNECTED, "/leader"))

        assert changes == [kind]


class TestErrorDelay:
    """ERROR results are held back so an expired session does not spin the chain."""

    class FakeTimer:
        created = []

        def __init__(self, interval, function, args):
            self.interval = interval
            self.function = function
            self.args = args
            self.daemon = False
            self.started = False
            self.created.append(self)

        def start(self):
            self.started = True

        def fire(self):
            self.function(*self.args)

    @pytest.fixture
    def timers(self, monkeypatch):
        self.FakeTimer.created = []
        monkeypatch.setattr(kazoo_coordinator.threading, "Timer", self.FakeTimer)
        return self.FakeTimer.created

    def test_error_is_delivered_after_delay(self, client, timers):
        client.get_async.return_value = CompletedResult(exception=SessionExpiredError())
        results = []

        KazooCoordinator(client, error_delay=0.5).read("/leader", collect(results))

        assert results == []
        assert len(timers) == 1
        assert timers[0].interval == 0.5
        assert timers[0].daemon and timers[0].started

        timers[0].fire()

        assert results[0].outcome is Outcome.ERROR

    def test_definite_outcomes_are_not_delayed(self, client, timers):
        client.create_async.return_value = CompletedResult(exception=NodeExistsError())
        results = []

        KazooCoordinator(client, error_delay=0.5).create("/leader", b"me", None, collect(results))

        assert timers == []
        assert results[0].outcome is Outcome.NODE_EXISTS


class TestSessionState:
    @pytest.mark.parametrize(
        "keeper_state, expected",
        [
            (KeeperState.CONNECTED, SessionState.HEALTHY),
            (KeeperState.CONNECTED_RO, SessionState.HEALTHY),
            (KeeperState.AUTH_FAILED, SessionState.AUTH_FAILED),
            (KeeperState.CLOSED, SessionState.CLOSED),
            (KeeperState.CONNECTING, SessionState.OTHER),
            (KeeperState.EXPIRED_SESSION, SessionState.OTHER),
        ],
    )
    def test_mapping(self, client, keeper_state, expected):
        client.client_state = keeper_state
        assert KazooCoordinator(client).session_state() is expected
