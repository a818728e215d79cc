import pytest

from election.election import EventKind
from election.errors import InvalidStateError, NotConfiguredError
from election.reader import NodeReader, ReaderListener
from zk.coordinator import SessionState, WatchKind

PATH = "/config/leader"


class Capture(ReaderListener):
    def __init__(self):
        self.reads = []
        self.gave_up = 0

    def on_read(self, reader, data, stat):
        self.reads.append(data)

    def on_gave_up(self, reader):
        self.gave_up += 1


@pytest.fixture
def capture() -> Capture:
    return Capture()


class TestNodeReader:
    """NodeReader read / wait-for-creation behaviour."""

    def test_reads_existing_node(self, ensemble, coordinator, capture):
        ensemble.put(PATH, b"Candidate1")
        reader = NodeReader(coordinator, PATH, capture).start()

        ensemble.pump()

        assert capture.reads == [b"Candidate1"]
        assert reader.done
        assert coordinator.ops() == ["read"]

    def test_waits_for_creation(self, ensemble, coordinator, capture):
        reader = NodeReader(coordinator, PATH, capture).start()
        ensemble.pump()
        assert capture.reads == []
        assert coordinator.ops() == ["read", "exists"]
        assert not reader.done

        ensemble.put(PATH, b"late")
        ensemble.pump()

        assert capture.reads == [b"late"]
        assert coordinator.ops() == ["read", "exists", "read"]

    def test_created_between_read_and_track(self, ensemble, coordinator, capture):
        NodeReader(coordinator, PATH, capture).start()
        ensemble.put(PATH, b"raced")

        ensemble.pump()

        assert capture.reads == [b"raced"]
        assert coordinator.ops() == ["read", "exists", "read"]

    def test_creation_delivered_before_track_result(self, ensemble, coordinator, capture):
        reader = NodeReader(coordinator, PATH, capture).start()
        assert ensemble.step()  # read result: NO_NODE, track issued

        reader.handle_event(EventKind.WATCH, WatchKind.CREATED)
        ensemble.put(PATH, b"early")
        ensemble.pump()

        assert capture.reads == [b"early"]

    def test_errors_are_retried(self, ensemble, coordinator, capture):
        coordinator.failures.update({"read": 2, "exists": 1})
        NodeReader(coordinator, PATH, capture).start()
        ensemble.pump()
        ensemble.put(PATH, b"v")
        ensemble.pump()

        assert capture.reads == [b"v"]
        assert coordinator.ops() == ["read", "read", "read", "exists", "exists", "read"]

    def test_other_watch_events_are_ignored(self, ensemble, coordinator, capture):
        reader = NodeReader(coordinator, PATH, capture).start()
        ensemble.pump()

        reader.handle_event(EventKind.WATCH, WatchKind.DELETED)
        reader.handle_event(EventKind.WATCH, WatchKind.CHANGED)

        assert coordinator.ops() == ["read", "exists"]

    def test_finish_gives_up_at_next_call(self, ensemble, coordinator, capture):
        reader = NodeReader(coordinator, PATH, capture).start()
        reader.finish()
        ensemble.pump()

        assert capture.gave_up == 1
        assert capture.reads == []
        assert reader.done
        assert coordinator.ops() == ["read"]

        ensemble.put(PATH, b"too late")
        ensemble.pump()
        assert capture.reads == []

    @pytest.mark.parametrize("session", [SessionState.AUTH_FAILED, SessionState.CLOSED])
    def test_dead_session_gives_up(self, coordinator, capture, session):
        coordinator.state = session
        NodeReader(coordinator, PATH, capture).start()

        assert capture.gave_up == 1
        assert coordinator.calls == []

    def test_requires_coordinator_and_path(self, coordinator):
        with pytest.raises(NotConfiguredError):
            NodeReader(path=PATH).start()
        with pytest.raises(NotConfiguredError):
            NodeReader(coordinator).start()

    def test_start_only_once(self, coordinator):
        reader = NodeReader().set_coordinator(coordinator).set_path(PATH).start()
        with pytest.raises(InvalidStateError):
            reader.start()
        with pytest.raises(InvalidStateError):
            reader.set_path("/elsewhere")

    def test_faulty_listener_is_isolated(self, ensemble, coordinator):
        class Broken(ReaderListener):
            def on_read(self, reader, data, stat):
                raise ValueError("bad listener")

        ensemble.put(PATH, b"x")
        reader = NodeReader(coordinator, PATH, Broken()).start()
        ensemble.pump()

        assert reader.done
