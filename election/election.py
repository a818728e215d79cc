"""
Exports ``LeaderElection``, the client-side leader election state machine,
along with its ``State`` and ``EventKind`` enums.

Candidates contest a single ephemeral node. Whoever creates it is the
leader; the node's content is the leader's identity. Everyone else
watches the node and runs again once it is deleted.
"""

from __future__ import annotations

import secrets
import threading
from enum import Enum
from functools import partial
from typing import Any, Callable

from rich.console import Console

from zk.coordinator import Coordinator, Outcome, Result, SessionState, WatchKind
from .config import DEFAULT_ACL, DEFAULT_PATH, QUIET
from .errors import InvalidStateError, NotConfiguredError
from .listener import Listener, notify

__all__ = ["LeaderElection", "State", "EventKind", "random_identity"]

console = Console(quiet=QUIET)

_DEAD_SESSIONS = (SessionState.AUTH_FAILED, SessionState.CLOSED)


class State(Enum):
    """
    Leader election state.

    Note:
        CREATED -> ELECTING on ``start()``. ELECTING -> LEADER or FOLLOWER
        once the outcome is known, and back to ELECTING when the leader node
        disappears. Any state -> DONE once the election is told to finish or
        the session is dead; DONE is never left.
    """

    CREATED = "created"
    ELECTING = "electing"
    LEADER = "leader"
    FOLLOWER = "follower"
    DONE = "done"


class EventKind(Enum):
    CLAIM_RESULT = "claim-result"
    RESOLVE_RESULT = "resolve-result"
    TRACK_RESULT = "track-result"
    WATCH = "watch"


def random_identity() -> str:
    """
    Generate a default candidate identity.

    :return: A random non-negative 63-bit integer rendered in decimal.
    """
    return str(secrets.randbits(63))


class LeaderElection:
    """
    Leader election over a coordination service.

    Note:
        The election repeatedly joins the race until ``finish()`` is called
        or the coordination session reports AUTH_FAILED or CLOSED. Both
        conditions are checked right before every coordination call; when
        either holds the state becomes DONE, ``on_finish`` is delivered and
        no further call is issued.

    Usage:
        election = (
            LeaderElection()
            .set_coordinator(KazooCoordinator(client))
            .set_listener(ConsoleListener())
            .start()
        )
    """

    def __init__(
        self,
        coordinator: Coordinator | None = None,
        path: str | None = None,
        identity: str | None = None,
        acl: Any = None,
        listener: Listener | None = None,
        identity_factory: Callable[[], str] = random_identity,
    ):
        self._coordinator = coordinator
        self._path = path
        self._identity = identity
        self._identity_bytes: bytes = b""
        self._acl = acl
        self._listener = listener
        self._identity_factory = identity_factory

        self._lock = threading.RLock()
        self._state: State = State.CREATED
        self._should_finish: bool = False

        # Result kind of the single call in flight, None while idle
        self._awaiting: EventKind | None = None
        # Deletion observed before the pending track result arrived
        self._vacancy_noted: bool = False

        self._handlers: dict[EventKind, Callable[[Any], None]] = {
            EventKind.CLAIM_RESULT: self._on_claim_result,
            EventKind.RESOLVE_RESULT: self._on_resolve_result,
            EventKind.TRACK_RESULT: self._on_track_result,
            EventKind.WATCH: self._on_watch,
        }

    # ----------------------------------------------------------------------
    # Configuration
    # ----------------------------------------------------------------------
    @property
    def coordinator(self) -> Coordinator | None:
        return self._coordinator

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def identity(self) -> str | None:
        return self._identity

    @property
    def acl(self) -> Any:
        return self._acl

    @property
    def listener(self) -> Listener | None:
        return self._listener

    def set_coordinator(self, coordinator: Coordinator) -> LeaderElection:
        self._ensure_configurable("coordinator")
        self._coordinator = coordinator
        return self

    def set_path(self, path: str) -> LeaderElection:
        """
        Set the contested node path. Defaults to ``/leader``.
        """
        self._ensure_configurable("path")
        self._path = path
        return self

    def set_identity(self, identity: str) -> LeaderElection:
        """
        Set the identity of this candidate. It must differ from the identity
        of every other candidate; a random one is generated if unset.
        """
        self._ensure_configurable("identity")
        self._identity = identity
        return self

    def set_acl(self, acl: Any) -> LeaderElection:
        self._ensure_configurable("acl")
        self._acl = acl
        return self

    def set_listener(self, listener: Listener | None) -> LeaderElection:
        self._ensure_configurable("listener")
        self._listener = listener
        return self

    def _ensure_configurable(self, name: str) -> None:
        with self._lock:
            if self._state is not State.CREATED:
                raise InvalidStateError(
                    f"{name} cannot be changed once the election has started. "
                    f"The current state is {self._state.name}.",
                    self._state,
                )

    # ----------------------------------------------------------------------
    # Public API
    # ----------------------------------------------------------------------
    def start(self) -> LeaderElection:
        """
        Start the election.

        Note:
            On return the state is ELECTING, or DONE when ``finish()`` was
            already called or the session is already dead. The outcome of
            the first claim arrives later through the listener.

        :return: This instance.
        :raises NotConfiguredError: No coordinator has been set.
        :raises InvalidStateError: The state is not CREATED.
        """
        with self._lock:
            if self._state is not State.CREATED:
                raise InvalidStateError(
                    "start() can be called only when the state is CREATED. "
                    f"The current state is {self._state.name}.",
                    self._state,
                )
            self._setup()

            if not self._should_stop():
                self._change_state(State.ELECTING)
            self._run_for_leader()
        return self

    def finish(self) -> LeaderElection:
        """
        Stop joining the election.

        Note:
            Takes effect the next time the election is about to call the
            coordination service. A watch that is already registered is not
            removed; when it fires, the election moves to DONE instead of
            running again.

        :return: This instance.
        """
        with self._lock:
            self._should_finish = True
        return self

    def get_state(self) -> State:
        with self._lock:
            return self._state

    @property
    def state(self) -> State:
        return self.get_state()

    def handle_event(self, kind: EventKind, payload: Any = None) -> None:
        """
        Entry point for every coordination callback and watch event.

        :param kind: Which call the payload answers, or ``WATCH``.
        :param payload: A ``Result`` for call results, a ``WatchKind`` for watches.
        :return: None
        """
        with self._lock:
            if self._state is State.DONE:
                console.log(f"[{self._identity}] Ignoring {kind.value} after DONE")
                return

            if kind is not EventKind.WATCH:
                if kind is not self._awaiting:
                    console.log(
                        f"[{self._identity}] Ignoring stale {kind.value} "
                        f"(awaiting {self._awaiting.value if self._awaiting else 'nothing'})"
                    )
                    return
                self._awaiting = None

            self._handlers[kind](payload)

    # ----------------------------------------------------------------------
    # Setup & termination gate
    # ----------------------------------------------------------------------
    def _setup(self) -> None:
        if self._coordinator is None:
            raise NotConfiguredError("A coordinator must be set before start().")
        if self._path is None:
            self._path = DEFAULT_PATH
        if self._identity is None:
            self._identity = self._identity_factory()
        self._identity_bytes = self._identity.encode("utf-8")
        if self._acl is None:
            self._acl = DEFAULT_ACL

    def _should_stop(self) -> bool:
        if self._should_finish:
            return True
        return self._coordinator.session_state() in _DEAD_SESSIONS

    def _finish_if_appropriate(self) -> bool:
        """
        Termination gate, consulted before every coordination call.

        :return: True if the chain must stop; the state is then DONE.
        """
        if not self._should_stop():
            return False

        reason = "finish requested" if self._should_finish else "session is dead"
        console.log(f"[{self._identity}] Stopping election: {reason}")
        self._awaiting = None
        if self._state is not State.DONE:
            self._change_state(State.DONE)
        notify(self._listener, "on_finish", self)
        return True

    def _change_state(self, new_state: State) -> None:
        old_state = self._state
        self._state = new_state
        notify(self._listener, "on_state_changed", self, old_state, new_state)

    # ----------------------------------------------------------------------
    # Driver: claim / resolve / track
    # ----------------------------------------------------------------------
    def _run_for_leader(self) -> None:
        if self._finish_if_appropriate():
            return
        self._awaiting = EventKind.CLAIM_RESULT
        self._coordinator.create(
            self._path,
            self._identity_bytes,
            self._acl,
            partial(self.handle_event, EventKind.CLAIM_RESULT),
        )

    def _check_leader(self) -> None:
        if self._finish_if_appropriate():
            return
        self._awaiting = EventKind.RESOLVE_RESULT
        self._coordinator.read(self._path, partial(self.handle_event, EventKind.RESOLVE_RESULT))

    def _track_leader(self) -> None:
        if self._finish_if_appropriate():
            return
        self._awaiting = EventKind.TRACK_RESULT
        self._vacancy_noted = False
        self._coordinator.exists_with_watch(
            self._path,
            partial(self.handle_event, EventKind.WATCH),
            partial(self.handle_event, EventKind.TRACK_RESULT),
        )

    def _win(self) -> None:
        self._change_state(State.LEADER)
        notify(self._listener, "on_win", self)
        self._track_leader()

    def _lose(self) -> None:
        self._change_state(State.FOLLOWER)
        notify(self._listener, "on_lose", self)
        self._track_leader()

    def _vacant(self) -> None:
        self._change_state(State.ELECTING)
        notify(self._listener, "on_vacant", self)
        self._run_for_leader()

    def _on_claim_result(self, result: Result) -> None:
        if result.ok:
            self._win()
        elif result.outcome is Outcome.NODE_EXISTS:
            self._lose()
        else:
            # The create may have succeeded without us hearing about it
            console.log(f"[{self._identity}] Claim outcome unknown ({result.outcome.value}), reading back")
            self._check_leader()

    def _on_resolve_result(self, result: Result) -> None:
        if result.ok:
            # Raw bytes: foreign content need not be valid UTF-8
            if result.data == self._identity_bytes:
                self._win()
            else:
                self._lose()
        elif result.outcome is Outcome.NO_NODE:
            self._vacant()
        else:
            console.log(f"[{self._identity}] Reading {self._path} failed, retrying")
            self._check_leader()

    def _on_track_result(self, result: Result) -> None:
        if result.ok:
            if self._vacancy_noted:
                self._vacancy_noted = False
                self._vacant()
        elif result.outcome is Outcome.NO_NODE:
            self._vacant()
        else:
            console.log(f"[{self._identity}] Watching {self._path} failed, retrying")
            self._track_leader()

    def _on_watch(self, kind: WatchKind) -> None:
        if kind is not WatchKind.DELETED:
            return
        if self._awaiting is EventKind.TRACK_RESULT:
            self._vacancy_noted = True
            return
        if self._awaiting is None and self._state in (State.LEADER, State.FOLLOWER):
            console.log(f"[{self._identity}] {self._path} was deleted")
            self._vacant()
            return
        console.log(f"[{self._identity}] Ignoring deletion while {self._state.name}")
