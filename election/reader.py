"""
Exports ``NodeReader``, which reads a node once, waiting for the node to
be created first if it does not exist yet, and ``ReaderListener``, its
observer contract.
"""

from __future__ import annotations

import threading
from functools import partial
from typing import Any, Callable

from rich.console import Console

from zk.coordinator import Coordinator, Outcome, Result, SessionState, WatchKind
from .config import QUIET
from .election import EventKind
from .errors import InvalidStateError, NotConfiguredError
from .listener import notify

__all__ = ["NodeReader", "ReaderListener"]

console = Console(quiet=QUIET)


class ReaderListener:
    def on_read(self, reader: NodeReader, data: bytes | None, stat: Any) -> None:
        pass

    def on_gave_up(self, reader: NodeReader) -> None:
        pass


class NodeReader:
    """
    One-shot reader of a node that may not exist yet.

    Note:
        The read is retried on transient errors. If the node is missing,
        an existence watch is registered and the read happens once the node
        is created. The reader gives up, calling ``on_gave_up``, when
        ``finish()`` has been called or the session is dead.

    :param coordinator: Coordination service to read from.
    :param path: Path of the node to read.
    :param listener: Receiver of ``on_read`` / ``on_gave_up``.
    """

    def __init__(
        self,
        coordinator: Coordinator | None = None,
        path: str | None = None,
        listener: ReaderListener | None = None,
    ):
        self._coordinator = coordinator
        self._path = path
        self._listener = listener

        self._lock = threading.RLock()
        self._started: bool = False
        self._done: bool = False
        self._should_finish: bool = False
        self._awaiting: EventKind | None = None
        self._creation_noted: bool = False

        self._handlers: dict[EventKind, Callable[[Any], None]] = {
            EventKind.RESOLVE_RESULT: self._on_read_result,
            EventKind.TRACK_RESULT: self._on_track_result,
            EventKind.WATCH: self._on_watch,
        }

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def done(self) -> bool:
        with self._lock:
            return self._done

    def set_coordinator(self, coordinator: Coordinator) -> NodeReader:
        self._ensure_configurable()
        self._coordinator = coordinator
        return self

    def set_path(self, path: str) -> NodeReader:
        self._ensure_configurable()
        self._path = path
        return self

    def set_listener(self, listener: ReaderListener | None) -> NodeReader:
        self._ensure_configurable()
        self._listener = listener
        return self

    def _ensure_configurable(self) -> None:
        with self._lock:
            if self._started:
                raise InvalidStateError("NodeReader is already started.", "started")

    def start(self) -> NodeReader:
        """
        Schedule the read.

        :return: This instance.
        :raises NotConfiguredError: The coordinator or the path is missing.
        :raises InvalidStateError: ``start()`` was already called.
        """
        with self._lock:
            if self._started:
                raise InvalidStateError("start() can be called only once.", "started")
            if self._coordinator is None:
                raise NotConfiguredError("A coordinator must be set before start().")
            if self._path is None:
                raise NotConfiguredError("A path must be set before start().")
            self._started = True
            self._read()
        return self

    def finish(self) -> NodeReader:
        with self._lock:
            self._should_finish = True
        return self

    def handle_event(self, kind: EventKind, payload: Any = None) -> None:
        with self._lock:
            if self._done:
                return
            if kind is not EventKind.WATCH:
                if kind is not self._awaiting:
                    console.log(f"[reader {self._path}] Ignoring stale {kind.value}")
                    return
                self._awaiting = None
            self._handlers[kind](payload)

    # ----------------------------------------------------------------------
    # Chain
    # ----------------------------------------------------------------------
    def _finish_if_appropriate(self) -> bool:
        session = self._coordinator.session_state()
        if not self._should_finish and session not in (SessionState.AUTH_FAILED, SessionState.CLOSED):
            return False
        console.log(f"[reader {self._path}] Giving up")
        self._done = True
        self._awaiting = None
        notify(self._listener, "on_gave_up", self)
        return True

    def _read(self) -> None:
        if self._finish_if_appropriate():
            return
        self._awaiting = EventKind.RESOLVE_RESULT
        self._coordinator.read(self._path, partial(self.handle_event, EventKind.RESOLVE_RESULT))

    def _track(self) -> None:
        if self._finish_if_appropriate():
            return
        self._awaiting = EventKind.TRACK_RESULT
        self._creation_noted = False
        self._coordinator.exists_with_watch(
            self._path,
            partial(self.handle_event, EventKind.WATCH),
            partial(self.handle_event, EventKind.TRACK_RESULT),
        )

    def _on_read_result(self, result: Result) -> None:
        if result.ok:
            self._done = True
            notify(self._listener, "on_read", self, result.data, result.stat)
        elif result.outcome is Outcome.NO_NODE:
            self._track()
        else:
            self._read()

    def _on_track_result(self, result: Result) -> None:
        if result.ok:
            self._read()
        elif result.outcome is Outcome.NO_NODE:
            # Wait for the watch, unless it already fired
            if self._creation_noted:
                self._creation_noted = False
                self._read()
        else:
            self._track()

    def _on_watch(self, kind: WatchKind) -> None:
        if kind is not WatchKind.CREATED:
            return
        if self._awaiting is EventKind.TRACK_RESULT:
            self._creation_noted = True
        elif self._awaiting is None:
            self._read()
