"""
Exports ``KazooCoordinator``, the adapter that exposes a ``KazooClient``
through the ``Coordinator`` capability interface.

Completion callbacks and watch events are delivered on kazoo's own
callback threads, except ERROR results, which are handed over from a timer
thread after a short delay. This module translates kazoo results,
exceptions and event types into the ``zk.coordinator`` value types.
"""

from __future__ import annotations

import threading
from typing import Any

from kazoo.client import KazooClient
from kazoo.exceptions import KazooException, NodeExistsError, NoNodeError
from kazoo.interfaces import IAsyncResult
from kazoo.protocol.states import EventType, KeeperState, WatchedEvent
from rich.console import Console

from election.config import QUIET
from zk.coordinator import (
    Outcome,
    Result,
    ResultCallback,
    SessionState,
    WatchCallback,
    WatchKind,
)

__all__ = ["KazooCoordinator"]

console = Console(quiet=QUIET)

_SESSION_STATES = {
    KeeperState.CONNECTED: SessionState.HEALTHY,
    KeeperState.CONNECTED_RO: SessionState.HEALTHY,
    KeeperState.AUTH_FAILED: SessionState.AUTH_FAILED,
    KeeperState.CLOSED: SessionState.CLOSED,
}

_WATCH_KINDS = {
    EventType.CREATED: WatchKind.CREATED,
    EventType.DELETED: WatchKind.DELETED,
    EventType.CHANGED: WatchKind.CHANGED,
}


class KazooCoordinator:
    def __init__(self, client: KazooClient, error_delay: float = 0.2):
        """
        Wrap a kazoo client.

        Note:
            ERROR results are handed over only after ``error_delay`` seconds.
            Callers retry an ERROR straight away, and while kazoo replaces an
            expired session every call fails at once.

        :param client: A started (or about to be started) ``KazooClient``.
        :param error_delay: Seconds to hold back an ERROR result; 0 delivers it at once.
        """
        self.client: KazooClient = client
        self.error_delay = error_delay

    def create(self, path: str, value: bytes, acl: Any, on_result: ResultCallback) -> None:
        async_result = self.client.create_async(path, value, acl=acl, ephemeral=True)
        async_result.rawlink(lambda r: self._deliver(on_result, self._to_result(r)))

    def read(self, path: str, on_result: ResultCallback) -> None:
        async_result = self.client.get_async(path)
        async_result.rawlink(lambda r: self._deliver(on_result, self._to_result(r, unpack_data=True)))

    def exists_with_watch(
        self,
        path: str,
        on_change: WatchCallback,
        on_result: ResultCallback,
    ) -> None:
        def watcher(event: WatchedEvent) -> None:
            on_change(self.watch_kind(event))

        async_result = self.client.exists_async(path, watch=watcher)
        async_result.rawlink(lambda r: self._deliver(on_result, self._to_result(r, missing_is_none=True)))

    def session_state(self) -> SessionState:
        return _SESSION_STATES.get(self.client.client_state, SessionState.OTHER)

    def _deliver(self, on_result: ResultCallback, result: Result) -> None:
        if result.outcome is not Outcome.ERROR or self.error_delay <= 0:
            on_result(result)
            return
        timer = threading.Timer(self.error_delay, on_result, (result,))
        timer.daemon = True
        timer.start()

    # ----------------------------------------------------------------------
    # Translation
    # ----------------------------------------------------------------------
    @staticmethod
    def watch_kind(event: WatchedEvent) -> WatchKind:
        """
        Map a kazoo watch event onto a ``WatchKind``.

        :param event: Event passed to a kazoo watcher.
        :return: The matching ``WatchKind``; ``OTHER`` for child/session events.
        """
        return _WATCH_KINDS.get(event.type, WatchKind.OTHER)

    @staticmethod
    def _to_result(
        async_result: IAsyncResult,
        unpack_data: bool = False,
        missing_is_none: bool = False,
    ) -> Result:
        """
        Convert a completed kazoo async result into a ``Result``.

        Note:
            ``exists`` reports a missing node by returning ``None`` rather
            than raising ``NoNodeError``; ``missing_is_none`` covers that.

        :param async_result: Completed kazoo async result.
        :param unpack_data: Treat the value as a ``(data, stat)`` pair.
        :param missing_is_none: Treat a ``None`` value as a missing node.
        :return: The translated ``Result``.
        """
        try:
            value = async_result.get_nowait()
        except NodeExistsError:
            return Result(Outcome.NODE_EXISTS)
        except NoNodeError:
            return Result(Outcome.NO_NODE)
        except KazooException as e:
            console.log(f"[zk] Coordination call failed: {e!r}")
            return Result(Outcome.ERROR, error=e)

        if unpack_data:
            data, stat = value
            return Result(Outcome.OK, data=data, stat=stat)
        if missing_is_none:
            if value is None:
                return Result(Outcome.NO_NODE)
            return Result(Outcome.OK, stat=value)
        return Result(Outcome.OK)
