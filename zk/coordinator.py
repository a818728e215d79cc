"""
Exports the coordination-service capability interface consumed by the
election and reader state machines, together with the value types that
flow across it.

Every call on a ``Coordinator`` is fire-and-forget: the outcome is
delivered later through the supplied callback as a ``Result``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

__all__ = [
    "Outcome",
    "Result",
    "SessionState",
    "WatchKind",
    "Coordinator",
    "ResultCallback",
    "WatchCallback",
]


class Outcome(Enum):
    OK = "ok"
    NODE_EXISTS = "node-exists"
    NO_NODE = "no-node"
    ERROR = "error"


class SessionState(Enum):
    HEALTHY = "healthy"
    AUTH_FAILED = "auth-failed"
    CLOSED = "closed"
    OTHER = "other"


class WatchKind(Enum):
    CREATED = "created"
    DELETED = "deleted"
    CHANGED = "changed"
    OTHER = "other"


@dataclass(frozen=True)
class Result:
    """
    Outcome of one coordination-service call.

    :param outcome: Tri-state classification of the call.
    :param data: Node content for successful reads.
    :param stat: Node metadata, when the service returned any.
    :param error: The underlying exception for ``Outcome.ERROR``.
    """

    outcome: Outcome
    data: bytes | None = None
    stat: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


ResultCallback = Callable[[Result], None]
WatchCallback = Callable[[WatchKind], None]


class Coordinator(Protocol):
    def create(self, path: str, value: bytes, acl: Any, on_result: ResultCallback) -> None:
        """
        Create ``path`` as an ephemeral node holding ``value``.

        :param path: Node path.
        :param value: Node content.
        :param acl: Permission descriptor, passed through untouched.
        :param on_result: Completion callback.
        """

    def read(self, path: str, on_result: ResultCallback) -> None:
        """
        Read the content of ``path``.

        :param path: Node path.
        :param on_result: Completion callback; ``Result.data`` holds the content.
        """

    def exists_with_watch(
        self,
        path: str,
        on_change: WatchCallback,
        on_result: ResultCallback,
    ) -> None:
        """
        Check that ``path`` exists and register a one-shot watch on it.

        :param path: Node path.
        :param on_change: Called at most once with the next change on ``path``.
        :param on_result: Completion callback.
        """

    def session_state(self) -> SessionState:
        """
        Report the liveness of the underlying session.

        :return: Current session state.
        """
