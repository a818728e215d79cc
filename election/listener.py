"""
Exports ``Listener``, the observer contract of ``LeaderElection``,
``ConsoleListener`` which logs every notification, and ``notify``, the
fault-isolating dispatcher used by the state machines.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console

from .config import QUIET

if TYPE_CHECKING:
    from .election import LeaderElection, State

__all__ = ["Listener", "ConsoleListener", "notify"]

console = Console(quiet=QUIET)


class Listener:
    """
    Receiver of leader election events.

    Every method is a no-op; subclasses override only what they need.
    ``on_state_changed`` is always delivered before the ``on_win``,
    ``on_lose``, ``on_vacant`` or ``on_finish`` call for the same event.
    """

    def on_state_changed(self, election: LeaderElection, old_state: State, new_state: State) -> None:
        pass

    def on_win(self, election: LeaderElection) -> None:
        """Called when this candidate became the leader."""

    def on_lose(self, election: LeaderElection) -> None:
        """Called when another candidate was found to be the leader."""

    def on_vacant(self, election: LeaderElection) -> None:
        """Called when the leader node was found missing; a new claim follows."""

    def on_finish(self, election: LeaderElection) -> None:
        """
        Called when the election stopped for good.

        Note:
            Delivery is best effort. It happens the next time the election
            is about to call the coordination service, which may be late or,
            if the instance is abandoned first, never.
        """


class ConsoleListener(Listener):
    def on_state_changed(self, election, old_state, new_state):
        console.log(f"[{election.identity}] {old_state.name} -> {new_state.name}")

    def on_win(self, election):
        console.log(f"[{election.identity}] I'm the leader of {election.path}")

    def on_lose(self, election):
        console.log(f"[{election.identity}] Someone else leads {election.path}")

    def on_vacant(self, election):
        console.log(f"[{election.identity}] {election.path} is vacant, running again")

    def on_finish(self, election):
        console.log(f"[{election.identity}] Election finished")


def notify(listener: Any, method: str, *args: Any) -> None:
    """
    Invoke ``listener.<method>(*args)`` and discard any fault it raises.

    :param listener: The observer, or ``None`` for no-op dispatch.
    :param method: Callback name, e.g. ``"on_win"``.
    :param args: Arguments passed to the callback.
    :return: None
    """
    if listener is None:
        return
    try:
        getattr(listener, method)(*args)
    except Exception as e:
        console.log(f"[listener] {method} raised {e!r}, ignored")
