"""
Candidate process module providing ``serve``, the entry function that
connects to a ZooKeeper ensemble and runs a ``LeaderElection`` until the
process is interrupted.

This module is invoked by the launcher ``python -m scripts.run_candidates``.
"""

from __future__ import annotations

import threading

from kazoo.client import KazooClient
from rich.console import Console

from zk.kazoo_coordinator import KazooCoordinator
from .config import DEFAULT_PATH, QUIET
from .election import LeaderElection, State
from .listener import ConsoleListener

__all__ = ["serve", "build_election"]

console = Console(quiet=QUIET)


def build_election(
        client: KazooClient,
        path: str = DEFAULT_PATH,
        identity: str | None = None,
) -> LeaderElection:
    """
    Assemble an election bound to ``client`` that logs every event.

    :param client: Kazoo client to run the election on.
    :param path: Contested node path.
    :param identity: Candidate identity; random when ``None``.
    :return: A configured, not yet started, ``LeaderElection``.
    """
    election = (
        LeaderElection()
        .set_coordinator(KazooCoordinator(client))
        .set_path(path)
        .set_listener(ConsoleListener())
    )
    if identity is not None:
        election.set_identity(identity)
    return election


def serve(
        hosts: str,
        path: str = DEFAULT_PATH,
        identity: str | None = None,
        stop_event: threading.Event | None = None,
) -> None:
    """
    Run one candidate until interrupted.

    Note:
        The election is told to finish and the kazoo session is closed on
        the way out; closing the session removes the leader node if this
        candidate holds it.

    :param hosts: ZooKeeper connection string.
    :param path: Contested node path.
    :param identity: Candidate identity; random when ``None``.
    :param stop_event: Optional event that ends the candidate when set.
    :return: None
    """
    stop_event = stop_event or threading.Event()
    client = KazooClient(hosts=hosts)
    client.start()

    election = build_election(client, path, identity).start()
    console.log(f"[START] Candidate {election.identity} running for {path} on {hosts}")

    try:
        while not stop_event.wait(1):
            if election.get_state() is State.DONE:
                break
    except KeyboardInterrupt:
        console.log(f"[{election.identity}] Interrupted")
    finally:
        election.finish()
        client.stop()
        client.close()
        console.log(f"[{election.identity}] Stopped in state {election.get_state().name}")
