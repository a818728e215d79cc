import threading
from typing import Any, List, Optional

from kazoo.client import KazooClient

from election.config import DEFAULT_HOSTS, DEFAULT_PATH
from election.reader import NodeReader, ReaderListener
from zk.kazoo_coordinator import KazooCoordinator


class _LeaderCapture(ReaderListener):
    """Collects the outcome of one ``NodeReader`` run."""

    def __init__(self):
        self.finished = threading.Event()
        self.data: Optional[bytes] = None
        self.gave_up = False

    def on_read(self, reader: NodeReader, data: Optional[bytes], stat: Any) -> None:
        self.data = data
        self.finished.set()

    def on_gave_up(self, reader: NodeReader) -> None:
        self.gave_up = True
        self.finished.set()


class LeaderShell:
    """
    Interactive shell for inspecting a leader election on a ZooKeeper ensemble.

    Note:
        This shell never takes part in the election. It only reads the
        contested node, whose content is the identity of the current leader.

    Usage:
        Create an instance and call ``run()`` to start the shell loop.
    """

    def __init__(self, path: str = DEFAULT_PATH):
        self.client: Optional[KazooClient] = None
        self.path = path
        self.prompt = "election> "
        # Reader still waiting for the leader node, kept across timed-out waits
        self._reader: Optional[NodeReader] = None
        self._capture: Optional[_LeaderCapture] = None

    # ------------------------------------------------
    def run(self) -> None:
        """
        Start the interactive command shell.

        Note:
            This method enters a blocking REPL loop. Commands include:
            ``connect``, ``leader``, ``wait``, ``path``, ``help``, and ``exit``.

        :return: None
        """
        print("Leader Election Shell")
        print("Type 'help' for commands.")
        while True:
            try:
                line = input(self.prompt).strip()
            except EOFError:
                print("\nBye.")
                break

            if not self.execute(line):
                break
        self.disconnect()

    def execute(self, line: str) -> bool:
        """
        Execute a single command line.

        :param line: Raw command line.
        :return: False when the shell should exit, True otherwise.
        """
        if not line:
            print("Not a valid command.")
            print("Type 'help' for commands.")
            return True

        parts = line.split()
        cmd = parts[0].lower()

        if cmd in ("exit", "quit"):
            print("Bye.")
            return False

        elif cmd == "help":
            self.print_help()

        elif cmd == "connect":
            if len(parts) == 1:
                self.connect(DEFAULT_HOSTS)
            elif len(parts) == 2:
                self.connect(parts[1])
            else:
                print("Usage: connect [<hosts>]")

        elif cmd == "path":
            if len(parts) == 2 and parts[1] != self.path:
                self._drop_reader()
                self.path = parts[1]
            print(f"Leader node path: {self.path}")

        elif cmd in ("leader", "wait"):
            if not self.client:
                print("Not connected. Use 'connect' first.")
                return True
            self.handle_read(cmd, parts)

        else:
            print(f"Unknown command: {cmd}")
        return True

    @staticmethod
    def print_help() -> None:
        print("""
Commands:
  connect [<hosts>]      Connect to the ensemble (default from ZK_HOSTS)
  path [<path>]          Show or change the leader node path
  leader                 Show the current leader
  wait [<seconds>]       Wait until a leader exists, then show it
  exit                   Quit shell
""")

    def connect(self, hosts: str) -> None:
        """
        Connect to a ZooKeeper ensemble.

        :param hosts: Connection string, e.g. ``"127.0.0.1:2181"``.
        :return: None
        """
        self.disconnect()
        try:
            client = KazooClient(hosts=hosts)
            client.start(timeout=5)
            self.client = client
            print(f"✅ Connected to {hosts}")
        except Exception as e:
            print(f"❌ Connection failed: {e}")
            self.client = None
            print("Please try 'connect' again once the ensemble is available.")

    def disconnect(self) -> None:
        self._drop_reader()
        if self.client is None:
            return
        try:
            self.client.stop()
            self.client.close()
        except Exception as e:
            print(f"Error while disconnecting: {e}")
        self.client = None

    def read_leader(self, timeout: float) -> _LeaderCapture:
        """
        Run a ``NodeReader`` against the leader node and wait for its outcome.

        Note:
            A reader that timed out keeps its existence watch, and the next
            ``leader``/``wait`` on the same path picks up its outcome instead
            of registering another watch. It is dropped on path change or
            disconnect.

        :param timeout: Seconds to wait before giving up.
        :return: The capture; ``finished`` is unset if the wait timed out.
        """
        if self._reader is None or self._reader.path != self.path:
            self._drop_reader()
            self._capture = _LeaderCapture()
            self._reader = NodeReader(KazooCoordinator(self.client), self.path, self._capture).start()

        capture = self._capture
        if capture.finished.wait(timeout):
            self._reader = None
            self._capture = None
        return capture

    def _drop_reader(self) -> None:
        if self._reader is not None:
            self._reader.finish()
        self._reader = None
        self._capture = None

    def handle_read(self, cmd: str, parts: List[str]) -> None:
        """
        Dispatch ``leader`` and ``wait``.

        :param cmd: Command keyword ('leader' or 'wait').
        :param parts: Full command split into tokens.
        :return: None
        """
        if cmd == "leader":
            timeout = 2.0
        else:
            try:
                timeout = float(parts[1]) if len(parts) == 2 else 30.0
            except ValueError:
                print("Usage: wait [<seconds>]")
                return

        capture = self.read_leader(timeout)
        if capture.data is not None:
            print(f"⭐ Leader: {capture.data.decode('utf-8', errors='replace')}")
        elif capture.gave_up:
            print("⚠️  Session is no longer usable. Please reconnect.")
        elif cmd == "leader":
            print("No leader at the moment.")
        else:
            print(f"No leader appeared within {timeout:g}s.")


def main() -> None:
    """
    Entry point for launching the command shell.

    :return: None
    """
    shell = LeaderShell()
    shell.run()


if __name__ == "__main__":
    main()
