"""
Exports the defaults applied by ``LeaderElection.start()`` and the
environment-driven settings shared by the command line tools.
"""

import os

from kazoo.security import OPEN_ACL_UNSAFE

__all__ = ["DEFAULT_PATH", "DEFAULT_ACL", "DEFAULT_HOSTS", "QUIET"]

# Contested node used when no path is configured
DEFAULT_PATH: str = "/leader"

DEFAULT_ACL = OPEN_ACL_UNSAFE

# Ensemble connection string for the tools, e.g. "zk1:2181,zk2:2181"
DEFAULT_HOSTS: str = os.environ.get("ZK_HOSTS", "127.0.0.1:2181")

QUIET: bool = os.environ.get("ZK_ELECTION_QUIET", "") not in ("", "0")
