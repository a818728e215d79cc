"""
Exports the exceptions raised synchronously by ``LeaderElection`` and
``NodeReader`` when they are used incorrectly.
"""

from __future__ import annotations

from typing import Any

__all__ = ["ElectionError", "NotConfiguredError", "InvalidStateError"]


class ElectionError(Exception):
    pass


class NotConfiguredError(ElectionError):
    """Raised by ``start()`` when a required collaborator has not been set."""


class InvalidStateError(ElectionError):
    def __init__(self, message: str, state: Any):
        """
        :param message: Human readable description.
        :param state: The state the instance was in when the call was rejected.
        """
        super().__init__(message)
        self.state = state
