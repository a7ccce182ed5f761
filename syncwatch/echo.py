"""Syncwatch echo suppression for self-inflicted pause changes."""
from __future__ import annotations
import threading


class EchoSuppressor:
    """
    Counts pending local pause notifications caused by applying remote events.

    Shared between the relay receive thread (which calls absorb_one before
    mutating the player) and the dispatch loop (which calls try_consume for
    every pause notification). A notification that finds the count at zero
    came from the user and gets forwarded to the room.
    """

    def __init__(self, initial: int = 1) -> None:
        if initial < 0:
            raise ValueError("initial count must be >= 0")
        self._lock = threading.Lock()
        self._pending = initial

    def absorb_one(self) -> None:
        with self._lock:
            self._pending += 1

    def try_consume(self) -> bool:
        """Decrement if positive. Returns True if a pending echo was consumed."""
        with self._lock:
            if self._pending > 0:
                self._pending -= 1
                return True
            return False

    @property
    def pending(self) -> int:
        with self._lock:
            return self._pending
