"""
Serialized, all-or-nothing execution context for in-process contracts.

Every contract that takes part in vault operations (tokens, reward pool,
vault) registers with one Ledger. Public operations run inside
``Ledger.atomic()``:

- Callers are serialized by a reentrant lock (single writer)
- The outermost block snapshots every participant before it runs
- Any exception restores every participant and is re-raised
- Nested blocks join the enclosing unit of work

The ledger also carries the block clock used for reward streaming and
oracle staleness.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterator, Protocol

logger = logging.getLogger(__name__)


class LedgerParticipant(Protocol):
    """State holder that can be captured and rolled back."""

    def snapshot(self) -> dict[str, Any]:
        ...

    def restore(self, snapshot: dict[str, Any]) -> None:
        ...


class Ledger:
    """Globally ordered, single-writer ledger shared by all contracts."""

    def __init__(self, timestamp: int | None = None) -> None:
        self._lock = threading.RLock()
        self._participants: list[LedgerParticipant] = []
        self._depth = 0
        self._pending: list[tuple[LedgerParticipant, dict[str, Any]]] = []
        self._timestamp = int(time.time()) if timestamp is None else int(timestamp)
        self.committed = 0
        self.aborted = 0

    # ==================== Clock ====================

    @property
    def timestamp(self) -> int:
        """Current block timestamp in seconds."""
        return self._timestamp

    def advance(self, seconds: int) -> int:
        """Move the block clock forward."""
        if seconds < 0:
            raise ValueError("Ledger clock cannot move backwards")
        with self._lock:
            self._timestamp += int(seconds)
            return self._timestamp

    # ==================== Participants ====================

    def register(self, participant: LedgerParticipant) -> None:
        """Register a participant; registering twice is a no-op."""
        with self._lock:
            if any(existing is participant for existing in self._participants):
                return
            self._participants.append(participant)

    @property
    def participants(self) -> list[LedgerParticipant]:
        return list(self._participants)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    # ==================== Units of Work ====================

    @contextmanager
    def atomic(self, operation: str = "operation") -> Iterator[None]:
        """
        Run a block as one atomic unit of work.

        Args:
            operation: Name used in logs when the block aborts

        Raises:
            Whatever the block raised, after every participant is restored
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._pending = [(p, p.snapshot()) for p in self._participants]
            self._depth += 1
            try:
                yield
            except BaseException as exc:
                if outermost:
                    self._rollback()
                    self.aborted += 1
                    logger.warning(
                        "Ledger operation aborted",
                        extra={
                            "event": "ledger.rollback",
                            "operation": operation,
                            "error": type(exc).__name__,
                            "participants": len(self._pending),
                        }
                    )
                raise
            else:
                if outermost:
                    self.committed += 1
            finally:
                self._depth -= 1
                if outermost:
                    self._pending = []

    def _rollback(self) -> None:
        # Restore in reverse registration order.
        for participant, state in reversed(self._pending):
            participant.restore(state)
