"""Bookkeeping for optimistic row mutations awaiting a backend answer.

The list model applies create/update/remove locally before the backend
confirms them.  This module remembers which reply belongs to which row so
completions can be matched back, and which rows still have mutations in
flight.  Nothing is ever rolled back here: a failed mutation simply stops
being pending.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Optional, Tuple

from .objects import EnginioObject

if TYPE_CHECKING:  # pragma: no cover - import only for type checking
    from ..network.reply import EnginioReply


class PendingMutations:
    """Track in-flight mutation replies per row object."""

    def __init__(self) -> None:
        # id(reply) -> (reply, row); the tuple keeps both alive while pending
        self._by_reply: Dict[int, Tuple["EnginioReply", EnginioObject]] = {}
        # id(row) -> number of mutations in flight for that row
        self._counts: Dict[int, int] = {}

    def register(self, row: EnginioObject, reply: "EnginioReply") -> None:
        self._by_reply[id(reply)] = (reply, row)
        self._counts[id(row)] = self._counts.get(id(row), 0) + 1

    def resolve(self, reply: "EnginioReply") -> Optional[EnginioObject]:
        """Forget *reply* and return the row it was issued for."""
        entry = self._by_reply.pop(id(reply), None)
        if entry is None:
            return None
        row = entry[1]
        remaining = self._counts.get(id(row), 0) - 1
        if remaining > 0:
            self._counts[id(row)] = remaining
        else:
            self._counts.pop(id(row), None)
        return row

    def is_synced(self, row: EnginioObject) -> bool:
        return id(row) not in self._counts

    def has_pending(self) -> bool:
        return bool(self._by_reply)

    def __len__(self) -> int:
        return len(self._by_reply)
