"""
Undo/redo history — bounded stack of full-document snapshots.

Snapshots are deep-copied on the way in and on the way out, so mutating the
live document (or a snapshot handed back by undo/redo) can never alter a
stored entry.
"""

import copy

DEFAULT_CAPACITY = 50


class HistoryManager:
    """Stores up to `capacity` snapshots with a cursor at the current one."""

    def __init__(self, capacity=DEFAULT_CAPACITY):
        self.capacity = max(1, int(capacity))
        self._history = []
        self._index = -1

    def push(self, snapshot):
        """
        Push a new snapshot.

        Drops any redo branch past the cursor, then evicts the oldest entry
        once over capacity. Eviction keeps the cursor on the newest entry.
        """
        self._history = self._history[:self._index + 1]
        self._history.append(copy.deepcopy(snapshot))

        if len(self._history) > self.capacity:
            self._history.pop(0)
        else:
            self._index += 1

    def undo(self):
        """Step back. Returns the snapshot to restore, or None at the start."""
        if not self.can_undo():
            return None
        self._index -= 1
        return copy.deepcopy(self._history[self._index])

    def redo(self):
        """Step forward. Returns the snapshot to restore, or None at the end."""
        if not self.can_redo():
            return None
        self._index += 1
        return copy.deepcopy(self._history[self._index])

    def can_undo(self):
        return self._index > 0

    def can_redo(self):
        return self._index < len(self._history) - 1

    def clear(self):
        self._history = []
        self._index = -1

    def current(self):
        """Current snapshot without moving the cursor (None when empty)."""
        if self._index < 0:
            return None
        return copy.deepcopy(self._history[self._index])

    @property
    def index(self):
        return self._index

    def __len__(self):
        return len(self._history)
