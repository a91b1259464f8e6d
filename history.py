from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from game import Session

UNDO_CAPACITY = 5


class UndoHistory:
    """
    Bounded stack of full session copies. Once five snapshots are held,
    pushing another one drops the oldest.
    """

    def __init__(self):
        self._snapshots: deque["Session"] = deque(maxlen=UNDO_CAPACITY)

    def snapshot(self, session: "Session") -> None:
        self._snapshots.append(session.clone())

    def restore(self) -> "Session | None":
        """Pop the most recent snapshot, or None when the history is empty."""
        if not self._snapshots:
            return None
        return self._snapshots.pop()

    def clear(self) -> None:
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)
