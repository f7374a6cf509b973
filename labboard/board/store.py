"""In-memory board snapshot store owned by the host."""

from threading import Lock
from typing import Optional
from uuid import uuid4

from labboard.board.schemas import Board


class BoardStore:
    """Holds the current snapshot of each board.

    Snapshots are replaced wholesale after each accepted operation; a stored
    board is never mutated in place.
    """

    def __init__(self):
        self._boards: dict[str, Board] = {}
        self._lock = Lock()

    def create(self, board: Optional[Board] = None) -> str:
        """Store a new board and return its id."""
        board_id = str(uuid4())
        with self._lock:
            self._boards[board_id] = board if board is not None else Board()
        return board_id

    def get(self, board_id: str) -> Optional[Board]:
        with self._lock:
            return self._boards.get(board_id)

    def replace(self, board_id: str, board: Board) -> None:
        """Swap in a new snapshot for an existing board."""
        with self._lock:
            if board_id not in self._boards:
                raise KeyError(board_id)
            self._boards[board_id] = board

    def delete(self, board_id: str) -> bool:
        with self._lock:
            return self._boards.pop(board_id, None) is not None

    def reset(self) -> None:
        """Drop all boards. Used in tests to avoid cross-test pollution."""
        with self._lock:
            self._boards.clear()


_board_store = BoardStore()


def get_board_store() -> BoardStore:
    """Return the process-wide board store."""
    return _board_store
