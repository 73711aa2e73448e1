# history.py
"""
Authoring helpers for a day's block list.

Every edit returns a new list and leaves its input untouched, so a snapshot
pushed to `BlockHistory` is never modified afterwards.
"""
from typing import List, Optional, Sequence, Tuple

from blocks import BlockType, DayBlock, create_block
from config import HISTORY_LIMIT

Snapshot = Tuple[DayBlock, ...]


def add_block(blocks: Sequence[DayBlock], block_type: BlockType) -> List[DayBlock]:
    return [*blocks, create_block(block_type)]


def update_block(blocks: Sequence[DayBlock], block_id: str, **changes) -> List[DayBlock]:
    return [b.model_copy(update=changes) if b.id == block_id else b for b in blocks]


def remove_block(blocks: Sequence[DayBlock], block_id: str) -> List[DayBlock]:
    # A day being edited always keeps one block
    if len(blocks) <= 1:
        return list(blocks)
    return [b for b in blocks if b.id != block_id]


def move_block(blocks: Sequence[DayBlock], index: int, direction: int) -> List[DayBlock]:
    target = index + direction
    if not 0 <= index < len(blocks) or not 0 <= target < len(blocks):
        return list(blocks)
    moved = list(blocks)
    moved.insert(target, moved.pop(index))
    return moved


class BlockHistory:
    """Bounded undo/redo stack of full block-list snapshots."""

    def __init__(self, initial: Sequence[DayBlock] = (), limit: Optional[int] = None):
        self.limit = max(1, limit if limit is not None else HISTORY_LIMIT)
        self._past: List[Snapshot] = []
        self._present: Snapshot = tuple(initial)
        self._future: List[Snapshot] = []

    @property
    def present(self) -> List[DayBlock]:
        return list(self._present)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def push(self, blocks: Sequence[DayBlock]) -> List[DayBlock]:
        snapshot = tuple(blocks)
        if snapshot == self._present:
            return self.present
        self._past.append(self._present)
        del self._past[:-self.limit]
        self._present = snapshot
        self._future.clear()
        return self.present

    def undo(self) -> List[DayBlock]:
        if self._past:
            self._future.append(self._present)
            self._present = self._past.pop()
        return self.present

    def redo(self) -> List[DayBlock]:
        if self._future:
            self._past.append(self._present)
            self._present = self._future.pop()
        return self.present
