from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, List

from reptrack.counter.exercises import SIDES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepCount:
    left: int = 0
    right: int = 0

    def get(self, side: str) -> int:
        return self.left if side == "left" else self.right

    def to_dict(self) -> dict:
        return {"left": self.left, "right": self.right}


class RepAggregator:
    """Single authoritative {left, right} rep count for the active exercise."""

    def __init__(self):
        self._count = RepCount()
        self._reset_listeners: List[Callable[[], None]] = []

    def add_reset_listener(self, cb: Callable[[], None]):
        self._reset_listeners.append(cb)

    def remove_reset_listener(self, cb: Callable[[], None]):
        if cb in self._reset_listeners:
            self._reset_listeners.remove(cb)

    def reset_rep_counts(self):
        self._count = RepCount()
        logger.debug("rep counts reset")
        for cb in self._reset_listeners:
            cb()

    def update_rep_count(self, side: str, count: int):
        if side not in SIDES:
            raise ValueError(f"unknown side: {side!r}")
        if count < 0:
            raise ValueError(f"rep count must be non-negative, got {count}")
        if side == "left":
            self._count = RepCount(count, self._count.right)
        else:
            self._count = RepCount(self._count.left, count)

    def read(self) -> RepCount:
        return self._count
