"""
Binary min-heap keyed by dense integer indices, with decrease-key support.
"""

from typing import List, Tuple

import numpy as np

_ABSENT = -1


def _parent(i: int) -> int:
    return (i - 1) // 2


def _left(i: int) -> int:
    return 2 * i + 1


def _right(i: int) -> int:
    return 2 * i + 2


class MinHeap:
    """
    Min-heap over ``(index, priority)`` pairs for indices in ``[0, size)``.

    A lookup array maps every index to its slot in the heap (or -1 when
    absent), so priorities can be updated in O(log n).
    """

    def __init__(self, size: int):
        """
        Initialize an empty heap.

        Args:
            size: Capacity, and the exclusive upper bound of valid indices
        """
        if size < 0:
            raise ValueError("size must be >= 0")
        self._size = size
        self._heap_index = np.zeros(size, dtype=np.int64)
        self._heap_priority = np.zeros(size, dtype=np.float64)
        self._slots = np.full(size, _ABSENT, dtype=np.int64)
        self._count = 0

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return self._size

    @property
    def min(self) -> int:
        """Index with the lowest priority, without removing it."""
        if self._count == 0:
            raise IndexError("Heap is empty")
        return int(self._heap_index[0])

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self._size:
            raise IndexError(f"Index {index} is out of range for heap of size {self._size}")

    def contains(self, index: int) -> bool:
        self._check_index(index)
        return bool(self._slots[index] != _ABSENT)

    def __contains__(self, index: int) -> bool:
        return self.contains(index)

    def priority(self, index: int) -> float:
        if not self.contains(index):
            raise ValueError(f"Index {index} does not exist in heap")
        return float(self._heap_priority[self._slots[index]])

    def insert(self, index: int, priority: float) -> None:
        """
        Add an index.

        Raises:
            ValueError: If the index is already present or the heap is full
        """
        if self.contains(index):
            raise ValueError(f"Index {index} already exists in heap")
        if self._count == self._size:
            raise ValueError("Heap is full")

        slot = self._count
        self._heap_index[slot] = index
        self._heap_priority[slot] = priority
        self._slots[index] = slot
        self._count += 1
        self._sift_up(slot)

    def extract_min(self) -> int:
        """
        Remove and return the index with the lowest priority.

        Raises:
            IndexError: If the heap is empty
        """
        result = self.min
        self._swap(0, self._count - 1)
        self._slots[result] = _ABSENT
        self._count -= 1
        self._sift_down(0)
        return result

    def update(self, index: int, priority: float) -> None:
        """
        Change the priority of an index already in the heap.

        Raises:
            ValueError: If the index is not in the heap
        """
        if not self.contains(index):
            raise ValueError(f"Index {index} does not exist in heap")
        slot = int(self._slots[index])
        old_priority = self._heap_priority[slot]
        self._heap_priority[slot] = priority
        if priority < old_priority:
            self._sift_up(slot)
        else:
            self._sift_down(slot)

    def insert_or_update(self, index: int, priority: float) -> None:
        if self.contains(index):
            self.update(index, priority)
        else:
            self.insert(index, priority)

    def copy(self) -> "MinHeap":
        clone = MinHeap(self._size)
        clone._heap_index[:] = self._heap_index
        clone._heap_priority[:] = self._heap_priority
        clone._slots[:] = self._slots
        clone._count = self._count
        return clone

    def to_list(self) -> List[int]:
        """All indices in extraction order. The heap itself is not modified."""
        clone = self.copy()
        return [clone.extract_min() for _ in range(len(clone))]

    def items(self) -> List[Tuple[int, float]]:
        """``(index, priority)`` pairs in heap-array order."""
        return [
            (int(self._heap_index[i]), float(self._heap_priority[i])) for i in range(self._count)
        ]

    def clear(self) -> None:
        self._slots.fill(_ABSENT)
        self._count = 0

    def _swap(self, a: int, b: int) -> None:
        ia = int(self._heap_index[a])
        ib = int(self._heap_index[b])
        self._slots[ia] = b
        self._slots[ib] = a
        self._heap_index[a], self._heap_index[b] = ib, ia
        self._heap_priority[a], self._heap_priority[b] = (
            self._heap_priority[b],
            self._heap_priority[a],
        )

    def _sift_up(self, i: int) -> None:
        priority = self._heap_priority
        while i != 0 and priority[_parent(i)] > priority[i]:
            self._swap(i, _parent(i))
            i = _parent(i)

    def _sift_down(self, i: int) -> None:
        priority = self._heap_priority
        count = self._count
        while _left(i) < count:
            left = _left(i)
            right = _right(i)
            if right >= count:
                if priority[i] > priority[left]:
                    self._swap(i, left)
                return

            if priority[i] <= priority[left] and priority[i] <= priority[right]:
                return

            if priority[left] < priority[right]:
                self._swap(i, left)
                i = left
            else:
                self._swap(i, right)
                i = right

    def __repr__(self) -> str:
        return f"MinHeap(count={self._count}, capacity={self._size})"
