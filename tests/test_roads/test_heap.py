"""
Tests for the indexed min-heap.
"""

import numpy as np
import pytest

from roadnav.core.roads.heap import MinHeap

INSERTS = [
    (8, 10),
    (5, 7),
    (11, 2),
    (13, 14),
    (6, 14.5),
    (7, 3),
    (19, 13),
    (9, 11),
    (1, 28),
    (3, 6),
    (16, 44),
    (17, 49),
    (2, 45),
    (15, 43),
    (10, 7.5),
    (0, 9),
]


@pytest.fixture
def heap():
    """Heap of size 20 holding 16 indices."""
    heap = MinHeap(20)
    for index, priority in INSERTS:
        heap.insert(index, priority)
    return heap


class TestMinHeap:
    """Tests for MinHeap."""

    def test_extraction_order(self, heap):
        """Test that indices come out sorted by priority."""
        assert len(heap) == 16
        order = [heap.extract_min() for _ in range(16)]
        assert order == [11, 7, 3, 5, 10, 0, 8, 9, 19, 13, 6, 1, 15, 16, 2, 17]
        assert len(heap) == 0

    def test_to_list_keeps_heap(self, heap):
        """Test that to_list reports the order without consuming the heap."""
        assert heap.to_list() == [11, 7, 3, 5, 10, 0, 8, 9, 19, 13, 6, 1, 15, 16, 2, 17]
        assert len(heap) == 16
        assert heap.min == 11

    def test_update_reorders(self, heap):
        """Test decrease-key and increase-key."""
        heap.update(10, 23)
        heap.update(0, 1)
        heap.update(17, 0.5)
        heap.update(11, 32)

        assert heap.to_list() == [17, 0, 7, 3, 5, 8, 9, 19, 13, 6, 10, 1, 11, 15, 16, 2]
        assert heap.priority(11) == 32

    def test_contains(self, heap):
        """Test membership before and after extraction."""
        assert heap.contains(11)
        assert 4 not in heap
        heap.extract_min()
        assert not heap.contains(11)

    def test_insert_or_update(self):
        """Test that insert_or_update handles both cases."""
        heap = MinHeap(3)
        heap.insert_or_update(1, 5.0)
        heap.insert_or_update(2, 3.0)
        heap.insert_or_update(1, 1.0)
        assert len(heap) == 2
        assert heap.extract_min() == 1

    def test_matches_sorted_order(self):
        """Test random operations against a sorted reference."""
        rng = np.random.default_rng(42)
        size = 64
        priorities = rng.permutation(size * 4)[:size].astype(float)
        heap = MinHeap(size)
        reference = {}

        for index in range(size):
            heap.insert(index, priorities[index])
            reference[index] = priorities[index]

        for index in rng.choice(size, size // 2, replace=False):
            new_priority = float(size * 4 + rng.integers(0, 1000)) + index / 1000.0
            if index % 2:
                new_priority = -new_priority
            heap.update(int(index), new_priority)
            reference[int(index)] = new_priority

        expected = [index for index, _ in sorted(reference.items(), key=lambda item: item[1])]
        assert heap.to_list() == expected

    def test_clear(self, heap):
        """Test emptying the heap."""
        heap.clear()
        assert len(heap) == 0
        assert not heap.contains(11)
        heap.insert(11, 1.0)
        assert heap.min == 11


class TestMinHeapErrors:
    """Tests for MinHeap misuse."""

    def test_duplicate_insert(self, heap):
        """Test inserting an index twice."""
        with pytest.raises(ValueError):
            heap.insert(8, 1.0)

    def test_update_missing(self, heap):
        """Test updating an absent index."""
        with pytest.raises(ValueError):
            heap.update(4, 1.0)

    def test_empty_extract(self):
        """Test extracting from an empty heap."""
        with pytest.raises(IndexError):
            MinHeap(4).extract_min()

    def test_index_out_of_range(self):
        """Test indices outside the capacity."""
        heap = MinHeap(4)
        with pytest.raises(IndexError):
            heap.insert(4, 1.0)
        with pytest.raises(IndexError):
            heap.contains(-1)

    def test_negative_size(self):
        """Test rejection of a negative capacity."""
        with pytest.raises(ValueError):
            MinHeap(-1)
