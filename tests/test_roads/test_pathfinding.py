"""
Tests for A* search over dense weight matrices.

Covers optimal paths, determinism, the two failure modes and input checks.
"""

import math

import numpy as np
import pytest

from roadnav.core.errors import SearchExhaustedError, StepLimitExceededError
from roadnav.core.roads.matrix import WeightMatrix
from roadnav.core.roads.pathfinding import (
    dijkstra_heuristic,
    distance_heuristic,
    find_shortest_path,
    get_heuristic,
    path_cost,
)

FACTOR = 1000.0


@pytest.fixture
def chain():
    """
    Four nodes: A=0, B=1, Anchor1=2, Anchor2=3.

    A-Anchor1 costs 5, Anchor1-Anchor2 costs 3 and Anchor2-B costs 5; every
    other pair costs its straight-line distance times 1000.
    """
    positions = [
        np.array([0.0, 0.0, 0.0]),
        np.array([0.0, 0.0, 11.0]),
        np.array([3.0, 0.0, 4.0]),
        np.array([3.0, 0.0, 7.0]),
    ]
    weights = WeightMatrix(4, 4)
    for i in range(4):
        for j in range(4):
            weights[i, j] = np.linalg.norm(positions[i] - positions[j]) * FACTOR
    weights.set_symmetric(0, 2, 5.0)
    weights.set_symmetric(2, 3, 3.0)
    weights.set_symmetric(3, 1, 5.0)
    return positions, weights


class TestFindShortestPath:
    """Tests for find_shortest_path."""

    def test_finds_cheapest_chain(self, chain):
        """Test that the road chain beats every direct fallback edge."""
        positions, weights = chain
        result = find_shortest_path(positions, weights, 0, 1)

        assert result.path == [0, 2, 3, 1]
        assert result.cost == pytest.approx(13.0)
        assert result.steps_taken == 3
        assert path_cost(weights, result.path) == pytest.approx(result.cost)

    def test_dijkstra_heuristic_same_path(self, chain):
        """Test that a zero heuristic finds the same optimum."""
        positions, weights = chain
        result = find_shortest_path(positions, weights, 0, 1, heuristic=dijkstra_heuristic)

        assert result.path == [0, 2, 3, 1]
        assert result.cost == pytest.approx(13.0)

    def test_deterministic(self, chain):
        """Test that repeated searches give identical results."""
        positions, weights = chain
        first = find_shortest_path(positions, weights, 0, 1)
        second = find_shortest_path(positions, weights, 0, 1)

        assert first.path == second.path
        assert first.steps_taken == second.steps_taken
        assert first.cost == second.cost

    def test_start_is_goal(self, chain):
        """Test a search that starts on the goal."""
        positions, weights = chain
        result = find_shortest_path(positions, weights, 2, 2)

        assert result.path == [2]
        assert result.cost == 0.0
        assert result.steps_taken == 0

    def test_ignores_tiny_weights(self):
        """Test that weights below 1e-6 are not edges."""
        positions = [np.zeros(3), np.array([1.0, 0.0, 0.0]), np.array([2.0, 0.0, 0.0])]
        weights = WeightMatrix(3, 3, fill_value=math.inf)
        weights.set_symmetric(0, 2, 1e-9)
        weights.set_symmetric(0, 1, 1.0)
        weights.set_symmetric(1, 2, 1.0)

        result = find_shortest_path(positions, weights, 0, 2)

        assert result.path == [0, 1, 2]

    def test_exhausted(self):
        """Test that an unreachable goal raises SearchExhaustedError."""
        positions = [np.zeros(3), np.ones(3), np.full(3, 2.0)]
        weights = WeightMatrix(3, 3, fill_value=math.inf)
        weights.set_symmetric(0, 1, 1.0)

        with pytest.raises(SearchExhaustedError) as exc_info:
            find_shortest_path(positions, weights, 0, 2)

        assert exc_info.value.error_code == "SEARCH_EXHAUSTED"
        assert exc_info.value.steps_taken == 2

    def test_step_limit(self, chain):
        """Test that the step cap raises StepLimitExceededError."""
        positions, weights = chain

        with pytest.raises(StepLimitExceededError) as exc_info:
            find_shortest_path(positions, weights, 0, 1, max_steps=1)

        assert exc_info.value.steps_taken == 1
        assert exc_info.value.max_steps == 1

    def test_step_limit_is_not_exhaustion(self, chain):
        """Test that the two failures stay distinguishable."""
        positions, weights = chain

        with pytest.raises(StepLimitExceededError):
            find_shortest_path(positions, weights, 0, 1, max_steps=0)

    def test_size_mismatch(self, chain):
        """Test rejection of a matrix that does not match the positions."""
        positions, _ = chain
        with pytest.raises(ValueError):
            find_shortest_path(positions, WeightMatrix(3, 3), 0, 1)

    def test_bad_indices(self, chain):
        """Test rejection of out-of-range endpoints."""
        positions, weights = chain
        with pytest.raises(IndexError):
            find_shortest_path(positions, weights, 0, 4)


class TestHeuristics:
    """Tests for heuristic lookup."""

    def test_distance(self):
        """Test straight-line distance."""
        assert distance_heuristic(np.zeros(3), np.array([3.0, 4.0, 0.0])) == pytest.approx(5.0)

    def test_lookup(self):
        """Test lookup by name."""
        assert get_heuristic("distance") is distance_heuristic
        assert get_heuristic("dijkstra") is dijkstra_heuristic

    def test_unknown(self):
        """Test an unknown name."""
        with pytest.raises(ValueError, match="Unknown heuristic"):
            get_heuristic("manhattan")
