"""
A* shortest-path search over a dense weight matrix.

Nodes are dense indices into a position array, edges are read from a
``WeightMatrix`` or ``OverlayMatrix`` where ``weights[x, y]`` is the cost of
going from x to y. The open set is a decrease-key ``MinHeap`` keyed by f-score.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from roadnav.core.errors import SearchExhaustedError, StepLimitExceededError
from roadnav.core.roads.heap import MinHeap
from roadnav.core.roads.matrix import OverlayMatrix, WeightMatrix

logger = logging.getLogger(__name__)

Heuristic = Callable[[NDArray[np.float64], NDArray[np.float64]], float]
Weights = Union[WeightMatrix, OverlayMatrix]

DEFAULT_MAX_STEPS = 10000

# Edges cheaper than this are treated as absent (self loops, coincident nodes).
MIN_EDGE_WEIGHT = 1e-6


def distance_heuristic(node: NDArray[np.float64], goal: NDArray[np.float64]) -> float:
    """Straight-line distance to the goal."""
    return float(np.linalg.norm(node - goal))


def dijkstra_heuristic(node: NDArray[np.float64], goal: NDArray[np.float64]) -> float:
    """Zero everywhere, degrading A* to Dijkstra's algorithm."""
    return 0.0


HEURISTICS: Dict[str, Heuristic] = {
    "distance": distance_heuristic,
    "dijkstra": dijkstra_heuristic,
}


def get_heuristic(name: str) -> Heuristic:
    """
    Look up a heuristic by name.

    Raises:
        ValueError: If the name is unknown
    """
    try:
        return HEURISTICS[name]
    except KeyError:
        raise ValueError(f"Unknown heuristic '{name}', expected one of {sorted(HEURISTICS)}")


@dataclass
class SearchResult:
    """
    Outcome of a successful search.

    Attributes:
        path: Node indices from start to goal, inclusive
        cost: Sum of edge weights along the path
        steps_taken: Number of nodes expanded before the goal was popped
    """

    path: List[int]
    cost: float
    steps_taken: int


def find_shortest_path(
    positions: Sequence[NDArray[np.float64]],
    weights: Weights,
    start: int,
    goal: int,
    heuristic: Heuristic = distance_heuristic,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> SearchResult:
    """
    Find the cheapest path from ``start`` to ``goal``.

    Every node with a finite edge weight above 1e-6 is a neighbor. Ties in
    the open set are broken by the heap, so identical inputs always produce
    identical paths and step counts.

    Args:
        positions: Node positions, passed to the heuristic
        weights: Square matrix, ``weights[x, y]`` is the cost from x to y
        start: Start node index
        goal: Goal node index
        heuristic: Estimate of the remaining cost, must not overestimate
            for the result to be optimal
        max_steps: Maximum number of node expansions

    Returns:
        SearchResult with the node path, its cost and the steps taken

    Raises:
        ValueError: If the matrix is not square over the positions
        IndexError: If start or goal is out of range
        SearchExhaustedError: If the goal is unreachable
        StepLimitExceededError: If max_steps expansions did not reach the goal
    """
    num_nodes = len(positions)
    if weights.width != num_nodes or weights.height != num_nodes:
        raise ValueError(
            f"Weights are {weights.width}x{weights.height}, expected {num_nodes}x{num_nodes}"
        )
    if not (0 <= start < num_nodes and 0 <= goal < num_nodes):
        raise IndexError(f"start={start} or goal={goal} out of range for {num_nodes} nodes")

    # came_from[a] = b if a was reached from b
    came_from = np.full(num_nodes, -1, dtype=np.int64)
    g_score = np.full(num_nodes, math.inf)
    f_score = np.full(num_nodes, math.inf)
    open_set = MinHeap(num_nodes)

    g_score[start] = 0.0
    f_score[start] = heuristic(positions[start], positions[goal])
    open_set.insert(start, f_score[start])

    step = 0
    while step < max_steps:
        if len(open_set) == 0:
            break

        current = open_set.extract_min()
        if current == goal:
            path = _reconstruct_path(came_from, start, goal)
            logger.debug(
                f"Path found: {len(path)} nodes, cost {g_score[goal]:.3f}, {step} steps"
            )
            return SearchResult(path=path, cost=float(g_score[goal]), steps_taken=step)

        for neighbor in range(num_nodes):
            if neighbor == current:
                continue
            weight = weights.get(current, neighbor)
            if math.isinf(weight) or weight < MIN_EDGE_WEIGHT:
                continue
            tentative_g_score = g_score[current] + weight
            if tentative_g_score >= g_score[neighbor]:
                continue
            came_from[neighbor] = current
            g_score[neighbor] = tentative_g_score
            f_score[neighbor] = tentative_g_score + heuristic(positions[neighbor], positions[goal])
            open_set.insert_or_update(neighbor, f_score[neighbor])

        step += 1

    if len(open_set) == 0:
        logger.warning(f"No path from {start} to {goal} after {step} steps")
        raise SearchExhaustedError(
            f"No path from node {start} to node {goal}",
            steps_taken=step,
            details={"start": start, "goal": goal},
        )

    logger.warning(f"Search from {start} to {goal} exceeded {max_steps} steps")
    raise StepLimitExceededError(
        f"Search exceeded {max_steps} steps",
        steps_taken=step,
        max_steps=max_steps,
        details={"start": start, "goal": goal},
    )


def _reconstruct_path(came_from: NDArray[np.int64], start: int, goal: int) -> List[int]:
    path = []
    current = goal
    # bounded by the node count to rule out cycles in came_from
    for _ in range(len(came_from)):
        if current == start:
            break
        path.append(current)
        current = int(came_from[current])
    path.append(start)
    path.reverse()
    return path


def path_cost(weights: Weights, path: Sequence[int]) -> float:
    """Sum of edge weights along a node path."""
    return float(sum(weights.get(path[i], path[i + 1]) for i in range(len(path) - 1)))
