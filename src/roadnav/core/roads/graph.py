"""
Road network graph over intersections and anchors.

The persistent graph has one node per intersection followed by one node per
anchor of that intersection. Edge weights are:
- straight-line distance between an anchor and its intersection
- arc length of a road between the two anchors it connects
- straight-line distance times ``distance_factor`` for every other pair, so
  disconnected islands can still be crossed

A query adds two transient entry/exit nodes for the projected start and goal
through an ``OverlayMatrix`` and runs the A* search on it. The persistent
matrix is only read during a query.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

import numpy as np
from shapely.geometry import LineString, Point as ShapelyPoint, mapping

try:
    import networkx as nx
except ImportError:
    raise ImportError(
        "NetworkX is required for road graph export. "
        "Install it with: pip install networkx"
    )

from roadnav.core.errors import MalformedRoadError, MatrixSizeMismatchError
from roadnav.core.roads.bezier import UP, Vector, as_vector, distance
from roadnav.core.roads.matrix import OverlayMatrix, WeightMatrix
from roadnav.core.roads.network import Intersection, Road, RoadAnchor
from roadnav.core.roads.pathfinding import (
    DEFAULT_MAX_STEPS,
    Heuristic,
    SearchResult,
    distance_heuristic,
    find_shortest_path,
)
from roadnav.utils.logging import log_graph_build

logger = logging.getLogger(__name__)

# Transient nodes closer than this to a related node are moved away.
COINCIDENCE_THRESHOLD = 1e-3

# Bounds of the debug edge listing; fallback edges are usually above the upper bound.
MIN_DEBUG_EDGE_COST = 1e-3
MAX_DEBUG_EDGE_COST = 5e3

START_INDEX = 0
GOAL_INDEX = 1
NUM_TRANSIENT_NODES = 2


class NodeType(str, Enum):
    """Kind of graph node."""

    INTERSECTION = "intersection"
    ANCHOR = "anchor"
    ENTRY_EXIT = "entry_exit"


@dataclass(eq=False)
class IntersectionNode:
    """Persistent node at an intersection hub."""

    intersection: Intersection
    position: Vector

    node_type = NodeType.INTERSECTION

    @property
    def up(self) -> Vector:
        return self.intersection.up

    @property
    def name(self) -> str:
        return self.intersection.name


@dataclass(eq=False)
class AnchorNode:
    """Persistent node at an intersection anchor."""

    anchor: RoadAnchor
    position: Vector

    node_type = NodeType.ANCHOR

    @property
    def up(self) -> Vector:
        return self.anchor.up

    @property
    def name(self) -> str:
        return self.anchor.name


@dataclass(eq=False)
class EntryExitNode:
    """
    Transient node for a query endpoint.

    Attributes:
        position: Projected world position
        feature: Road the point lies on, or anchor whose hub-anchor line it lies on
        distance_along: Distance from the road start, or from the hub
            towards the anchor
    """

    position: Vector
    feature: Union[Road, RoadAnchor]
    distance_along: float

    node_type = NodeType.ENTRY_EXIT

    def __post_init__(self) -> None:
        self.position = as_vector(self.position)

    @property
    def road(self) -> Optional[Road]:
        return self.feature if isinstance(self.feature, Road) else None

    @property
    def anchor(self) -> Optional[RoadAnchor]:
        return self.feature if isinstance(self.feature, RoadAnchor) else None

    @property
    def up(self) -> Vector:
        anchor = self.anchor
        return anchor.up if anchor is not None else UP

    @property
    def name(self) -> str:
        return f"entry_exit({self.feature.name}@{self.distance_along:.3f})"

    def copy(self) -> "EntryExitNode":
        return EntryExitNode(self.position.copy(), self.feature, self.distance_along)


GraphNode = Union[IntersectionNode, AnchorNode, EntryExitNode]


@dataclass
class Edge:
    """Directed edge for debug display."""

    start: Vector
    end: Vector
    cost: float


def plan_coordinates(position: Vector) -> Tuple[float, float, float]:
    """World position as ``(x, z, y)``: ground plane first, height last."""
    return float(position[0]), float(position[2]), float(position[1])


class RoadGraph:
    """
    Dense weighted graph of a road system.

    A graph instance is immutable once constructed; rebuilding the network
    produces a new instance so running queries keep a consistent view.
    """

    def __init__(self, distance_factor: float = 1000.0):
        """
        Initialize an empty graph.

        Args:
            distance_factor: Cost per unit of straight-line distance for
                pairs without a physical connection
        """
        self.distance_factor = distance_factor
        self.nodes: List[GraphNode] = []
        self.weights: Optional[WeightMatrix] = None
        self._intersection_index: Dict[Intersection, int] = {}
        self._anchor_index: Dict[RoadAnchor, int] = {}
        self._physical_edges: Set[Tuple[int, int]] = set()
        self.num_fallback_edges = 0

    @property
    def is_built(self) -> bool:
        return self.weights is not None

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def index_of(self, feature: Union[Intersection, RoadAnchor, None]) -> int:
        """Node index of an intersection or anchor, -1 when absent."""
        if feature is None:
            return -1
        if isinstance(feature, Intersection):
            return self._intersection_index.get(feature, -1)
        return self._anchor_index.get(feature, -1)

    @log_graph_build(threshold_ms=100)
    def construct(self, intersections: Sequence[Intersection], roads: Sequence[Road]) -> None:
        """
        Build nodes and weights from scratch.

        Args:
            intersections: All intersections of the system
            roads: All roads of the system

        Raises:
            MalformedRoadError: If any road is malformed; nothing is built
        """
        for road in roads:
            try:
                road.validate()
            except MalformedRoadError:
                logger.warning(f"Rejecting graph build, road '{road.name}' is malformed")
                raise

        nodes: List[GraphNode] = []
        intersection_index: Dict[Intersection, int] = {}
        anchor_index: Dict[RoadAnchor, int] = {}
        physical_edges: Set[Tuple[int, int]] = set()

        count = sum(1 + len(intersection.anchors) for intersection in intersections)
        weights = WeightMatrix(count, count, fill_value=math.inf)

        for intersection in intersections:
            index = len(nodes)
            intersection_index[intersection] = index
            nodes.append(IntersectionNode(intersection, intersection.position.copy()))
            for anchor in intersection.anchors:
                anchor_node = AnchorNode(anchor, anchor.position.copy())
                anchor_index[anchor] = len(nodes)
                weights.set_symmetric(
                    index, len(nodes), distance(nodes[index].position, anchor_node.position)
                )
                physical_edges.add((index, len(nodes)))
                nodes.append(anchor_node)

        for road in roads:
            if road.start is None or road.end is None:
                continue
            start_index = anchor_index.get(road.start, -1)
            end_index = anchor_index.get(road.end, -1)
            if start_index == -1 or end_index == -1:
                continue
            weights.set_symmetric(start_index, end_index, road.get_length())
            physical_edges.add((min(start_index, end_index), max(start_index, end_index)))

        positions = np.array([node.position for node in nodes]).reshape(count, 3)
        flat = weights.as_flat().reshape(count, count)
        # pairwise distances, symmetric, so row/column order does not matter
        fallback = (
            np.linalg.norm(positions[:, None, :] - positions[None, :, :], axis=-1)
            * self.distance_factor
        )
        missing = np.isinf(flat)
        flat[missing] = fallback[missing]
        num_fallback = int(np.count_nonzero(np.triu(missing, k=1)))

        self.nodes = nodes
        self.weights = weights
        self._intersection_index = intersection_index
        self._anchor_index = anchor_index
        self._physical_edges = physical_edges
        self.num_fallback_edges = num_fallback

        logger.info(
            f"Road graph constructed: {count} nodes, {len(physical_edges)} edges, "
            f"{num_fallback} fallback edges"
        )

    def get_edges(
        self,
        min_cost: float = MIN_DEBUG_EDGE_COST,
        max_cost: float = MAX_DEBUG_EDGE_COST,
    ) -> List[Edge]:
        """
        All directed edges with ``min_cost < cost < max_cost``, for debug display.
        """
        if self.weights is None:
            return []
        return _collect_edges(self.nodes, self.weights, min_cost, max_cost)

    def find_path_nodes(
        self,
        start: EntryExitNode,
        goal: EntryExitNode,
        heuristic: Heuristic = distance_heuristic,
        max_steps: int = DEFAULT_MAX_STEPS,
        edges: Optional[List[Edge]] = None,
    ) -> Tuple[List[GraphNode], SearchResult]:
        """
        Shortest node path between two projected query points.

        The transient nodes go to indices 0 and 1 in front of the persistent
        nodes. Nodes closer than 1e-3 to a related persistent node are moved
        by 1e-3 along every axis, with their distance along the feature moved
        inwards by the same amount, so no transient edge collapses to zero.

        Args:
            start: Projected start
            goal: Projected goal
            heuristic: A* heuristic
            max_steps: Iteration cap of the search
            edges: If given, cleared and filled with this query's edges

        Returns:
            The node path and the raw search result

        Raises:
            MatrixSizeMismatchError: If the weights do not match the node set
            SearchExhaustedError: If the goal is unreachable
            StepLimitExceededError: If the search hits ``max_steps``
        """
        weights = self.weights
        nodes = self.nodes
        if weights is None:
            raise MatrixSizeMismatchError("Weights have not been built", expected=len(nodes), actual=0)
        if weights.width != len(nodes) or weights.height != len(nodes):
            raise MatrixSizeMismatchError(
                "Weight matrix size does not match node count",
                expected=len(nodes),
                actual=weights.width,
            )

        start = start.copy()
        goal = goal.copy()

        if distance(start.position, goal.position) < COINCIDENCE_THRESHOLD:
            logger.debug("Start and goal coincide, skipping search")
            if edges is not None:
                edges.clear()
            return [start, goal], SearchResult(path=[START_INDEX, GOAL_INDEX], cost=0.0, steps_taken=0)

        offset = NUM_TRANSIENT_NODES
        for node in (start, goal):
            self._separate_from_related(node, offset)

        all_nodes: List[GraphNode] = [start, goal] + nodes
        size = len(all_nodes)

        with OverlayMatrix(weights, offset, offset, size, size) as overlay:
            for transient_index, node in ((START_INDEX, start), (GOAL_INDEX, goal)):
                for i, other in enumerate(all_nodes):
                    overlay.set_symmetric(
                        i,
                        transient_index,
                        distance(node.position, other.position) * self.distance_factor,
                    )

            for transient_index, node in ((START_INDEX, start), (GOAL_INDEX, goal)):
                self._connect_transient(overlay, all_nodes, transient_index, node, offset)

            if start.road is not None and start.road is goal.road:
                overlay.set_symmetric(
                    START_INDEX, GOAL_INDEX, abs(start.distance_along - goal.distance_along)
                )
            elif start.anchor is not None and start.anchor is goal.anchor:
                overlay.set_symmetric(
                    START_INDEX, GOAL_INDEX, distance(start.position, goal.position)
                )

            if edges is not None:
                edges.clear()
                edges.extend(
                    _collect_edges(all_nodes, overlay, MIN_DEBUG_EDGE_COST, MAX_DEBUG_EDGE_COST)
                )

            positions = [node.position for node in all_nodes]
            result = find_shortest_path(
                positions, overlay, START_INDEX, GOAL_INDEX, heuristic=heuristic, max_steps=max_steps
            )

        logger.debug(
            f"Query path: {len(result.path)} nodes, cost {result.cost:.3f}, "
            f"{result.steps_taken} steps"
        )
        return [all_nodes[i] for i in result.path], result

    def _related_indices(self, node: EntryExitNode) -> List[Tuple[int, float]]:
        """
        Persistent nodes a transient node connects to, each with the distance
        along the feature at which that node sits.
        """
        road = node.road
        if road is not None:
            return [
                (self.index_of(road.start), 0.0),
                (self.index_of(road.end), road.get_length()),
            ]
        anchor = node.anchor
        hub = anchor.intersection
        along_anchor = distance(hub.position, anchor.position) if hub is not None else 0.0
        return [
            (self.index_of(anchor), along_anchor),
            (self.index_of(hub), 0.0),
        ]

    def _separate_from_related(self, node: EntryExitNode, offset: int) -> None:
        for index, along in self._related_indices(node):
            if index == -1:
                continue
            other = self.nodes[index]
            if distance(other.position, node.position) >= COINCIDENCE_THRESHOLD:
                continue
            node.position = node.position + np.ones(3) * COINCIDENCE_THRESHOLD
            # move inwards along the feature: up from its start, down from its end
            if along == 0.0:
                node.distance_along += COINCIDENCE_THRESHOLD
            else:
                node.distance_along -= COINCIDENCE_THRESHOLD
            logger.debug(f"Moved {node.name} away from coincident node {other.name} at {index + offset}")

    def _connect_transient(
        self,
        overlay: OverlayMatrix,
        all_nodes: List[GraphNode],
        transient_index: int,
        node: EntryExitNode,
        offset: int,
    ) -> None:
        road = node.road
        if road is not None:
            start_index = self.index_of(road.start)
            end_index = self.index_of(road.end)
            if start_index != -1:
                overlay.set_symmetric(start_index + offset, transient_index, node.distance_along)
            if end_index != -1:
                overlay.set_symmetric(
                    end_index + offset, transient_index, road.get_length() - node.distance_along
                )
            return

        anchor = node.anchor
        for index in (self.index_of(anchor), self.index_of(anchor.intersection)):
            if index == -1:
                continue
            overlay.set_symmetric(
                index + offset,
                transient_index,
                distance(all_nodes[index + offset].position, node.position),
            )

    def get_graph_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the road graph.

        Connectivity is computed over physical edges only; fallback edges
        would always make the graph connected.

        Returns:
            Dictionary with graph statistics
        """
        if not self.nodes:
            return {
                "num_nodes": 0,
                "num_edges": 0,
                "num_fallback_edges": 0,
                "is_connected": False,
                "num_components": 0,
                "avg_degree": 0.0,
            }

        graph = self.to_networkx()
        return {
            "num_nodes": graph.number_of_nodes(),
            "num_edges": graph.number_of_edges(),
            "num_fallback_edges": self.num_fallback_edges,
            "is_connected": nx.is_connected(graph),
            "num_components": nx.number_connected_components(graph),
            "avg_degree": sum(dict(graph.degree()).values()) / graph.number_of_nodes(),
            "intersection_nodes": len(self._intersection_index),
            "anchor_nodes": len(self._anchor_index),
        }

    def to_networkx(self, include_fallback: bool = False) -> nx.Graph:
        """
        Convert to an undirected networkx graph.

        Nodes are keyed by index and carry ``node_type``, ``name`` and
        ``position``; edges carry ``weight`` and ``fallback``.

        Args:
            include_fallback: Also add the synthesized fallback edges
        """
        graph = nx.Graph()
        for i, node in enumerate(self.nodes):
            graph.add_node(
                i,
                node_type=node.node_type.value,
                name=node.name,
                position=tuple(float(c) for c in node.position),
            )
        if self.weights is None:
            return graph

        count = len(self.nodes)
        for i in range(count):
            for j in range(i + 1, count):
                is_fallback = (i, j) not in self._physical_edges
                if is_fallback and not include_fallback:
                    continue
                graph.add_edge(i, j, weight=self.weights.get(i, j), fallback=is_fallback)
        return graph

    def export_to_geojson(self) -> Dict[str, Any]:
        """
        Export nodes and physical edges to GeoJSON.

        Coordinates are ``(x, z, y)``: the ground plane with height as the
        third component.

        Returns:
            GeoJSON FeatureCollection
        """
        features = []

        for i, node in enumerate(self.nodes):
            features.append(
                {
                    "type": "Feature",
                    "geometry": mapping(ShapelyPoint(plan_coordinates(node.position))),
                    "properties": {
                        "id": i,
                        "name": node.name,
                        "node_type": node.node_type.value,
                        "type": "node",
                    },
                }
            )

        if self.weights is not None:
            for i, j in sorted(self._physical_edges):
                line = LineString(
                    [plan_coordinates(self.nodes[i].position), plan_coordinates(self.nodes[j].position)]
                )
                features.append(
                    {
                        "type": "Feature",
                        "geometry": mapping(line),
                        "properties": {
                            "from": i,
                            "to": j,
                            "weight": float(self.weights.get(i, j)),
                            "type": "edge",
                        },
                    }
                )

        return {"type": "FeatureCollection", "features": features}


def _collect_edges(
    nodes: Sequence[GraphNode],
    weights: Union[WeightMatrix, OverlayMatrix],
    min_cost: float,
    max_cost: float,
) -> List[Edge]:
    result = []
    for i, source in enumerate(nodes):
        for j, target in enumerate(nodes):
            cost = weights.get(i, j)
            if min_cost < cost < max_cost:
                result.append(Edge(source.position.copy(), target.position.copy(), float(cost)))
    return result
