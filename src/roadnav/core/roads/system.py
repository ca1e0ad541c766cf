"""
Road system: the entry point for graph construction and path queries.

A ``RoadSystem`` owns the intersections and roads of one network and the
graph built from them. Rebuilding swaps in a new ``RoadGraph`` instance, and
every query works on the instance it started with, so queries running during
a rebuild finish against the previous graph.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import ArrayLike
from shapely.geometry import LineString

from roadnav.core.config import NavigationConfig
from roadnav.core.errors import GraphNotBuiltError, InvalidQueryError, MatrixSizeMismatchError
from roadnav.core.roads.bezier import (
    OrientedPoint,
    Vector,
    as_vector,
    distance,
    polyline_length,
)
from roadnav.core.roads.graph import (
    Edge,
    EntryExitNode,
    GraphNode,
    RoadGraph,
    plan_coordinates,
)
from roadnav.core.roads.network import Intersection, Road, RoadAnchor
from roadnav.core.roads.pathfinding import get_heuristic
from roadnav.core.roads.reconstruction import generate_smooth_path
from roadnav.utils.logging import QueryTimer

logger = logging.getLogger(__name__)


@dataclass
class FeatureProjection:
    """
    Closest point on a road or on an intersection-anchor line.

    Attributes:
        distance: Distance from the queried position (vertical axis scaled)
        feature: Road or anchor the point lies on, None if nothing was found
        point: Closest point
        distance_along: Distance along the road, or from the hub towards the anchor
        intersection: Intersection of the anchor, for anchor projections
    """

    distance: float
    feature: Optional[Union[Road, RoadAnchor]]
    point: Vector
    distance_along: float
    intersection: Optional[Intersection] = None


@dataclass
class NavigationPath:
    """
    Result of a path query.

    Attributes:
        points: Oriented samples from start to goal
        nodes: Graph nodes the path passes through
        steps_taken: Node expansions of the search
        total_cost: Graph cost of the node path
    """

    points: List[OrientedPoint]
    nodes: List[GraphNode] = field(default_factory=list)
    steps_taken: int = 0
    total_cost: float = 0.0

    @property
    def total_length(self) -> float:
        return polyline_length(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def get_geometry(self) -> LineString:
        """
        Get path as Shapely LineString.

        Returns:
            LineString in ``(x, z, y)`` coordinates, empty for fewer than 2 points
        """
        if len(self.points) < 2:
            return LineString()
        return LineString([plan_coordinates(point.position) for point in self.points])

    def get_waypoints(self) -> List[Tuple[float, float, float]]:
        """World positions as ``(x, y, z)`` tuples."""
        return [tuple(float(c) for c in point.position) for point in self.points]

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert path to dictionary.

        Returns:
            Dictionary representation
        """
        return {
            "num_points": len(self.points),
            "num_nodes": len(self.nodes),
            "steps_taken": int(self.steps_taken),
            "total_cost": float(self.total_cost),
            "total_length": float(self.total_length),
            "waypoints": self.get_waypoints(),
            "node_types": [node.node_type.value for node in self.nodes],
        }


class RoadSystem:
    """
    A network of roads and intersections with shortest-path queries.

    Example:
        >>> hub = Intersection.radial((0, 0, 0), num_anchors=4, radius=2.0)
        >>> system = RoadSystem(intersections=[hub])
        >>> system.construct_graph()
        >>> path = system.find_path((0, 0, 5), (5, 0, 0))
    """

    def __init__(
        self,
        intersections: Optional[Sequence[Intersection]] = None,
        roads: Optional[Sequence[Road]] = None,
        config: Optional[NavigationConfig] = None,
    ):
        """
        Initialize the road system.

        Args:
            intersections: Initial intersections
            roads: Initial roads
            config: Default options for construction and queries, read from
                the environment when omitted
        """
        self.intersections: List[Intersection] = list(intersections or [])
        self.roads: List[Road] = list(roads or [])
        self.config = config or NavigationConfig.from_settings()
        self._graph: Optional[RoadGraph] = None

    @property
    def graph(self) -> Optional[RoadGraph]:
        return self._graph

    def add_intersection(self, intersection: Intersection) -> Intersection:
        self.intersections.append(intersection)
        return intersection

    def add_road(self, road: Road) -> Road:
        self.roads.append(road)
        return road

    def node_count(self) -> int:
        """Number of persistent graph nodes the current network needs."""
        return sum(1 + len(intersection.anchors) for intersection in self.intersections)

    def get_min_distance_to_road(
        self,
        position: ArrayLike,
        step_size: float,
        y_scale: float = 1.0,
        resolution: float = 1.0,
    ) -> FeatureProjection:
        """
        Closest point on any road.

        Roads whose bounding box is farther away than the best match so far
        are skipped.

        Returns:
            FeatureProjection with ``feature`` set to the road, or None and an
            infinite distance if there are no roads
        """
        position = as_vector(position)
        best = FeatureProjection(math.inf, None, position.copy(), 0.0)

        for road in self.roads:
            if not road.is_maybe_closer(position, best.distance, y_scale):
                continue
            dst, point, along = road.get_min_distance(position, step_size, y_scale, resolution)
            if dst < best.distance:
                best = FeatureProjection(dst, road, point, along)

        return best

    def get_min_distance_to_intersection(
        self, position: ArrayLike, y_scale: float = 1.0
    ) -> FeatureProjection:
        """
        Closest point on any line from an intersection hub to one of its anchors.

        Intersections whose hub, minus the reach of its anchors, is farther
        away than the best match so far are skipped.

        Returns:
            FeatureProjection with ``feature`` set to the anchor, or None and
            an infinite distance if there are no anchors
        """
        position = as_vector(position)
        scale = as_vector((1.0, y_scale, 1.0))
        best = FeatureProjection(math.inf, None, position.copy(), 0.0)

        for intersection in self.intersections:
            hub = intersection.position
            hub_distance = float(np.linalg.norm((hub - position) * scale))
            if hub_distance - intersection.reach * max(1.0, y_scale) >= best.distance:
                continue

            for anchor in intersection.anchors:
                line = anchor.position - hub
                length = float(np.linalg.norm(line))
                if length == 0.0:
                    along = 0.0
                    closest = hub.copy()
                else:
                    direction = line / length
                    along = float(np.clip(np.dot(position - hub, direction), 0.0, length))
                    closest = hub + direction * along
                dst = float(np.linalg.norm((position - closest) * scale))
                if dst < best.distance:
                    best = FeatureProjection(dst, anchor, closest, along, intersection)

        return best

    def construct_graph(self) -> RoadGraph:
        """
        Rebuild the graph from the current intersections and roads.

        Returns:
            The new graph

        Raises:
            MalformedRoadError: If a road is malformed; the previous graph
                stays in place
        """
        graph = RoadGraph(distance_factor=self.config.distance_factor)
        graph.construct(self.intersections, self.roads)
        self._graph = graph
        return graph

    def rebuild_all_roads(self) -> RoadGraph:
        """Re-snap every road to its anchors, drop sample caches and rebuild the graph."""
        for road in self.roads:
            road.snap_to_anchors()
        logger.info(f"Rebuilding {len(self.roads)} roads")
        return self.construct_graph()

    def get_graph_edges(self) -> List[Edge]:
        """
        All persistent edges with their costs, for debug display.

        Raises:
            GraphNotBuiltError: If the graph was never constructed
        """
        graph = self._graph
        if graph is None:
            raise GraphNotBuiltError()
        return graph.get_edges()

    def _resolve_endpoint(
        self, position: Vector, config: NavigationConfig, endpoint: str
    ) -> EntryExitNode:
        on_road = self.get_min_distance_to_road(
            position, config.step_size, config.y_scale, config.resolution
        )
        on_intersection = self.get_min_distance_to_intersection(position, config.y_scale)

        if on_road.feature is None and on_intersection.feature is None:
            raise InvalidQueryError(
                f"No road or intersection anchor found for the {endpoint} position",
                endpoint=endpoint,
                details={"position": position.tolist()},
            )

        projection = on_road if on_road.distance < on_intersection.distance else on_intersection
        return EntryExitNode(projection.point, projection.feature, projection.distance_along)

    def find_path(
        self,
        start: ArrayLike,
        goal: ArrayLike,
        config: Optional[NavigationConfig] = None,
        edges: Optional[List[Edge]] = None,
    ) -> NavigationPath:
        """
        Find the shortest drivable path between two world positions.

        Both positions are projected onto the nearest road or
        intersection-anchor line, the graph is searched between the
        projections and the result is resampled into oriented points that
        start and end exactly at the queried positions.

        Args:
            start: Start world position
            goal: Goal world position
            config: Query options, the system's defaults when omitted
            edges: If given, cleared and filled with the query's edges

        Returns:
            NavigationPath with points, nodes, steps taken and cost

        Raises:
            GraphNotBuiltError: If construct_graph() was never called
            MatrixSizeMismatchError: If the network changed since the last build
            InvalidQueryError: If an endpoint cannot be resolved
            SearchExhaustedError: If the goal is unreachable
            StepLimitExceededError: If the search hits max_search_steps
        """
        graph = self._graph
        if graph is None:
            raise GraphNotBuiltError()

        expected = self.node_count()
        if expected != graph.node_count:
            raise MatrixSizeMismatchError(
                "Road network changed since the graph was built",
                expected=expected,
                actual=graph.node_count,
            )

        config = config or self.config
        start_position = as_vector(start)
        goal_position = as_vector(goal)

        start_node = self._resolve_endpoint(start_position, config, "start")
        goal_node = self._resolve_endpoint(goal_position, config, "goal")

        with QueryTimer() as query:
            nodes, result = graph.find_path_nodes(
                start_node,
                goal_node,
                heuristic=get_heuristic(config.heuristic),
                max_steps=config.max_search_steps,
                edges=edges,
            )
            query.record(result.steps_taken, len(nodes), result.cost)
            points = generate_smooth_path(
                start_position,
                goal_position,
                nodes,
                step_size=config.step_size,
                min_distance_to_connect=config.min_distance_to_connect,
                subdivide_straight_lines=config.subdivide_straight_lines,
                resolution=config.resolution,
            )

        logger.debug(
            f"Query {query.query_id}: {len(points)} points, direct distance {distance(start_position, goal_position):.3f}"
        )
        return NavigationPath(
            points=points,
            nodes=nodes,
            steps_taken=result.steps_taken,
            total_cost=result.cost,
        )
