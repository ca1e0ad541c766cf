"""
Reconstruction of a continuous oriented path from a graph node path.

Consecutive node pairs are stitched according to how they are related:
- two entry/exit points on the same road: the road samples between them
- the two anchors a road connects: the whole road
- an entry/exit point and an anchor bound to its road: the road samples
  between them
- anything else: a straight line

Finally the path is extended with straight connectors to the queried
positions when it ends too far away from them.
"""

import logging
import math
from typing import List, Sequence, Tuple

from roadnav.core.roads.bezier import (
    FORWARD,
    UP,
    OrientedPoint,
    Vector,
    as_vector,
    cumulative_distances,
    distance,
    lerp,
    normalize,
)
from roadnav.core.roads.graph import AnchorNode, EntryExitNode, GraphNode
from roadnav.core.roads.network import Road, RoadAnchor

logger = logging.getLogger(__name__)

# Points closer than this to the previous path point are dropped.
DUPLICATE_EPSILON = 1e-6


def generate_smooth_path(
    start_position: Vector,
    goal_position: Vector,
    nodes: Sequence[GraphNode],
    step_size: float = 1.0,
    min_distance_to_connect: float = 10.0,
    only_nodes: bool = False,
    subdivide_straight_lines: bool = False,
    resolution: float = 1.0,
) -> List[OrientedPoint]:
    """
    Turn a node path into oriented points.

    Args:
        start_position: Queried start world position
        goal_position: Queried goal world position
        nodes: Node path from the graph search
        step_size: Spacing of road samples and subdivided straight lines
        min_distance_to_connect: Path ends at least this far from the queried
            positions get straight connectors to them
        only_nodes: Return one point per node, for debugging
        subdivide_straight_lines: Add points every ``step_size`` on straight parts
        resolution: Sampling resolution passed to the road resampling

    Returns:
        Oriented points from start to goal
    """
    if only_nodes:
        return [OrientedPoint(node.position.copy(), FORWARD.copy(), UP.copy()) for node in nodes]

    path: List[OrientedPoint] = []

    for node, next_node in zip(nodes, nodes[1:]):
        if (
            isinstance(node, EntryExitNode)
            and isinstance(next_node, EntryExitNode)
            and node.road is not None
            and node.road is next_node.road
        ):
            _extend(path, _between_on_road(node, next_node, step_size, resolution))
        elif (
            isinstance(node, AnchorNode)
            and isinstance(next_node, AnchorNode)
            and node.anchor is not next_node.anchor
            and node.anchor.road is not None
            and node.anchor.road is next_node.anchor.road
        ):
            _extend(path, _whole_road(node.anchor, step_size, resolution))
        elif (
            isinstance(node, EntryExitNode)
            and isinstance(next_node, AnchorNode)
            and node.road is not None
            and node.road is next_node.anchor.road
        ):
            _extend(path, _road_part(node, next_node.anchor, True, step_size, resolution))
        elif (
            isinstance(node, AnchorNode)
            and isinstance(next_node, EntryExitNode)
            and next_node.road is not None
            and node.anchor.road is next_node.road
        ):
            _extend(path, _road_part(next_node, node.anchor, False, step_size, resolution))
        else:
            _extend(path, _straight_line(node, next_node, step_size, subdivide_straight_lines))

    if path:
        _connect_to_query(
            path,
            as_vector(start_position),
            as_vector(goal_position),
            step_size,
            min_distance_to_connect,
        )

    return path


def _extend(path: List[OrientedPoint], points: List[OrientedPoint]) -> None:
    # a segment usually starts where the previous one ended
    if path and points and distance(path[-1].position, points[0].position) < DUPLICATE_EPSILON:
        points = points[1:]
    path.extend(points)


def _road_samples(
    road: Road, step_size: float, resolution: float
) -> Tuple[List[OrientedPoint], List[float]]:
    samples = road.get_evenly_spaced_points(step_size, resolution)
    return samples, cumulative_distances(samples)


def _orientation_at(
    samples: List[OrientedPoint], distances: List[float], along: float
) -> OrientedPoint:
    """Interpolated sample orientation at a distance along the sample polyline."""
    if along <= distances[0] or len(samples) == 1:
        return samples[0].copy()
    for i in range(1, len(samples)):
        if along <= distances[i]:
            span = distances[i] - distances[i - 1]
            t = 0.0 if span == 0.0 else (along - distances[i - 1]) / span
            a = samples[i - 1]
            b = samples[i]
            return OrientedPoint(
                lerp(a.position, b.position, t),
                normalize(lerp(a.forward, b.forward, t)),
                normalize(lerp(a.normal, b.normal, t)),
            )
    return samples[-1].copy()


def _between_on_road(
    node: EntryExitNode, next_node: EntryExitNode, step_size: float, resolution: float
) -> List[OrientedPoint]:
    samples, distances = _road_samples(node.road, step_size, resolution)
    reverse = node.distance_along > next_node.distance_along
    low = min(node.distance_along, next_node.distance_along)
    high = max(node.distance_along, next_node.distance_along)

    inner = [samples[i] for i, d in enumerate(distances) if low < d < high]
    first = _orientation_at(samples, distances, node.distance_along)
    last = _orientation_at(samples, distances, next_node.distance_along)
    points = (
        [OrientedPoint(node.position.copy(), first.forward, first.normal)]
        + inner[::-1 if reverse else 1]
        + [OrientedPoint(next_node.position.copy(), last.forward, last.normal)]
    )
    return [point.reversed() for point in points] if reverse else points


def _whole_road(anchor: RoadAnchor, step_size: float, resolution: float) -> List[OrientedPoint]:
    road, forward = anchor.get_connected_road()
    samples = road.get_evenly_spaced_points(step_size, resolution)
    if forward:
        return samples
    return [point.reversed() for point in reversed(samples)]


def _road_part(
    entry: EntryExitNode,
    anchor: RoadAnchor,
    entry_first: bool,
    step_size: float,
    resolution: float,
) -> List[OrientedPoint]:
    """
    Road samples between an entry/exit point and one of the road's anchors.

    Args:
        entry: Entry/exit node on the road
        anchor: Anchor bound to one end of the road
        entry_first: Whether the path goes from the entry point to the anchor
    """
    road = entry.road
    from_start = road.start is anchor
    samples, distances = _road_samples(road, step_size, resolution)

    if from_start:
        part = [samples[i] for i, d in enumerate(distances) if d < entry.distance_along]
    else:
        part = [samples[i] for i, d in enumerate(distances) if d > entry.distance_along]

    # part runs in road direction; flip it when travelling against the road
    reverse = entry_first == from_start
    if reverse:
        part = [point.reversed() for point in reversed(part)]

    at_entry = _orientation_at(samples, distances, entry.distance_along)
    if reverse:
        at_entry = at_entry.reversed()
    entry_point = OrientedPoint(entry.position.copy(), at_entry.forward, at_entry.normal)

    if entry_first:
        return [entry_point] + part
    return part + [entry_point]


def _straight_line(
    node: GraphNode, next_node: GraphNode, step_size: float, subdivide: bool
) -> List[OrientedPoint]:
    start = node.position
    end = next_node.position
    start_up = node.up
    end_up = next_node.up
    dist = distance(start, end)
    direction = normalize(end - start)
    if not direction.any():
        direction = FORWARD.copy()

    count = math.ceil(dist / step_size) + 1 if subdivide else 2
    points = []
    for i in range(count):
        travelled = dist * i / max(1, count - 1)
        fraction = travelled / dist if dist > 0 else 0.0
        points.append(
            OrientedPoint(
                start + direction * travelled,
                direction.copy(),
                normalize(lerp(start_up, end_up, fraction)),
            )
        )
    return points


def _connect_to_query(
    path: List[OrientedPoint],
    start_position: Vector,
    goal_position: Vector,
    step_size: float,
    min_distance_to_connect: float,
) -> None:
    for at_start in (True, False):
        target = start_position if at_start else goal_position
        point = path[0] if at_start else path[-1]
        dst = distance(target, point.position)
        if dst <= 0.0 or dst < min_distance_to_connect:
            continue

        count = max(1, int(dst / step_size))
        forward = normalize(point.position - target) if at_start else normalize(target - point.position)
        connector = []
        # i = 0 lands exactly on the queried position
        for i in range(count - 1, -1, -1):
            position = lerp(target, point.position, i / count)
            connector.append(OrientedPoint(position, forward.copy(), point.normal.copy()))

        if at_start:
            path[0:0] = connector[::-1]
        else:
            path.extend(connector)
        logger.debug(f"Added {count} connector points at the {'start' if at_start else 'goal'}")

