"""
Road network entities: curved roads, intersections and their anchors.

Roads are chains of cubic Bezier segments. Intersections are hubs with a
fixed set of anchors arranged around them; each anchor can bind one road
endpoint. These entities are authored by external tooling, the navigation
core only reads them and maintains the anchor-road links.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import ArrayLike

from roadnav.core.errors import MalformedRoadError, ValidationError
from roadnav.core.roads.bezier import (
    UP,
    BoundingBox,
    EvenlySpacedPoints,
    OrientedPoint,
    Vector,
    as_vector,
    closest_point_on_polyline,
    get_evenly_spaced_points,
    normalize,
)

# Spacing used to measure a road's arc length.
LENGTH_SAMPLE_SPACING = 0.1


@dataclass(eq=False)
class RoadAnchor:
    """
    Connection point on an intersection.

    Attributes:
        position: World position
        up: Up vector, the roll of a bound road's endpoint
        intersection: Owning intersection
        name: Display name
    """

    position: Vector
    up: Vector = field(default_factory=lambda: UP.copy())
    intersection: Optional["Intersection"] = None
    name: str = ""
    _road: Optional["Road"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.position = as_vector(self.position)
        self.up = normalize(as_vector(self.up))

    @property
    def road(self) -> Optional["Road"]:
        """Road bound to this anchor, if any."""
        return self._road

    def get_connected_road(self) -> Tuple[Optional["Road"], bool]:
        """
        Road bound to this anchor and the side it is bound on.

        Returns:
            ``(road, is_start)``; ``(None, False)`` when unbound
        """
        road = self._road
        if road is None:
            return None, False
        return road, road.start is self

    def disconnect(self) -> None:
        """Release the bound road endpoint, if any."""
        road = self._road
        if road is None:
            return
        if road.start is self:
            road.start = None
        if road.end is self:
            road.end = None
        self._road = None

    def __repr__(self) -> str:
        return f"RoadAnchor(name={self.name!r}, position={self.position.tolist()})"


@dataclass(eq=False)
class Intersection:
    """
    Road intersection: a hub position with anchors arranged around it.

    Attributes:
        position: World position of the hub
        radius: Nominal anchor distance from the hub
        up: Up vector at the hub
        name: Display name
        anchors: Anchor points, in order
    """

    position: Vector
    radius: float = 0.0
    up: Vector = field(default_factory=lambda: UP.copy())
    name: str = ""
    anchors: List[RoadAnchor] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.position = as_vector(self.position)
        self.up = normalize(as_vector(self.up))
        for anchor in self.anchors:
            anchor.intersection = self

    @classmethod
    def radial(
        cls,
        position: ArrayLike,
        num_anchors: int,
        radius: float,
        name: str = "",
        start_angle: float = 0.0,
    ) -> "Intersection":
        """
        Create an intersection with anchors evenly spaced on a horizontal circle.

        Args:
            position: Hub position
            num_anchors: Number of anchors
            radius: Distance of the anchors from the hub
            name: Display name
            start_angle: Angle (degrees) of the first anchor, measured from +X
                towards +Z

        Returns:
            Intersection instance
        """
        intersection = cls(position=as_vector(position), radius=radius, name=name)
        for i in range(num_anchors):
            angle = math.radians(start_angle) + 2.0 * math.pi * i / num_anchors
            offset = np.array([math.cos(angle), 0.0, math.sin(angle)]) * radius
            intersection.add_anchor(intersection.position + offset, name=f"{name}/{i}")
        return intersection

    def add_anchor(
        self, position: ArrayLike, up: Optional[ArrayLike] = None, name: str = ""
    ) -> RoadAnchor:
        """Add an anchor owned by this intersection."""
        anchor = RoadAnchor(
            position=as_vector(position),
            up=as_vector(up) if up is not None else self.up.copy(),
            intersection=self,
            name=name,
        )
        self.anchors.append(anchor)
        return anchor

    @property
    def anchor_points(self) -> List[RoadAnchor]:
        return list(self.anchors)

    @property
    def reach(self) -> float:
        """Farthest extent of the hub-anchor lines, never less than ``radius``."""
        reach = self.radius
        for anchor in self.anchors:
            reach = max(reach, float(np.linalg.norm(anchor.position - self.position)))
        return reach

    def __repr__(self) -> str:
        return (
            f"Intersection(name={self.name!r}, position={self.position.tolist()}, "
            f"anchors={len(self.anchors)})"
        )


class Road:
    """
    A road centerline made of chained cubic Bezier segments.

    Control points are laid out as anchor, out-handle, in-handle, anchor, ...
    so a road with ``n`` segments has ``3n + 1`` points and ``n + 1`` normals.
    Either endpoint can be bound to a ``RoadAnchor``; a bound endpoint follows
    the anchor's position and up vector.

    Resampled points are cached per ``(spacing, resolution)`` until
    ``on_curve_changed`` is called.
    """

    def __init__(
        self,
        control_points: Sequence[ArrayLike],
        normals: Optional[Sequence[ArrayLike]] = None,
        name: str = "",
    ):
        """
        Initialize the road.

        Args:
            control_points: ``3n + 1`` control points
            normals: One normal per anchor, world up when omitted
            name: Display name
        """
        self.name = name
        self._points: List[Vector] = [as_vector(p) for p in control_points]
        num_anchors = (len(self._points) + 2) // 3
        if normals is None:
            self._normals: List[Vector] = [UP.copy() for _ in range(num_anchors)]
        else:
            self._normals = [normalize(as_vector(n)) for n in normals]
        self.start: Optional[RoadAnchor] = None
        self.end: Optional[RoadAnchor] = None
        self._cache: Dict[Tuple[float, float], EvenlySpacedPoints] = {}

    @classmethod
    def straight(
        cls, start: ArrayLike, end: ArrayLike, name: str = "", normal: Optional[ArrayLike] = None
    ) -> "Road":
        """Single-segment road along the line from ``start`` to ``end``."""
        a = as_vector(start)
        b = as_vector(end)
        n = as_vector(normal) if normal is not None else UP.copy()
        return cls([a, a + (b - a) / 3.0, a + 2.0 * (b - a) / 3.0, b], [n, n], name=name)

    @property
    def control_points(self) -> List[Vector]:
        return [p.copy() for p in self._points]

    @property
    def normals(self) -> List[Vector]:
        return [n.copy() for n in self._normals]

    @property
    def num_points(self) -> int:
        return len(self._points)

    @property
    def num_segments(self) -> int:
        return len(self._points) // 3 if len(self._points) >= 4 else 0

    def __getitem__(self, i: int) -> Vector:
        return self._points[i].copy()

    def get_normal(self, anchor_index: int) -> Vector:
        return self._normals[anchor_index].copy()

    def validate(self) -> None:
        """
        Check that the control points form a chain of cubic segments.

        Raises:
            MalformedRoadError: If the point count is not ``3n + 1`` with
                ``n >= 1`` or normals are missing
        """
        count = len(self._points)
        if count < 4 or count % 3 != 1:
            raise MalformedRoadError(
                f"Road '{self.name}' has {count} control points, expected 3n + 1 with n >= 1",
                road_name=self.name,
                num_points=count,
            )
        if len(self._normals) < self.num_segments + 1:
            raise MalformedRoadError(
                f"Road '{self.name}' has {len(self._normals)} normals, "
                f"expected {self.num_segments + 1}",
                road_name=self.name,
                num_points=count,
            )

    def on_curve_changed(self) -> None:
        """Drop cached samples after the curve was edited."""
        self._cache.clear()

    def snap_to_anchors(self) -> None:
        """Move bound endpoints onto their anchors, keeping handle offsets."""
        if self.start is not None:
            self._move_endpoint(0, self.start)
        if self.end is not None:
            self._move_endpoint(len(self._points) - 1, self.end)
        self.on_curve_changed()

    def _move_endpoint(self, index: int, anchor: RoadAnchor) -> None:
        handle = 1 if index == 0 else index - 1
        offset = anchor.position - self._points[index]
        self._points[index] = anchor.position.copy()
        if 0 <= handle < len(self._points):
            self._points[handle] = self._points[handle] + offset
        normal_index = 0 if index == 0 else len(self._normals) - 1
        if self._normals:
            self._normals[normal_index] = anchor.up.copy()

    def sample(self, spacing: float, resolution: float = 1.0) -> EvenlySpacedPoints:
        """Resampled curve with bounds and length, cached."""
        key = (float(spacing), float(resolution))
        cached = self._cache.get(key)
        if cached is None:
            cached = get_evenly_spaced_points(self._points, self._normals, spacing, resolution)
            self._cache[key] = cached
        return cached

    def get_evenly_spaced_points(
        self, spacing: float, resolution: float = 1.0
    ) -> List[OrientedPoint]:
        """
        Points every ``spacing`` units along the road.

        Returns copies, callers may modify them freely.
        """
        return [p.copy() for p in self.sample(spacing, resolution).points]

    def get_length(self) -> float:
        """Arc length of the road."""
        return self.sample(LENGTH_SAMPLE_SPACING).length

    @property
    def bounds(self) -> BoundingBox:
        return self.sample(LENGTH_SAMPLE_SPACING).bounds

    def is_maybe_closer(self, position: ArrayLike, max_distance: float, y_scale: float = 1.0) -> bool:
        """
        Cheap bounding-box test: can any point of the road be closer than
        ``max_distance`` to ``position``?
        """
        if math.isinf(max_distance):
            return True
        return self.bounds.distance_to(as_vector(position), y_scale) < max_distance

    def get_min_distance(
        self,
        position: ArrayLike,
        step_size: float,
        y_scale: float = 1.0,
        resolution: float = 1.0,
    ) -> Tuple[float, Vector, float]:
        """
        Closest point on the road to a world position.

        ``distance_along_road`` is measured along the ``step_size`` polyline, the
        same samples path reconstruction walks. On curved roads it can fall
        slightly short of the same span of ``get_length``, which uses finer
        sampling.

        Args:
            position: World position
            step_size: Sample spacing of the polyline the point is projected on
            y_scale: Weight of the vertical axis in the distance
            resolution: Sampling resolution of the polyline

        Returns:
            ``(distance, closest_point, distance_along_road)``
        """
        samples = self.sample(step_size, resolution).points
        result = closest_point_on_polyline(samples, as_vector(position), y_scale)
        if result is None:
            return math.inf, as_vector(position), 0.0
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert road to dictionary."""
        return {
            "name": self.name,
            "num_points": self.num_points,
            "num_segments": self.num_segments,
            "length": float(self.get_length()) if self.num_segments else 0.0,
            "start_anchor": self.start.name if self.start is not None else None,
            "end_anchor": self.end.name if self.end is not None else None,
        }

    def __repr__(self) -> str:
        return f"Road(name={self.name!r}, num_points={self.num_points})"


def connect_road(
    road: Road,
    start_anchor: Optional[RoadAnchor] = None,
    end_anchor: Optional[RoadAnchor] = None,
) -> None:
    """
    Bind road endpoints to anchors and snap the endpoints onto them.

    Raises:
        ValidationError: If an anchor is already bound to another road
            endpoint, or both ends would bind the same anchor
    """
    if start_anchor is not None and start_anchor is end_anchor:
        raise ValidationError(
            f"Road '{road.name}' cannot bind both ends to the same anchor", field="anchor"
        )
    for anchor, is_start in ((start_anchor, True), (end_anchor, False)):
        if anchor is None:
            continue
        current = anchor.road
        if current is not None and not (
            current is road and (current.start is anchor) == is_start
        ):
            raise ValidationError(
                f"Anchor '{anchor.name}' is already connected to road '{current.name}'",
                field="anchor",
                details={"anchor": anchor.name, "road": current.name},
            )

    if start_anchor is not None:
        if road.start is not None and road.start is not start_anchor:
            road.start.disconnect()
        road.start = start_anchor
        start_anchor._road = road
    if end_anchor is not None:
        if road.end is not None and road.end is not end_anchor:
            road.end.disconnect()
        road.end = end_anchor
        end_anchor._road = road
    road.snap_to_anchors()
