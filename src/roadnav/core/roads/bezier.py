"""
Cubic Bezier curve math for road centerlines.

This module provides the pure curve functions used by the road network:
- Evaluation and derivation of quadratic and cubic Bezier segments
- Approximate inversion (closest parameter for a point)
- De Casteljau subdivision
- Arc-length resampling with propagated orientation normals

All vectors are 3D ``numpy`` arrays. The world up axis is +Y.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray

Vector = NDArray[np.float64]

UP: Vector = np.array([0.0, 1.0, 0.0])
FORWARD: Vector = np.array([0.0, 0.0, 1.0])

# Vectors shorter than this normalize to zero.
_NORMALIZE_EPSILON = 1e-5


def as_vector(value: ArrayLike) -> Vector:
    """Convert a 3-sequence to a float64 vector."""
    return np.asarray(value, dtype=np.float64).reshape(3)


def normalize(v: Vector) -> Vector:
    """
    Return ``v`` scaled to unit length.

    Degenerate vectors yield the zero vector instead of NaNs.
    """
    length = float(np.linalg.norm(v))
    if length < _NORMALIZE_EPSILON:
        return np.zeros(3)
    return v / length


def distance(a: Vector, b: Vector) -> float:
    return float(np.linalg.norm(a - b))


def signed_angle(from_vec: Vector, to_vec: Vector, axis: Vector) -> float:
    """
    Signed angle in radians between two vectors around an axis.

    The magnitude is the unsigned angle between the vectors, the sign is
    positive when rotating ``from_vec`` about ``axis`` (right-hand rule)
    moves it towards ``to_vec``.
    """
    a = normalize(from_vec)
    b = normalize(to_vec)
    if not a.any() or not b.any():
        return 0.0
    unsigned = math.acos(float(np.clip(np.dot(a, b), -1.0, 1.0)))
    sign = 1.0 if float(np.dot(axis, np.cross(a, b))) >= 0.0 else -1.0
    return sign * unsigned


def rotate_about_axis(v: Vector, axis: Vector, angle: float) -> Vector:
    """Rotate ``v`` by ``angle`` radians about ``axis`` (Rodrigues' formula)."""
    k = normalize(axis)
    if not k.any():
        return v.copy()
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return v * cos_a + np.cross(k, v) * sin_a + k * float(np.dot(k, v)) * (1.0 - cos_a)


def lerp(a: Vector, b: Vector, t: float) -> Vector:
    return a + (b - a) * t


@dataclass
class OrientedPoint:
    """
    A sample on a path.

    Attributes:
        position: World position
        forward: Unit tangent in the direction of travel
        normal: Unit up vector (roll) at this sample
    """

    position: Vector
    forward: Vector
    normal: Vector

    def reversed(self) -> "OrientedPoint":
        """Same sample, facing the opposite direction."""
        return OrientedPoint(self.position.copy(), -self.forward, self.normal.copy())

    def copy(self) -> "OrientedPoint":
        return OrientedPoint(self.position.copy(), self.forward.copy(), self.normal.copy())


@dataclass
class BoundingBox:
    """Axis-aligned bounding box. Starts empty (min=+inf, max=-inf)."""

    min: Vector = field(default_factory=lambda: np.full(3, np.inf))
    max: Vector = field(default_factory=lambda: np.full(3, -np.inf))

    @property
    def is_empty(self) -> bool:
        return bool(np.any(self.min > self.max))

    @property
    def center(self) -> Vector:
        return (self.min + self.max) / 2.0

    def encapsulate(self, point: Vector) -> None:
        self.min = np.minimum(self.min, point)
        self.max = np.maximum(self.max, point)

    def encapsulate_box(self, other: "BoundingBox") -> None:
        if other.is_empty:
            return
        self.min = np.minimum(self.min, other.min)
        self.max = np.maximum(self.max, other.max)

    def contains(self, point: Vector) -> bool:
        return bool(np.all(point >= self.min) and np.all(point <= self.max))

    def distance_to(self, point: Vector, y_scale: float = 1.0) -> float:
        """
        Distance from a point to the box, zero if inside.

        Args:
            point: Query point
            y_scale: Multiplier applied to the vertical component

        Returns:
            Euclidean distance, infinite for an empty box
        """
        if self.is_empty:
            return math.inf
        delta = np.maximum(np.maximum(self.min - point, 0.0), point - self.max)
        delta[1] *= y_scale
        return float(np.linalg.norm(delta))


@dataclass
class EvenlySpacedPoints:
    """
    Result of resampling a chain of cubic segments.

    Attributes:
        points: Oriented samples, ``spacing`` apart along the curve
        bounds: Bounding box of the whole curve
        bounding_boxes: Bounding box of each segment
        length: Accumulated arc length of all segments
    """

    points: List[OrientedPoint]
    bounds: BoundingBox
    bounding_boxes: List[BoundingBox]
    length: float


def evaluate_quadratic(a: Vector, b: Vector, c: Vector, t: float) -> Vector:
    p0 = lerp(a, b, t)
    p1 = lerp(b, c, t)
    return lerp(p0, p1, t)


def evaluate_cubic(a: Vector, b: Vector, c: Vector, d: Vector, t: float) -> Vector:
    """
    Evaluate a cubic segment with Bernstein polynomials.

    ``t`` is not clamped, values outside ``[0, 1]`` extrapolate the curve.
    """
    mt = 1.0 - t
    return a * (mt * mt * mt) + b * (3.0 * mt * mt * t) + c * (3.0 * mt * t * t) + d * (t * t * t)


def derive_quadratic(a: Vector, b: Vector, c: Vector, t: float) -> Vector:
    return lerp(2.0 * (b - a), 2.0 * (c - b), t)


def derive_cubic(a: Vector, b: Vector, c: Vector, d: Vector, t: float) -> Vector:
    """Tangent (unnormalized) of a cubic segment at ``t``."""
    return evaluate_quadratic(3.0 * (b - a), 3.0 * (c - b), 3.0 * (d - c), t)


def inverse_cubic(
    a: Vector, b: Vector, c: Vector, d: Vector, p: Vector, iterations: int = 100
) -> float:
    """
    Approximate the curve parameter closest to ``p``.

    Runs Newton-Raphson on ``dot(B(t) - p, B'(t)) = 0`` starting at ``t = 0.5``.
    There is no bracketing: on sharply folded segments the result can be a
    local rather than the global minimum, and it is not clamped to ``[0, 1]``.
    On gently curved segments it converges within a few iterations to better
    than 1e-4.

    Args:
        a, b, c, d: Control points
        p: Query point
        iterations: Maximum number of Newton steps

    Returns:
        Curve parameter t
    """
    t = 0.5
    for _ in range(iterations):
        delta = evaluate_cubic(a, b, c, d, t) - p
        dp = derive_cubic(a, b, c, d, t)
        dot = float(np.dot(delta, dp))
        if dot == 0.0:
            break
        denominator = float(np.dot(dp, dp))
        if denominator == 0.0:
            break
        t -= dot / denominator
    return t


def subdivide_cubic(a: Vector, b: Vector, c: Vector, d: Vector, t: float) -> List[Vector]:
    """
    Split a cubic segment at ``t`` (De Casteljau).

    Returns:
        7 points: two cubic segments sharing the middle point
    """
    ab = lerp(a, b, t)
    bc = lerp(b, c, t)
    cd = lerp(c, d, t)
    abbc = lerp(ab, bc, t)
    bccd = lerp(bc, cd, t)
    mid = lerp(abbc, bccd, t)
    return [a, ab, abbc, mid, bccd, cd, d]


def unsubdivide_cubic(
    p0: Vector, h01: Vector, h10: Vector, p1: Vector, h11: Vector, h20: Vector, p2: Vector
) -> List[Vector]:
    """
    Merge two adjacent cubic segments into one.

    Only approximate: the outer handles keep their direction and are
    stretched by the ratio of the inner to the outer handle lengths.
    """
    d01 = distance(p0, h01)
    d20 = distance(p2, h20)
    out_handle = p0 + (distance(p0, h10) / d01) * (h01 - p0) if d01 > 0 else h01.copy()
    in_handle = p2 + (distance(p2, h11) / d20) * (h20 - p2) if d20 > 0 else h20.copy()
    return [p0, out_handle, in_handle, p2]


def angle_from_normal(forward: Vector, normal: Vector) -> float:
    """
    Roll angle (degrees) of ``normal`` around ``forward``, relative to world up.
    """
    forward = normalize(forward)
    normal = normalize(normal)
    normal = normalize(normal - float(np.dot(forward, normal)) * forward)
    right = normalize(np.cross(UP, forward))
    up = normalize(np.cross(forward, right))
    return math.degrees(signed_angle(normal, up, forward))


def normal_from_angle(forward: Vector, angle: float) -> Vector:
    """Inverse of :func:`angle_from_normal`."""
    forward = normalize(forward)
    right = normalize(np.cross(UP, forward))
    up = normalize(np.cross(forward, right))
    return rotate_about_axis(up, forward, -math.radians(angle))


def _orthogonalize(normal: Vector, forward: Vector) -> Vector:
    # rotation-minimizing step: drop the tangential component
    projected = normalize(np.cross(forward, np.cross(normal, forward)))
    # a zero tangent (coincident handles) leaves the normal as it was
    return projected if projected.any() else normal


def _segment(points: Sequence[Vector], index: int) -> Tuple[Vector, Vector, Vector, Vector]:
    i = index * 3
    return points[i], points[i + 1], points[i + 2], points[i + 3]


def get_evenly_spaced_points(
    points: Sequence[ArrayLike],
    normals: Sequence[ArrayLike],
    spacing: float,
    resolution: float = 1.0,
) -> EvenlySpacedPoints:
    """
    Resample a chain of cubic segments at fixed arc-length intervals.

    Every segment is walked in ``ceil(estimated_length * resolution * 10)``
    steps, where the estimate is the chord length plus half the control
    polygon length. A sample is emitted each time ``spacing`` units have been
    travelled, back-interpolated along the last step by the overshoot.

    The normal of each segment starts at its anchor normal and is kept
    perpendicular to the tangent at every step. Once a segment is fully
    sampled and its length is known, the angular error between the
    propagated normal and the next anchor normal is spread over the segment's
    samples, proportionally to the fraction of the segment travelled.

    The first and last samples are always the first and last anchors, with
    their authored normals.

    Args:
        points: ``3n + 1`` control points (anchor, handle, handle, anchor, ...)
        normals: ``n + 1`` anchor normals
        spacing: Distance between samples
        resolution: Multiplier on the walking sub-step count

    Returns:
        EvenlySpacedPoints with samples, bounds and curve length

    Raises:
        ValueError: If spacing or resolution are not positive, or there are
            fewer normals than anchors
    """
    if spacing <= 0:
        raise ValueError("spacing must be positive")
    if resolution <= 0:
        raise ValueError("resolution must be positive")

    pts = [as_vector(p) for p in points]
    nrm = [as_vector(n) for n in normals]
    num_segments = len(pts) // 3 if len(pts) >= 4 else 0
    if num_segments and len(nrm) < num_segments + 1:
        raise ValueError("not enough normals!")

    bounds = BoundingBox()
    bounding_boxes: List[BoundingBox] = []

    if num_segments == 0:
        # not a curve, a single point at most
        if not pts:
            return EvenlySpacedPoints([], bounds, bounding_boxes, 0.0)
        normal = normalize(nrm[0]) if nrm else UP.copy()
        bounds.encapsulate(pts[0])
        return EvenlySpacedPoints(
            [OrientedPoint(pts[0].copy(), FORWARD.copy(), normal)], bounds, bounding_boxes, 0.0
        )

    result: List[OrientedPoint] = []
    line_length = 0.0

    previous_point = pts[0] - normalize(pts[1] - pts[0]) * spacing
    dst_since_last_even_point = 0.0

    for segment in range(num_segments):
        segment_bounds = BoundingBox()
        p0, p1, p2, p3 = _segment(pts, segment)
        normal_on_curve = nrm[segment]

        segment_bounds.encapsulate(p0)
        segment_bounds.encapsulate(p3)

        control_net_length = distance(p0, p1) + distance(p1, p2) + distance(p2, p3)
        estimated_curve_length = distance(p0, p3) + 0.5 * control_net_length
        divisions = math.ceil(estimated_curve_length * resolution * 10)

        segment_length = 0.0
        if divisions > 0:
            start_index = len(result)
            previous_point_on_curve = p0
            # the very first sample sits at t = 0, all others continue the walk
            first_step = 0 if start_index == 0 else 1
            forward_on_curve = normalize(derive_cubic(p0, p1, p2, p3, 0.0))

            for step in range(first_step, divisions + 1):
                t = step / divisions
                point_on_curve = evaluate_cubic(p0, p1, p2, p3, t)
                segment_length += distance(point_on_curve, previous_point_on_curve)
                previous_point_on_curve = point_on_curve

                forward_on_curve = normalize(derive_cubic(p0, p1, p2, p3, t))
                normal_on_curve = _orthogonalize(normal_on_curve, forward_on_curve)
                dst_since_last_even_point += distance(previous_point, point_on_curve)

                while dst_since_last_even_point >= spacing:
                    overshoot = dst_since_last_even_point - spacing
                    new_point = point_on_curve + normalize(previous_point - point_on_curve) * overshoot
                    segment_bounds.encapsulate(new_point)
                    result.append(
                        OrientedPoint(new_point, forward_on_curve.copy(), normal_on_curve.copy())
                    )
                    dst_since_last_even_point = overshoot
                    previous_point = new_point

                previous_point = point_on_curve

            line_length += segment_length
            end_index = len(result)

            if start_index != end_index and segment_length > 0:
                forward_on_curve = normalize(derive_cubic(p0, p1, p2, p3, 1.0))
                normal_on_curve = _orthogonalize(normal_on_curve, forward_on_curve)
                angle_error = signed_angle(normal_on_curve, nrm[segment + 1], forward_on_curve)

                t_step = spacing / segment_length
                t_start = distance(result[start_index].position, p0) / segment_length
                for i in range(start_index, end_index):
                    # TODO: weight the correction by handle lengths instead of linearly
                    fraction = (i - start_index) * t_step + t_start
                    sample = result[i]
                    sample.normal = rotate_about_axis(
                        sample.normal, sample.forward, fraction * angle_error
                    )

        if segment == 0:
            bounds = BoundingBox(segment_bounds.min.copy(), segment_bounds.max.copy())
        else:
            bounds.encapsulate_box(segment_bounds)
        bounding_boxes.append(segment_bounds)

    if not result:
        return EvenlySpacedPoints(result, bounds, bounding_boxes, line_length)

    first = _segment(pts, 0)
    last = _segment(pts, num_segments - 1)
    start = result[0]
    start.position = pts[0].copy()
    start.normal = nrm[0].copy()
    start.forward = normalize(derive_cubic(*first, 0.0))

    if len(result) == 1:
        result.append(
            OrientedPoint(
                pts[num_segments * 3].copy(),
                normalize(derive_cubic(*last, 1.0)),
                nrm[num_segments].copy(),
            )
        )
        bounding_boxes[-1].encapsulate(pts[num_segments * 3])
        bounds.encapsulate(pts[num_segments * 3])
        return EvenlySpacedPoints(result, bounds, bounding_boxes, line_length)

    end = result[-1]
    end.position = pts[num_segments * 3].copy()
    end.normal = nrm[num_segments].copy()
    end.forward = normalize(derive_cubic(*last, 1.0))

    return EvenlySpacedPoints(result, bounds, bounding_boxes, line_length)


def polyline_length(samples: Sequence[OrientedPoint]) -> float:
    """Sum of distances between consecutive samples."""
    return sum(
        distance(samples[i - 1].position, samples[i].position) for i in range(1, len(samples))
    )


def cumulative_distances(samples: Sequence[OrientedPoint]) -> List[float]:
    """Distance along the sample polyline at every sample (first is 0)."""
    distances = [0.0] * len(samples)
    for i in range(1, len(samples)):
        distances[i] = distances[i - 1] + distance(samples[i - 1].position, samples[i].position)
    return distances


def closest_point_on_polyline(
    samples: Sequence[OrientedPoint], point: Vector, y_scale: float = 1.0
) -> Optional[Tuple[float, Vector, float]]:
    """
    Project a point onto the polyline through ``samples``.

    Distances are measured with the vertical component scaled by ``y_scale``.

    Returns:
        ``(distance, closest_point, distance_along)`` or None without samples
    """
    if not samples:
        return None

    scale = np.array([1.0, y_scale, 1.0])
    best: Optional[Tuple[float, Vector, float]] = None
    travelled = 0.0

    if len(samples) == 1:
        closest = samples[0].position
        return float(np.linalg.norm((point - closest) * scale)), closest.copy(), 0.0

    for i in range(1, len(samples)):
        a = samples[i - 1].position
        b = samples[i].position
        ab = (b - a) * scale
        ap = (point - a) * scale
        length_sq = float(np.dot(ab, ab))
        t = 0.0 if length_sq == 0.0 else float(np.clip(np.dot(ap, ab) / length_sq, 0.0, 1.0))
        closest = lerp(a, b, t)
        dst = float(np.linalg.norm((point - closest) * scale))
        segment_length = distance(a, b)
        if best is None or dst < best[0]:
            best = (dst, closest, travelled + t * segment_length)
        travelled += segment_length

    return best
