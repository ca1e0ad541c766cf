"""
Road navigation over curved road networks.

This module provides:
- Cubic Bezier curve math with arc-length resampling
- Road, intersection and anchor entities
- A dense road graph with A* search over transient query nodes
- Reconstruction of smooth oriented paths from node paths
"""

from roadnav.core.roads.bezier import BoundingBox, OrientedPoint
from roadnav.core.roads.graph import (
    AnchorNode,
    Edge,
    EntryExitNode,
    IntersectionNode,
    NodeType,
    RoadGraph,
)
from roadnav.core.roads.heap import MinHeap
from roadnav.core.roads.matrix import OverlayMatrix, WeightMatrix
from roadnav.core.roads.network import Intersection, Road, RoadAnchor, connect_road
from roadnav.core.roads.pathfinding import SearchResult, find_shortest_path
from roadnav.core.roads.reconstruction import generate_smooth_path
from roadnav.core.roads.system import FeatureProjection, NavigationPath, RoadSystem

__all__ = [
    "BoundingBox",
    "OrientedPoint",
    "AnchorNode",
    "Edge",
    "EntryExitNode",
    "IntersectionNode",
    "NodeType",
    "RoadGraph",
    "MinHeap",
    "OverlayMatrix",
    "WeightMatrix",
    "Intersection",
    "Road",
    "RoadAnchor",
    "connect_road",
    "SearchResult",
    "find_shortest_path",
    "generate_smooth_path",
    "FeatureProjection",
    "NavigationPath",
    "RoadSystem",
]
