"""
End-to-end tests for RoadSystem path queries.
"""

import numpy as np
import pytest
from shapely.geometry import LineString

from roadnav.core.config import NavigationConfig
from roadnav.core.errors import (
    GraphNotBuiltError,
    InvalidQueryError,
    MalformedRoadError,
    MatrixSizeMismatchError,
    StepLimitExceededError,
)
from roadnav.core.roads import (
    AnchorNode,
    EntryExitNode,
    Intersection,
    IntersectionNode,
    NavigationPath,
    Road,
    RoadSystem,
    connect_road,
)
from roadnav.core.roads.bezier import OrientedPoint


@pytest.fixture
def config():
    """Config that always connects the path to the queried positions."""
    return NavigationConfig(step_size=1.0, min_distance_to_connect=0.0)


@pytest.fixture
def connected_system(config):
    """Two intersections joined by a straight road from x=1 to x=9."""
    hub_a = Intersection.radial((0, 0, 0), num_anchors=2, radius=1.0, name="a")
    hub_b = Intersection.radial((10, 0, 0), num_anchors=2, radius=1.0, name="b")
    road = Road.straight((1, 0, 0), (9, 0, 0), name="ab")
    connect_road(road, hub_a.anchors[0], hub_b.anchors[1])
    system = RoadSystem([hub_a, hub_b], [road], config=config)
    system.construct_graph()
    return system


@pytest.fixture
def island_system():
    """Two single-anchor intersections 100 units apart with no road."""
    hub_a = Intersection.radial((0, 0, 0), num_anchors=1, radius=1.0, name="west")
    hub_b = Intersection.radial((100, 0, 0), num_anchors=1, radius=1.0, name="east")
    system = RoadSystem([hub_a, hub_b], config=NavigationConfig())
    system.construct_graph()
    return system


class TestFindPath:
    """Tests for RoadSystem.find_path."""

    def test_same_road(self):
        """
        Test two close points on one road without any intersection.

        The 0.75 spacing leaves no road sample between 4.9 and 5.1; at 1.0 the
        sample at 5.0 would be a third point.
        """
        road = Road.straight((0, 0, 0), (0, 0, 10))
        system = RoadSystem(roads=[road], config=NavigationConfig(step_size=0.75))
        system.construct_graph()

        path = system.find_path((0, 0, 4.9), (0, 0, 5.1))

        assert len(path) == 2
        assert path.total_length == pytest.approx(0.2)
        assert path.total_cost == pytest.approx(0.2)

    def test_road_network(self, connected_system):
        """Test a path along a road and through an intersection."""
        path = connected_system.find_path((3, 0, 0.5), (10.5, 0, 0.2))

        assert [type(node) for node in path.nodes] == [
            EntryExitNode,
            AnchorNode,
            IntersectionNode,
            EntryExitNode,
        ]
        assert path.total_cost == pytest.approx(7.5, abs=1e-2)

    def test_ends_on_query_points(self, connected_system):
        """Test that the path starts and ends exactly at the queries."""
        start = (3, 0, 0.5)
        goal = (10.5, 0, 0.2)
        path = connected_system.find_path(start, goal)

        assert path.get_waypoints()[0] == pytest.approx(start)
        assert path.get_waypoints()[-1] == pytest.approx(goal)

    def test_deterministic(self, connected_system):
        """Test that repeated queries return identical paths."""
        first = connected_system.find_path((3, 0, 0.5), (10.5, 0, 0.2))
        second = connected_system.find_path((3, 0, 0.5), (10.5, 0, 0.2))

        assert first.get_waypoints() == second.get_waypoints()
        assert first.steps_taken == second.steps_taken

    def test_island_fallback(self, island_system):
        """Test that disconnected intersections are crossed at fallback cost."""
        path = island_system.find_path((0.5, 0, 0), (100.5, 0, 0))

        # 0.5 to the anchor, 99 units of fallback, 0.5 from the far hub
        assert path.total_cost == pytest.approx(99 * 1000.0 + 1.0)
        assert path.get_waypoints()[0] == pytest.approx((0.5, 0, 0))
        assert path.get_waypoints()[-1] == pytest.approx((100.5, 0, 0))

    def test_step_limit(self, island_system):
        """Test that the search cap is reported."""
        with pytest.raises(StepLimitExceededError):
            island_system.find_path(
                (0.5, 0, 0), (100.5, 0, 0), config=NavigationConfig(max_search_steps=1)
            )

    def test_collects_edges(self, connected_system):
        """Test the optional debug edge output."""
        edges = []
        connected_system.find_path((3, 0, 0.5), (10.5, 0, 0.2), edges=edges)
        assert edges

    def test_dijkstra(self, connected_system):
        """Test that a zero heuristic finds the same cost."""
        config = NavigationConfig(heuristic="dijkstra", min_distance_to_connect=0.0)
        path = connected_system.find_path((3, 0, 0.5), (10.5, 0, 0.2), config=config)
        assert path.total_cost == pytest.approx(7.5, abs=1e-2)


class TestErrors:
    """Tests for query and build failures."""

    def test_graph_not_built(self, config):
        """Test querying before construct_graph."""
        system = RoadSystem(roads=[Road.straight((0, 0, 0), (0, 0, 10))], config=config)

        with pytest.raises(GraphNotBuiltError):
            system.find_path((0, 0, 1), (0, 0, 2))
        with pytest.raises(GraphNotBuiltError):
            system.get_graph_edges()

    def test_network_changed(self, connected_system):
        """Test querying after the node set changed without a rebuild."""
        connected_system.add_intersection(Intersection.radial((50, 0, 0), 3, 1.0))

        with pytest.raises(MatrixSizeMismatchError) as exc_info:
            connected_system.find_path((3, 0, 0.5), (10.5, 0, 0.2))
        assert exc_info.value.details == {"expected": 10, "actual": 6}

    def test_nothing_to_project_on(self, config):
        """Test a query on an empty system."""
        system = RoadSystem(config=config)
        system.construct_graph()

        with pytest.raises(InvalidQueryError) as exc_info:
            system.find_path((0, 0, 0), (1, 0, 0))
        assert exc_info.value.details["endpoint"] == "start"

    def test_malformed_road_keeps_previous_graph(self, connected_system):
        """Test that a failed rebuild leaves the last graph in place."""
        previous = connected_system.graph
        connected_system.add_road(Road([(0, 0, 0), (1, 0, 0), (2, 0, 0)], name="stub"))

        with pytest.raises(MalformedRoadError):
            connected_system.construct_graph()
        assert connected_system.graph is previous


class TestGraphLifecycle:
    """Tests for building and rebuilding."""

    def test_rebuild_swaps_graph(self, connected_system):
        """Test that a rebuild installs a new graph instance."""
        previous = connected_system.graph
        connected_system.construct_graph()

        assert connected_system.graph is not previous
        assert previous.is_built

    def test_rebuild_all_roads_follows_anchors(self, connected_system):
        """Test that moved anchors pull road endpoints along on rebuild."""
        road = connected_system.roads[0]
        road.end.position = np.array([9.0, 0.0, 2.0])

        connected_system.rebuild_all_roads()

        np.testing.assert_allclose(road[3], [9, 0, 2])
        assert connected_system.graph.weights[1, 5] == pytest.approx(road.get_length())

    def test_get_graph_edges(self, connected_system):
        """Test the persistent debug edges."""
        assert len(connected_system.get_graph_edges()) == 14

    def test_node_count(self, connected_system):
        """Test the expected node count."""
        assert connected_system.node_count() == 6


class TestNearestFeature:
    """Tests for projecting query positions onto the network."""

    def test_nearest_road(self, connected_system):
        """Test projection onto the closest road."""
        projection = connected_system.get_min_distance_to_road((5, 0, 3), step_size=1.0)

        assert projection.feature is connected_system.roads[0]
        assert projection.distance == pytest.approx(3.0)
        assert projection.distance_along == pytest.approx(4.0, abs=1e-6)

    def test_nearest_anchor_line(self, connected_system):
        """Test projection onto the closest hub-anchor line."""
        hub_b = connected_system.intersections[1]
        projection = connected_system.get_min_distance_to_intersection((10.6, 0, 0.3))

        assert projection.feature is hub_b.anchors[0]
        assert projection.intersection is hub_b
        assert projection.distance == pytest.approx(0.3)
        assert projection.distance_along == pytest.approx(0.6)

    def test_anchor_line_clamped(self, connected_system):
        """Test that projections stop at the anchor."""
        projection = connected_system.get_min_distance_to_intersection((13, 0, 0))

        np.testing.assert_allclose(projection.point, [11, 0, 0], atol=1e-9)
        assert projection.distance == pytest.approx(2.0)

    def test_anchor_beyond_radius(self):
        """Test that anchors added one by one are not pruned by the hub distance."""
        far = Intersection((10, 0, 8), name="far")
        far.add_anchor((10, 0, 7), name="far/0")
        near = Intersection((0, 0, 0), name="near")
        near.add_anchor((10, 0, 0), name="near/0")
        system = RoadSystem([far, near], config=NavigationConfig())

        projection = system.get_min_distance_to_intersection((10, 0, 0.5))

        assert projection.feature.name == "near/0"
        assert projection.intersection is near
        assert projection.distance == pytest.approx(0.5)
        assert projection.distance_along == pytest.approx(10.0)

    def test_anchor_added_after_construction(self, connected_system):
        """Test that a late anchor far outside the radius is still found."""
        hub_b = connected_system.intersections[1]
        late = hub_b.add_anchor((2, 0, 2), name="b/late")

        projection = connected_system.get_min_distance_to_intersection((2, 0, 2.3))

        assert projection.feature is late
        assert projection.distance == pytest.approx(0.3)
        assert projection.distance_along == pytest.approx(68 ** 0.5)

    def test_no_features(self):
        """Test projections on an empty system."""
        system = RoadSystem(config=NavigationConfig())

        assert system.get_min_distance_to_road((0, 0, 0), 1.0).feature is None
        assert system.get_min_distance_to_intersection((0, 0, 0)).feature is None


class TestNavigationPath:
    """Tests for the path result type."""

    def test_geometry(self, connected_system):
        """Test the plan-view LineString."""
        path = connected_system.find_path((3, 0, 0.5), (10.5, 0, 0.2))
        geometry = path.get_geometry()

        assert isinstance(geometry, LineString)
        assert geometry.coords[0] == pytest.approx((3.0, 0.5, 0.0))

    def test_empty_geometry(self):
        """Test geometry of a path with a single point."""
        point = OrientedPoint(np.zeros(3), np.array([0.0, 0.0, 1.0]), np.array([0.0, 1.0, 0.0]))
        assert NavigationPath([point]).get_geometry().is_empty

    def test_to_dict(self, connected_system):
        """Test dictionary conversion."""
        path = connected_system.find_path((3, 0, 0.5), (10.5, 0, 0.2))
        data = path.to_dict()

        assert data["num_points"] == len(path)
        assert data["num_nodes"] == 4
        assert data["node_types"] == ["entry_exit", "anchor", "intersection", "entry_exit"]
        assert data["total_cost"] == pytest.approx(7.5, abs=1e-2)
        assert len(data["waypoints"]) == len(path)
