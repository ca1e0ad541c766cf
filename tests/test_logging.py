"""
Tests for logging setup and the build/query timers.
"""

import json
import logging
import logging.handlers

import pytest

from roadnav.core.config import NavigationConfig
from roadnav.core.errors import SearchExhaustedError
from roadnav.core.logging_config import ColoredFormatter, JSONFormatter, get_log_level, setup_logging
from roadnav.core.roads import Intersection, RoadSystem
from roadnav.utils.logging import QueryTimer, log_graph_build


@pytest.fixture
def restore_root_logger():
    """Remove the handlers setup_logging installs and restore the root level."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if type(handler) in (logging.StreamHandler, logging.handlers.RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def make_record(**fields):
    record = logging.LogRecord("roadnav.test", logging.INFO, "", 7, "Query done", (), None)
    for name, value in fields.items():
        setattr(record, name, value)
    return record


class TestSetup:
    """Tests for setup_logging."""

    @pytest.mark.parametrize(
        "name, level",
        [("DEBUG", logging.DEBUG), ("warning", logging.WARNING), ("Error", logging.ERROR)],
    )
    def test_get_log_level(self, name, level):
        """Test level lookup in any case."""
        assert get_log_level(name) == level

    def test_unknown_level(self):
        """Test that unknown names fall back to INFO."""
        assert get_log_level("verbose") == logging.INFO

    def test_console_only(self, restore_root_logger):
        """Test that existing handlers are replaced by one console handler."""
        setup_logging(log_level="DEBUG")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1

    def test_json_file(self, restore_root_logger, tmp_path):
        """Test JSON lines written to a rotating log file."""
        log_file = tmp_path / "logs" / "roadnav.log"
        setup_logging(log_level="INFO", log_file=log_file, json_logs=True, enable_console=False)

        logging.getLogger("roadnav.test").info("Graph built", extra={"num_nodes": 6})
        for handler in restore_root_logger.handlers:
            handler.flush()

        entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        built = [entry for entry in entries if entry["message"] == "Graph built"]
        assert built[0]["num_nodes"] == 6
        assert isinstance(restore_root_logger.handlers[0], logging.handlers.RotatingFileHandler)


class TestFormatters:
    """Tests for log formatters."""

    def test_json_navigation_fields(self):
        """Test that query statistics become JSON keys."""
        record = make_record(query_id=3, steps_taken=12, path_cost=7.5, duration_ms=0.4)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Query done"
        assert data["line"] == 7
        assert data["query_id"] == 3
        assert data["steps_taken"] == 12
        assert data["path_cost"] == 7.5

    def test_json_skips_unset_fields(self):
        """Test that absent or None fields are left out."""
        data = json.loads(JSONFormatter().format(make_record(num_nodes=None, unrelated="x")))

        assert "num_nodes" not in data
        assert "unrelated" not in data
        assert "steps_taken" not in data

    def test_colored_level(self):
        """Test that coloring does not leak into the record."""
        formatter = ColoredFormatter("%(levelname)s %(message)s")
        record = logging.LogRecord("test", logging.WARNING, "", 0, "careful", (), None)

        assert "\033[33m" in formatter.format(record)
        assert record.levelname == "WARNING"


class TestGraphBuildLogging:
    """Tests for the graph build decorator."""

    class FakeGraph:
        node_count = 0

        @log_graph_build(log_level=logging.INFO)
        def construct(self, count):
            if count < 0:
                raise ValueError("negative")
            self.node_count = count
            return "built"

    def test_logs_node_count(self, caplog):
        """Test that the record carries the built node count."""
        with caplog.at_level(logging.INFO, logger="roadnav.utils.logging"):
            assert self.FakeGraph().construct(6) == "built"

        record = caplog.records[-1]
        assert record.operation == "graph_build"
        assert record.num_nodes == 6
        assert record.duration_ms >= 0

    def test_threshold(self, caplog):
        """Test that fast builds under the threshold are not logged."""

        class QuietGraph:
            node_count = 2

            @log_graph_build(log_level=logging.INFO, threshold_ms=10_000)
            def construct(self):
                return None

        with caplog.at_level(logging.INFO, logger="roadnav.utils.logging"):
            QuietGraph().construct()

        assert not caplog.records

    def test_failed_build(self, caplog):
        """Test that a failing build is logged and re-raised."""
        with caplog.at_level(logging.INFO, logger="roadnav.utils.logging"):
            with pytest.raises(ValueError):
                self.FakeGraph().construct(-1)

        assert caplog.records[-1].levelno == logging.WARNING
        assert "ValueError" in caplog.text


class TestQueryTimer:
    """Tests for per-query logging."""

    def test_unique_ids(self):
        """Test that every query gets a new id."""
        assert QueryTimer().query_id != QueryTimer().query_id

    def test_records_search_statistics(self, caplog):
        """Test the fields logged for a successful query."""
        with caplog.at_level(logging.DEBUG, logger="roadnav.utils.logging"):
            with QueryTimer() as query:
                query.record(steps_taken=4, num_nodes=3, path_cost=2.5)

        record = caplog.records[-1]
        assert record.query_id == query.query_id
        assert record.steps_taken == 4
        assert record.num_nodes == 3
        assert record.path_cost == 2.5
        assert query.duration_ms >= 0

    def test_failed_search(self, caplog):
        """Test that search failures log their error code and steps."""
        with caplog.at_level(logging.INFO, logger="roadnav.utils.logging"):
            with pytest.raises(SearchExhaustedError):
                with QueryTimer():
                    raise SearchExhaustedError("No path", steps_taken=5)

        record = caplog.records[-1]
        assert record.error_code == "SEARCH_EXHAUSTED"
        assert record.steps_taken == 5

    def test_find_path_is_logged(self, caplog):
        """Test that RoadSystem.find_path reports its search statistics."""
        hub_a = Intersection.radial((0, 0, 0), num_anchors=1, radius=1.0)
        hub_b = Intersection.radial((20, 0, 0), num_anchors=1, radius=1.0)
        system = RoadSystem([hub_a, hub_b], config=NavigationConfig())
        system.construct_graph()

        with caplog.at_level(logging.DEBUG, logger="roadnav.utils.logging"):
            path = system.find_path((0.5, 0, 0), (20.5, 0, 0))

        queries = [r for r in caplog.records if getattr(r, "operation", None) == "find_path"]
        assert queries[-1].steps_taken == path.steps_taken
        assert queries[-1].path_cost == pytest.approx(path.total_cost)
