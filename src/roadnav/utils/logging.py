"""
Timing helpers for graph builds and path queries.

Both helpers emit a single record per operation carrying structured fields
(``operation``, ``duration_ms`` and the graph or search counters) so JSON
logs can be aggregated without parsing messages.
"""

import functools
import itertools
import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_query_ids = itertools.count(1)


def log_graph_build(
    log_level: int = logging.DEBUG,
    threshold_ms: Optional[float] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for graph build methods.

    Logs the build time and the node count of the graph the method was
    called on. Failed builds are logged at WARNING with the exception type.

    Args:
        log_level: Level of the record for successful builds
        threshold_ms: Only log successful builds slower than this

    Example:
        @log_graph_build(threshold_ms=100)
        def construct(self, intersections, roads):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(graph: Any, *args: Any, **kwargs: Any) -> T:
            start = time.perf_counter()
            try:
                result = func(graph, *args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.warning(
                    f"Graph build failed after {duration_ms:.2f}ms: {type(e).__name__}",
                    extra={"operation": "graph_build", "duration_ms": duration_ms},
                )
                raise

            duration_ms = (time.perf_counter() - start) * 1000
            if threshold_ms is None or duration_ms >= threshold_ms:
                num_nodes = getattr(graph, "node_count", None)
                logger.log(
                    log_level,
                    f"Graph built in {duration_ms:.2f}ms ({num_nodes} nodes)",
                    extra={
                        "operation": "graph_build",
                        "duration_ms": duration_ms,
                        "num_nodes": num_nodes,
                    },
                )
            return result

        return wrapper

    return decorator


class QueryTimer:
    """
    Times one path query and logs its search statistics.

    Each timer gets a process-unique ``query_id``. Call ``record`` once the
    search returned; the counters are logged when the block exits. A query
    that raises is logged with the exception's error code and, for search
    failures, the steps taken before giving up.

    Usage:
        with QueryTimer() as query:
            nodes, result = graph.find_path_nodes(...)
            query.record(result.steps_taken, len(nodes), result.cost)
    """

    def __init__(self, log_level: int = logging.DEBUG):
        self.log_level = log_level
        self.query_id = next(_query_ids)
        self.steps_taken: Optional[int] = None
        self.num_nodes: Optional[int] = None
        self.path_cost: Optional[float] = None
        self.duration_ms: Optional[float] = None
        self._start: Optional[float] = None

    def record(self, steps_taken: int, num_nodes: int, path_cost: float) -> None:
        self.steps_taken = steps_taken
        self.num_nodes = num_nodes
        self.path_cost = path_cost

    def fields(self) -> Dict[str, Any]:
        """Structured fields attached to the log record."""
        return {
            "operation": "find_path",
            "query_id": self.query_id,
            "duration_ms": self.duration_ms,
            "steps_taken": self.steps_taken,
            "num_nodes": self.num_nodes,
            "path_cost": self.path_cost,
        }

    def __enter__(self) -> "QueryTimer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._start is None:
            return
        self.duration_ms = (time.perf_counter() - self._start) * 1000

        if exc_val is None:
            logger.log(
                self.log_level,
                f"Query {self.query_id}: {self.steps_taken} steps, "
                f"{self.num_nodes} nodes in {self.duration_ms:.2f}ms",
                extra=self.fields(),
            )
            return

        if self.steps_taken is None:
            self.steps_taken = getattr(exc_val, "steps_taken", None)
        error_code = getattr(exc_val, "error_code", type(exc_val).__name__)
        logger.info(
            f"Query {self.query_id} failed with {error_code} "
            f"after {self.duration_ms:.2f}ms",
            extra={**self.fields(), "error_code": error_code},
        )
