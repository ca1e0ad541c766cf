"""
Custom exception hierarchy for roadnav.

This module defines the typed failures surfaced by graph construction and
path queries, so callers can handle them uniformly.
"""

from typing import Any, Dict, List, Optional


class RoadNavException(Exception):
    """
    Base exception for all roadnav-specific errors.

    Attributes:
        error_code: String identifier for the error type
        message: User-friendly error message
        details: Technical details for logging/debugging
        suggestions: Optional list of resolution suggestions
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize RoadNavException.

        Args:
            message: User-friendly error message
            error_code: String identifier for the error type
            details: Technical details for logging
            suggestions: List of suggestions for resolution
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to a dictionary.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "suggestions": self.suggestions,
        }

    def __str__(self) -> str:
        """String representation of the exception."""
        return f"{self.error_code}: {self.message}"

    def __repr__(self) -> str:
        """Detailed string representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"error_code='{self.error_code}', "
            f"message='{self.message}')"
        )


class ValidationError(RoadNavException):
    """
    Raised when authored network data is invalid.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        error_code: str = "VALIDATION_ERROR",
    ):
        """
        Initialize ValidationError.

        Args:
            message: User-friendly error message
            field: Name of the field that failed validation
            details: Technical details about the validation failure
            suggestions: List of suggestions for fixing the data
            error_code: Override for subclasses
        """
        error_details = details or {}
        if field:
            error_details["field"] = field

        super().__init__(
            message=message,
            error_code=error_code,
            details=error_details,
            suggestions=suggestions or ["Check the road network data and try again"],
        )


class MalformedRoadError(ValidationError):
    """
    Raised when a road's control points do not form a chain of cubic segments.

    A road needs ``3n + 1`` control points (n >= 1) and one normal per anchor.
    Graph construction fails as a whole when any road is malformed.
    """

    def __init__(
        self,
        message: str,
        road_name: Optional[str] = None,
        num_points: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if road_name is not None:
            error_details["road"] = road_name
        if num_points is not None:
            error_details["num_points"] = num_points

        super().__init__(
            message=message,
            field="control_points",
            details=error_details,
            suggestions=[
                "A road needs 3n + 1 control points with n >= 1",
                "Provide one normal per anchor point",
            ],
            error_code="MALFORMED_ROAD",
        )


class ConfigurationError(RoadNavException):
    """
    Raised when navigation configuration is invalid.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize ConfigurationError.

        Args:
            message: User-friendly error message
            config_key: Configuration key that is invalid
            details: Technical details about the configuration error
            suggestions: List of suggestions for resolution
        """
        error_details = details or {}
        if config_key:
            error_details["config_key"] = config_key

        default_suggestions = [
            "Check ROADNAV_* environment variables are set correctly",
            "Verify configuration values are within range",
        ]

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=error_details,
            suggestions=suggestions or default_suggestions,
        )


class InvalidQueryError(RoadNavException):
    """
    Raised when a query endpoint cannot be resolved to a road or an anchor.
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if endpoint:
            error_details["endpoint"] = endpoint

        super().__init__(
            message=message,
            error_code="INVALID_QUERY",
            details=error_details,
            suggestions=["Make sure the road system contains roads or intersections"],
        )


class GraphNotBuiltError(RoadNavException):
    """
    Raised when a path is queried before the graph was constructed.
    """

    def __init__(self, message: str = "Graph has not been constructed") -> None:
        super().__init__(
            message=message,
            error_code="GRAPH_NOT_BUILT",
            suggestions=["Call construct_graph() before querying paths"],
        )


class MatrixSizeMismatchError(RoadNavException):
    """
    Raised when the cached weight matrix no longer matches the node set.

    The network changed since the last build, the caller must rebuild.
    """

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if expected is not None:
            error_details["expected"] = expected
        if actual is not None:
            error_details["actual"] = actual

        super().__init__(
            message=message,
            error_code="MATRIX_SIZE_MISMATCH",
            details=error_details,
            suggestions=["Call construct_graph() after changing the road network"],
        )


class SearchError(RoadNavException):
    """
    Base class for failed shortest-path searches.

    Attributes:
        steps_taken: Number of node expansions performed before failing
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        steps_taken: int,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        error_details = details or {}
        error_details["steps_taken"] = steps_taken
        self.steps_taken = steps_taken

        super().__init__(
            message=message,
            error_code=error_code,
            details=error_details,
            suggestions=suggestions,
        )


class SearchExhaustedError(SearchError):
    """
    Raised when the open set empties before the goal is reached.

    Indicates a disconnected graph.
    """

    def __init__(self, message: str, steps_taken: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="SEARCH_EXHAUSTED",
            steps_taken=steps_taken,
            details=details,
            suggestions=[
                "Check that distance_factor is positive so fallback edges exist",
                "Rebuild the graph after changing the road network",
            ],
        )


class StepLimitExceededError(SearchError):
    """
    Raised when the search hits its iteration cap.
    """

    def __init__(
        self,
        message: str,
        steps_taken: int,
        max_steps: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        error_details["max_steps"] = max_steps
        self.max_steps = max_steps

        super().__init__(
            message=message,
            error_code="STEP_LIMIT_EXCEEDED",
            steps_taken=steps_taken,
            details=error_details,
            suggestions=[
                "Increase max_search_steps",
                "Check the weight matrix for negative or degenerate costs",
            ],
        )
