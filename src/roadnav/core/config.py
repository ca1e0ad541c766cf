"""
Configuration settings for roadnav.
"""

from dataclasses import dataclass
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from roadnav.core.errors import ConfigurationError

HeuristicName = Literal["distance", "dijkstra"]


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Attributes:
        environment: Deployment environment, controls log formatting
        log_level: Explicit log level, derived from environment when unset
        distance_factor: Multiplier on straight-line distance for fallback edges
        step_size: Spacing of resampled path points
        min_distance_to_connect: Distance from the path ends at which
            connector points to the queried positions are added
        max_search_steps: Iteration cap of the shortest-path search
        heuristic: Search heuristic, "distance" (A*) or "dijkstra"
        y_scale: Weight of the vertical axis in nearest-feature distances
        sampling_resolution: Sub-step multiplier for curve resampling
        subdivide_straight_lines: Whether straight connections get
            intermediate points every step_size
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="ROADNAV_",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Optional[str] = None

    # Graph settings
    distance_factor: float = 1000.0

    # Query settings
    step_size: float = 1.0
    min_distance_to_connect: float = 10.0
    max_search_steps: int = 10000
    heuristic: HeuristicName = "distance"
    y_scale: float = 1.0
    sampling_resolution: float = 1.0
    subdivide_straight_lines: bool = False


# Global settings instance
settings = Settings()


@dataclass
class NavigationConfig:
    """
    Options for graph construction and path queries.

    Attributes:
        distance_factor: Fallback edge cost per unit of straight-line distance
        step_size: Spacing of resampled path points
        min_distance_to_connect: Threshold for connecting the path to the
            queried start/goal with straight points
        max_search_steps: Iteration cap of the search
        heuristic: "distance" for A*, "dijkstra" for a zero heuristic
        y_scale: Weight of the vertical axis in nearest-feature distances
        resolution: Sub-step multiplier for curve resampling
        subdivide_straight_lines: Add points every step_size on straight parts
    """

    distance_factor: float = 1000.0
    step_size: float = 1.0
    min_distance_to_connect: float = 10.0
    max_search_steps: int = 10000
    heuristic: HeuristicName = "distance"
    y_scale: float = 1.0
    resolution: float = 1.0
    subdivide_straight_lines: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.distance_factor <= 0:
            raise ConfigurationError("distance_factor must be positive", config_key="distance_factor")
        if self.step_size <= 0:
            raise ConfigurationError("step_size must be positive", config_key="step_size")
        if self.min_distance_to_connect < 0:
            raise ConfigurationError(
                "min_distance_to_connect must be non-negative", config_key="min_distance_to_connect"
            )
        if self.max_search_steps < 1:
            raise ConfigurationError("max_search_steps must be at least 1", config_key="max_search_steps")
        if self.heuristic not in ("distance", "dijkstra"):
            raise ConfigurationError(
                f"Unknown heuristic '{self.heuristic}'", config_key="heuristic"
            )
        if self.y_scale <= 0:
            raise ConfigurationError("y_scale must be positive", config_key="y_scale")
        if self.resolution <= 0:
            raise ConfigurationError("resolution must be positive", config_key="resolution")

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "NavigationConfig":
        """Build a config from environment-backed settings."""
        source = source or settings
        return cls(
            distance_factor=source.distance_factor,
            step_size=source.step_size,
            min_distance_to_connect=source.min_distance_to_connect,
            max_search_steps=source.max_search_steps,
            heuristic=source.heuristic,
            y_scale=source.y_scale,
            resolution=source.sampling_resolution,
            subdivide_straight_lines=source.subdivide_straight_lines,
        )
