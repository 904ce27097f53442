"""Configuration system using pydantic-settings with environment variable loading.

Every heuristic constant used by the detectors and scorers lives here so it can
be recalibrated without touching the algorithms. Timeframe-keyed tables are
plain dicts on the settings; ``ToleranceTable`` freezes them into the immutable
map the scorer actually consumes.
"""

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

#: Timeframe used whenever a request names one the tables do not know.
DEFAULT_TIMEFRAME = "1day"


class SwingSettings(BaseSettings):
    """Swing point detection defaults (used when no timeframe profile applies)."""

    model_config = SettingsConfigDict(env_prefix="SWING_")

    lookback: int = 5
    min_significance: Decimal = Decimal("0.01")  # 1% of the series range
    min_count: int = 3
    max_count: int = 10


class FibonacciSettings(BaseSettings):
    """Fibonacci anchor selection and endpoint scoring parameters."""

    model_config = SettingsConfigDict(env_prefix="FIB_")

    uptrend_lookback: int = 5
    downtrend_lookback: int = 7
    tight_factor: Decimal = Decimal("0.1")  # fraction of tolerance for full credit
    endpoint_points: Decimal = Decimal("50")
    near_miss_floor: Decimal = Decimal("25")  # credit at the edge of tolerance
    plausible_swing_points: Decimal = Decimal("15")


class FvgSettings(BaseSettings):
    """Fair Value Gap detection and matching parameters."""

    model_config = SettingsConfigDict(env_prefix="FVG_")

    max_results: int = 5
    edge_tolerance: Decimal = Decimal("0.015")  # 1.5% relative per edge
    overlap_threshold: Decimal = Decimal("0.7")  # of the smaller range
    adaptive: bool = False
    min_gap_percent: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "1h": Decimal("0.002"),
            "4h": Decimal("0.003"),
            "1day": Decimal("0.005"),
            "1week": Decimal("0.01"),
        }
    )


class ToleranceSettings(BaseSettings):
    """Price (relative) and time (seconds) match windows per timeframe."""

    model_config = SettingsConfigDict(env_prefix="TOLERANCE_")

    default_timeframe: str = DEFAULT_TIMEFRAME
    price_pct: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "1h": Decimal("0.04"),
            "4h": Decimal("0.05"),
            "1day": Decimal("0.06"),
            "1week": Decimal("0.08"),
        }
    )
    time_seconds: dict[str, int] = Field(
        default_factory=lambda: {
            "1h": 2 * 3600,
            "4h": 8 * 3600,
            "1day": 2 * 86400,
            "1week": 7 * 86400,
        }
    )


class ApiSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass(frozen=True)
class TimeframeTolerance:
    """Match window for a single timeframe."""

    price_pct: Decimal
    time_seconds: int


class ToleranceTable:
    """Immutable timeframe -> TimeframeTolerance map with a mandatory default.

    Args:
        entries: Tolerance per timeframe key.
        default_key: Key used for unknown timeframes. Must be present in entries.
    """

    def __init__(
        self,
        entries: Mapping[str, TimeframeTolerance],
        default_key: str = DEFAULT_TIMEFRAME,
    ) -> None:
        if default_key not in entries:
            raise ValueError(f"tolerance table has no entry for default timeframe {default_key!r}")
        self._entries = MappingProxyType(dict(entries))
        self._default_key = default_key

    @classmethod
    def from_settings(cls, settings: ToleranceSettings) -> "ToleranceTable":
        entries = {
            key: TimeframeTolerance(
                price_pct=pct,
                time_seconds=settings.time_seconds.get(key, settings.time_seconds[settings.default_timeframe]),
            )
            for key, pct in settings.price_pct.items()
        }
        return cls(entries, default_key=settings.default_timeframe)

    @property
    def default(self) -> TimeframeTolerance:
        return self._entries[self._default_key]

    def for_timeframe(self, timeframe: str | None) -> TimeframeTolerance:
        """Look up a timeframe, falling back to the default entry."""
        if timeframe is None:
            return self.default
        return self._entries.get(timeframe, self.default)

    def __contains__(self, timeframe: object) -> bool:
        return timeframe in self._entries


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    swing: SwingSettings = SwingSettings()
    fibonacci: FibonacciSettings = FibonacciSettings()
    fvg: FvgSettings = FvgSettings()
    tolerance: ToleranceSettings = ToleranceSettings()
    api: ApiSettings = ApiSettings()

    def tolerance_table(self) -> ToleranceTable:
        return ToleranceTable.from_settings(self.tolerance)
