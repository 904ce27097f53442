"""Tests for settings loading and the tolerance table."""

from decimal import Decimal

import pytest

from chartexam.config import (
    AppSettings,
    FvgSettings,
    SwingSettings,
    TimeframeTolerance,
    ToleranceSettings,
    ToleranceTable,
)


class TestToleranceTable:
    """Tests for the immutable timeframe -> tolerance map."""

    def test_defaults_from_settings(self) -> None:
        table = ToleranceTable.from_settings(ToleranceSettings())

        assert table.for_timeframe("1h") == TimeframeTolerance(Decimal("0.04"), 7200)
        assert table.for_timeframe("1week") == TimeframeTolerance(Decimal("0.08"), 604800)
        assert "4h" in table

    def test_unknown_timeframe_falls_back_to_default(self) -> None:
        table = AppSettings().tolerance_table()

        assert table.for_timeframe("3m") == table.default
        assert table.for_timeframe(None) == table.default
        assert table.default == TimeframeTolerance(Decimal("0.06"), 172800)

    def test_default_entry_required(self) -> None:
        with pytest.raises(ValueError):
            ToleranceTable({"1h": TimeframeTolerance(Decimal("0.04"), 7200)}, default_key="1day")


class TestEnvironmentOverrides:
    """Heuristic constants can be recalibrated from the environment."""

    def test_fvg_overlap_threshold(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FVG_OVERLAP_THRESHOLD", "0.8")
        assert FvgSettings().overlap_threshold == Decimal("0.8")

    def test_swing_lookback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SWING_LOOKBACK", "7")
        assert SwingSettings().lookback == 7

    def test_defaults(self) -> None:
        settings = AppSettings()
        assert settings.fvg.max_results == 5
        assert settings.fibonacci.downtrend_lookback == 7
        assert settings.api.port == 8080
