"""
Tests for configuration structs and merging.
"""

import dataclasses

import pytest

from tradeflow.engine.config import (
    DominanceConfig,
    EngineConfig,
    PulseConfig,
    TransitionConfig,
    merge_config,
)
from tradeflow.engine.data_types import DominanceMetric


class TestDefaults:
    """Defaults match the tuned values."""

    def test_dominance_defaults(self):
        config = DominanceConfig()

        assert config.window_ms == 200
        assert config.enter_dominance == 0.70
        assert config.exit_dominance == 0.60
        assert config.min_trades_per_sec == 20
        assert config.max_events_per_sec == 25
        assert config.dominance_metric is DominanceMetric.VOLUME

    def test_transition_defaults(self):
        config = TransitionConfig()

        assert config.window_ms == 1000
        assert config.thrust_threshold == 0.6
        assert config.history_depth_s == 3
        assert config.min_event_interval_ms == 500

    def test_pulse_defaults(self):
        config = PulseConfig()

        assert config.baseline_window_ms == 45_000
        assert config.switch_margin_z == 0.6
        assert config.min_switch_ms == 60
        assert (config.min_rate, config.max_rate) == (3.0, 28.0)

    def test_structs_are_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DominanceConfig().window_ms = 10

    def test_emit_interval_is_clamped(self):
        assert DominanceConfig(max_events_per_sec=25).min_emit_interval_ms == 40
        assert DominanceConfig(max_events_per_sec=0).min_emit_interval_ms == 1000
        assert DominanceConfig(max_events_per_sec=-5).min_emit_interval_ms == 1000


class TestMergeConfig:
    """merge_config never raises."""

    def test_returns_new_struct(self):
        base = DominanceConfig()

        merged = merge_config(base, {"window_ms": 300})

        assert merged is not base
        assert merged.window_ms == 300
        assert base.window_ms == 200

    def test_empty_partial_returns_same(self):
        base = PulseConfig()

        assert merge_config(base, {}) is base
        assert merge_config(base, None) is base

    def test_non_mapping_partial_is_ignored(self, caplog):
        base = DominanceConfig()

        assert merge_config(base, [("enter_dominance", 0.8)]) is base
        assert "non-mapping" in caplog.text

    def test_unknown_keys_are_ignored(self, caplog):
        merged = merge_config(DominanceConfig(), {"windowMs": 10, "exit_dominance": 0.5})

        assert merged.exit_dominance == 0.5
        assert "windowMs" in caplog.text

    def test_coercion(self):
        merged = merge_config(
            DominanceConfig(),
            {"dominance_metric": "COUNT", "debug": "true", "window_ms": "250.7", "cooldown_ms": 5.0},
        )

        assert merged.dominance_metric is DominanceMetric.COUNT
        assert merged.debug is True
        assert merged.window_ms == 250
        assert merged.cooldown_ms == 5

    @pytest.mark.parametrize(
        "bad",
        [{"window_ms": "wide"}, {"window_ms": float("inf")}, {"window_ms": True}, {"debug": "maybe"}],
    )
    def test_bad_values_are_skipped(self, bad):
        base = DominanceConfig()

        assert merge_config(base, bad) == base

    def test_unknown_metric_is_skipped(self):
        merged = merge_config(TransitionConfig(), {"dominance_metric": "notional"})
        assert merged.dominance_metric is DominanceMetric.VOLUME

    def test_nested_merge(self):
        merged = merge_config(
            EngineConfig(),
            {"transition": {"thrust_change": 0.4}, "rate_window_ms": 2000},
        )

        assert merged.transition.thrust_change == 0.4
        assert merged.transition.thrust_threshold == 0.6
        assert merged.rate_window_ms == 2000

    def test_nested_replacement_struct(self):
        replacement = PulseConfig(max_rate=10)

        merged = merge_config(EngineConfig(), {"pulse": replacement})

        assert merged.pulse is replacement

    def test_nested_non_mapping_is_skipped(self):
        merged = merge_config(EngineConfig(), {"pulse": 5})
        assert merged.pulse == PulseConfig()


class TestFromEnv:
    """Environment overrides for the console runner."""

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("TRADEFLOW_DOMINANCE__ENTER_DOMINANCE", "0.75")
        monkeypatch.setenv("TRADEFLOW_PULSE__MAX_RATE", "20")
        monkeypatch.setenv("TRADEFLOW_RATE_WINDOW_MS", "2000")
        monkeypatch.setenv("TRADEFLOW_ENABLE_TRANSITION", "off")

        config = EngineConfig.from_env()

        assert config.dominance.enter_dominance == 0.75
        assert config.pulse.max_rate == 20.0
        assert config.rate_window_ms == 2000
        assert config.enable_transition is False

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("TF_TRANSITION__WINDOW_MS", "500")

        assert EngineConfig.from_env(prefix="TF_").transition.window_ms == 500
