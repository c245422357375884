"""Tests for nanostats configuration."""

import pytest

from nanostats.config import (
    INACTIVE_WEIGHT,
    MIN_PROCESS_MEMORY_BYTES,
    TOP_PROCESS_COUNT,
    UPDATE_INTERVAL_SECONDS,
    NanoStatsConfig,
)


def test_defaults():
    """Default config matches the module constants."""
    config = NanoStatsConfig()
    assert config.title == "NanoStats"
    assert config.update_interval == UPDATE_INTERVAL_SECONDS == 2.0
    assert config.top_process_count == TOP_PROCESS_COUNT == 10
    assert config.min_process_bytes == MIN_PROCESS_MEMORY_BYTES == 1024 * 1024
    assert config.inactive_weight == INACTIVE_WEIGHT == 0.25


def test_config_is_frozen():
    """Config cannot be changed after creation."""
    config = NanoStatsConfig()
    with pytest.raises(AttributeError):
        config.top_process_count = 5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"title": ""},
        {"update_interval": 0},
        {"update_interval": -1.0},
        {"top_process_count": 0},
        {"min_process_bytes": -1},
        {"inactive_weight": -0.1},
        {"inactive_weight": 1.5},
        {"update_interval": float("nan")},
        {"update_interval": float("inf")},
        {"inactive_weight": float("nan")},
    ],
)
def test_invalid_values_rejected(kwargs):
    """Out-of-range settings raise ValueError."""
    with pytest.raises(ValueError):
        NanoStatsConfig(**kwargs)


def test_zero_threshold_allowed():
    """A zero process threshold keeps every process with any memory."""
    assert NanoStatsConfig(min_process_bytes=0).min_process_bytes == 0
