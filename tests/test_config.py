#!/usr/bin/env python3
"""
Tests for configuration validation
"""

import pytest
from beatmix.core.config import (
    AnalysisSettings, CrossfadeMode, EngineConfiguration, TransitionConstants, TransitionSettings,
)


def test_defaults_are_valid():
    config = EngineConfiguration()
    config.validate()

    assert config.transition.transition_beats == 16
    assert config.transition.crossfade_mode is CrossfadeMode.STANDARD
    assert config.transition.tick_interval == 0.05
    assert config.analysis.min_bpm == 60.0
    assert config.analysis.max_bpm == 185.0
    assert config.transition.transition_beats in TransitionConstants.TRANSITION_BEAT_PRESETS


@pytest.mark.parametrize("settings", [
    AnalysisSettings(window_seconds=0.0),
    AnalysisSettings(min_bpm=200.0),
    AnalysisSettings(peak_threshold=1.5),
    AnalysisSettings(min_detected_beats=0),
    AnalysisSettings(downbeat_threshold=-0.1),
    AnalysisSettings(phrase_length=0),
])
def test_invalid_analysis_settings(settings):
    with pytest.raises(ValueError):
        settings.validate()


@pytest.mark.parametrize("settings", [
    TransitionSettings(transition_beats=0),
    TransitionSettings(master_volume=1.5),
    TransitionSettings(max_rate_step=0.0),
    TransitionSettings(min_rate=1.2),
    TransitionSettings(max_rate=0.9),
    TransitionSettings(silence_floor=0.0),
    TransitionSettings(tick_interval=0.0),
    TransitionSettings(eq_min_hz=20000.0),
])
def test_invalid_transition_settings(settings):
    with pytest.raises(ValueError):
        settings.validate()


def test_invalid_worker_count():
    with pytest.raises(ValueError):
        EngineConfiguration(max_workers=0).validate()
