#!/usr/bin/env python3
"""
Tests for the engine data models
"""

import math
import numpy as np
import pytest
from beatmix.core.models import (
    AnalysisFailure, AudioSignal, BeatGrid, DeckId, FailureReason, TrackAnalysis, gain_to_db,
)


class TestAudioSignal:

    def test_duration(self):
        signal = AudioSignal(samples=np.zeros(44100), sample_rate=22050)
        assert signal.duration == 2.0

    def test_stereo_is_rejected(self):
        with pytest.raises(ValueError):
            AudioSignal(samples=np.zeros((2, 100)), sample_rate=22050)

    def test_from_array_downmixes(self):
        stereo = np.stack([np.ones(100), np.zeros(100)])
        signal = AudioSignal.from_array(stereo, 22050)
        assert signal.samples.shape == (100,)
        np.testing.assert_allclose(signal.samples, 0.5)

    def test_invalid_sample_rate(self):
        with pytest.raises(ValueError):
            AudioSignal(samples=np.zeros(10), sample_rate=0)


class TestBeatGrid:

    def test_times_must_increase(self):
        with pytest.raises(ValueError):
            BeatGrid(times=np.array([0.0, 1.0, 1.0]))
        with pytest.raises(ValueError):
            BeatGrid(times=np.array([1.0, 0.5]))

    def test_uniform_grid(self):
        grid = BeatGrid.uniform(120, 10.0, offset=0.25)
        assert len(grid) == 20
        assert grid.synthetic
        assert grid.first == 0.25
        assert grid[-1] == pytest.approx(9.75)

    def test_uniform_without_tempo_is_empty(self):
        assert len(BeatGrid.uniform(0.0, 10.0)) == 0

    def test_index_after_is_strict(self):
        grid = BeatGrid(times=np.array([0.5, 1.0, 1.5]))
        assert grid.index_after(0.0) == 0
        assert grid.index_after(1.0) == 2
        assert grid.index_after(2.0) == 3
        assert grid.beat_count_at(1.2) == 2

    def test_anchored_translates_grid(self):
        grid = BeatGrid(times=np.array([0.1, 0.6, 1.1, 1.6, 2.1]))
        anchored = grid.anchored(0.6, duration=2.5)

        np.testing.assert_allclose(anchored.times, [0.6, 1.1, 1.6, 2.1])
        assert anchored.first == 0.6

    def test_anchoring_is_idempotent(self):
        grid = BeatGrid(times=np.array([0.1, 0.6, 1.1, 1.6, 2.1]))
        once = grid.anchored(0.6, duration=2.5)
        assert once.anchored(0.6, duration=2.5) is once

    def test_anchor_on_first_beat_is_unchanged(self):
        grid = BeatGrid(times=np.array([0.1, 0.6]))
        assert grid.anchored(0.1) is grid

    def test_normalized(self):
        grid = BeatGrid(times=np.array([1.0, 2.0, 3.0]))
        np.testing.assert_allclose(grid.normalized(4.0), [0.25, 0.5, 0.75])
        assert len(grid.normalized(0.0)) == 0

    def test_iteration_yields_floats(self):
        assert list(BeatGrid(times=np.array([0.5, 1.0]))) == [0.5, 1.0]
        assert BeatGrid.empty().first is None


class TestAnalysisResults:

    def test_track_analysis(self):
        analysis = TrackAnalysis(bpm=120.0, beat_grid=BeatGrid.uniform(120, 4.0), downbeat=0.0,
                                 duration=4.0, sample_rate=44100)
        assert analysis.ok
        assert analysis.seconds_per_beat == 0.5
        assert analysis.beat_count == 8

    def test_track_analysis_requires_tempo(self):
        with pytest.raises(ValueError):
            TrackAnalysis(bpm=0.0, beat_grid=BeatGrid.empty(), downbeat=0.0, duration=1.0, sample_rate=44100)

    def test_failure_reports_sentinels(self):
        failure = AnalysisFailure(FailureReason.NO_TEMPO, "flat", duration=3.0)
        assert not failure.ok
        assert failure.bpm == 0.0
        assert len(failure.beat_grid) == 0


def test_gain_to_db():
    assert gain_to_db(1.0) == 0.0
    assert gain_to_db(0.5) == pytest.approx(-6.0206, abs=1e-3)
    assert gain_to_db(0.0) == -math.inf


def test_deck_other():
    assert DeckId.DECK_A.other is DeckId.DECK_B
    assert DeckId.DECK_B.other is DeckId.DECK_A
