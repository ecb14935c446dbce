#!/usr/bin/env python3
"""
Tests for beat tracking, downbeat and phrase location
"""

import numpy as np
import pytest
from beatmix.core.beat_utils import BeatTracker, DownbeatLocator, PhraseLocator
from beatmix.core.energy import compute_energy_envelope
from beatmix.core.models import AudioSignal, BeatGrid, EnergyEnvelope
from conftest import create_click_track


def _flat_envelope(num_frames=800, level=0.1):
    return EnergyEnvelope(values=np.full(num_frames, level, dtype=np.float32),
                          hop_size=551, window_size=1102, sample_rate=22050)


class TestPeakPicking:

    def test_rise_then_hold_is_a_peak(self):
        values = np.array([0.0, 0.5, 0.5, 0.1, 0.9, 0.2, 0.2], dtype=np.float32)
        envelope = EnergyEnvelope(values=values, hop_size=1, window_size=2, sample_rate=100)
        peaks = BeatTracker().detect_peaks(envelope)
        # Plateau reports its first frame; the 0.9 spike is a peak too
        assert peaks.tolist() == [1, 4]

    def test_threshold_filters_weak_peaks(self):
        values = np.array([0.0, 0.25, 0.0, 0.8, 0.0], dtype=np.float32)
        envelope = EnergyEnvelope(values=values, hop_size=1, window_size=2, sample_rate=100)
        assert BeatTracker().detect_peaks(envelope).tolist() == [3]


class TestGridSnapping:

    def test_snaps_to_closest_peak_within_half_beat(self):
        peaks = np.array([10, 29, 33, 50])
        frames = BeatTracker().snap_to_grid(peaks, num_frames=60, beat_hop=20.0)
        assert frames.tolist() == [10.0, 29.0, 50.0]

    def test_nominal_position_kept_when_no_peak_in_range(self):
        peaks = np.array([10, 50])
        frames = BeatTracker().snap_to_grid(peaks, num_frames=60, beat_hop=20.0)
        assert frames.tolist() == [10.0, 30.0, 50.0]

    def test_tie_goes_to_earlier_peak(self):
        peaks = np.array([0, 18, 22])
        frames = BeatTracker().snap_to_grid(peaks, num_frames=30, beat_hop=20.0)
        assert frames.tolist() == [0.0, 18.0]


class TestBeatTracker:

    def test_tracks_click_track(self, click_signal_120):
        envelope = compute_energy_envelope(click_signal_120)
        grid = BeatTracker().track(envelope, 120.0, click_signal_120.duration)

        assert not grid.synthetic
        assert 36 <= len(grid) <= 41
        assert np.all(np.diff(grid.times) > 0)
        np.testing.assert_allclose(np.diff(grid.times), 0.5, atol=0.06)

        clicks = 0.1 + 0.5 * np.arange(40)
        for beat in grid:
            assert np.min(np.abs(clicks - beat)) < 0.06

    def test_fallback_without_peaks(self):
        grid = BeatTracker().track(_flat_envelope(), 120.0, duration=10.0, offset=0.25)

        assert grid.synthetic
        assert len(grid) == int(np.floor(10.0 / 0.5))
        assert grid.first == pytest.approx(0.25)
        np.testing.assert_allclose(np.diff(grid.times), 0.5)

    def test_fallback_offset_defaults_to_zero_without_peaks(self):
        grid = BeatTracker().track(_flat_envelope(), 100.0, duration=6.3)
        assert grid.first == 0.0
        assert len(grid) == 11

    def test_fallback_when_only_late_peaks(self):
        sr = 22050
        samples = np.zeros(sr * 10, dtype=np.float32)
        samples[int(9.8 * sr):int(9.81 * sr)] = 1.0
        envelope = compute_energy_envelope(AudioSignal(samples=samples, sample_rate=sr))

        grid = BeatTracker().track(envelope, 120.0, duration=10.0)

        assert grid.synthetic
        # Synthetic grid starts at the only detected peak
        assert grid.first == pytest.approx(9.8, abs=0.05)
        np.testing.assert_allclose(np.diff(grid.times), 0.5)

    def test_zero_bpm_gives_empty_grid(self, click_signal_120):
        envelope = compute_energy_envelope(click_signal_120)
        assert len(BeatTracker().track(envelope, 0.0, 20.0)) == 0


class TestDownbeatLocator:

    def test_first_accented_beat(self):
        sr = 22050
        samples = create_click_track(120, 10.0, sr=sr, amplitudes=[0.3, 0.3, 1.0, 0.3])
        grid = BeatGrid.uniform(120, 10.0)

        assert DownbeatLocator().locate(samples, sr, grid) == pytest.approx(1.0)

    def test_equal_beats_return_first_beat(self):
        sr = 22050
        samples = create_click_track(120, 10.0, sr=sr, offset=0.5)
        grid = BeatGrid.uniform(120, 9.5, offset=0.5)

        assert DownbeatLocator().locate(samples, sr, grid) == pytest.approx(0.5)

    def test_silence_returns_first_beat(self):
        grid = BeatGrid(times=np.array([0.2, 0.7, 1.2, 1.7, 2.2]))
        assert DownbeatLocator().locate(np.zeros(22050 * 3), 22050, grid) == pytest.approx(0.2)

    def test_fewer_than_four_beats_returns_zero(self):
        grid = BeatGrid(times=np.array([0.5, 1.0, 1.5]))
        assert DownbeatLocator().locate(np.ones(22050 * 2), 22050, grid) == 0.0

    def test_beats_past_buffer_end_are_clamped(self):
        grid = BeatGrid(times=np.array([0.5, 1.0, 1.5, 2.0, 50.0]))
        samples = create_click_track(120, 3.0, sr=22050)
        assert DownbeatLocator().locate(samples, 22050, grid) == pytest.approx(0.5)


class TestPhraseLocator:

    def test_marks_first_phrase_and_energy_lifts(self):
        sr = 22050
        amplitudes = [0.5] * 8 + [1.0] * 4 + [0.2] * 8
        samples = create_click_track(120, 10.0, sr=sr, amplitudes=amplitudes)
        grid = BeatGrid.uniform(120, 10.0)

        phrases = PhraseLocator(phrase_length=4).locate(samples, sr, grid)

        assert phrases == pytest.approx((0.0, 4.0))

    def test_short_grid_has_no_phrases(self):
        grid = BeatGrid.uniform(120, 4.0)
        assert PhraseLocator(phrase_length=16).locate(np.ones(22050 * 4), 22050, grid) == ()

    def test_silence_keeps_only_first_phrase(self):
        grid = BeatGrid.uniform(120, 20.0)
        assert PhraseLocator(phrase_length=8).locate(np.zeros(22050 * 20), 22050, grid) == (0.0,)
