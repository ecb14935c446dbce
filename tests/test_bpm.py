#!/usr/bin/env python3
"""
Tests for spectral BPM estimation
"""

import numpy as np
import pytest
from beatmix.core.bpm import BpmEstimator, estimate_bpm
from beatmix.core.config import AudioConstants
from beatmix.core.energy import compute_energy_envelope
from beatmix.core.models import AudioSignal, EnergyEnvelope
from conftest import create_click_track


def _envelope(bpm, duration, sr):
    signal = AudioSignal(samples=create_click_track(bpm, duration, sr=sr), sample_rate=sr)
    return compute_energy_envelope(signal)


def test_128_bpm_click_train_at_44k():
    assert estimate_bpm(_envelope(128, 30.0, 44100)) == pytest.approx(128, abs=1.0)


@pytest.mark.parametrize("bpm", [100, 120, 140, 174])
def test_click_trains_across_range(bpm):
    estimate = estimate_bpm(_envelope(bpm, 30.0, 22050))
    assert estimate == pytest.approx(bpm, abs=1.5)


def test_result_is_rounded_to_one_decimal():
    estimate = estimate_bpm(_envelope(128, 30.0, 22050))
    assert estimate == round(estimate, 1)


def test_empty_envelope_is_failure_sentinel():
    envelope = EnergyEnvelope(values=np.zeros(0, dtype=np.float32), hop_size=551,
                              window_size=1102, sample_rate=22050)
    assert estimate_bpm(envelope) == 0.0


def test_flat_envelope_is_failure_sentinel():
    envelope = EnergyEnvelope(values=np.ones(1000, dtype=np.float32), hop_size=551,
                              window_size=1102, sample_rate=22050)
    assert estimate_bpm(envelope) == 0.0


def test_silent_envelope_is_failure_sentinel():
    signal = AudioSignal(samples=np.zeros(22050 * 10, dtype=np.float32), sample_rate=22050)
    assert estimate_bpm(compute_energy_envelope(signal)) == 0.0


def test_restricted_range_excludes_true_tempo():
    # 120 BPM clicks with a 130-185 window cannot report 120
    estimate = BpmEstimator(min_bpm=130, max_bpm=185).estimate(_envelope(120, 30.0, 22050))
    assert estimate == 0.0 or 130 <= estimate <= 185


def test_ripple_below_flat_tolerance_is_failure_sentinel():
    values = np.zeros(800, dtype=np.float32)
    values[::20] = 1e-7
    envelope = EnergyEnvelope(values=values, hop_size=551, window_size=1102, sample_rate=22050)

    assert 1e-7 < AudioConstants.BPM_FLAT_TOLERANCE
    assert BpmEstimator().estimate(envelope) == 0.0
    # The same pulse train is a 120 BPM tempo once the tolerance allows it
    assert BpmEstimator(flat_tolerance=1e-9).estimate(envelope) == pytest.approx(120, abs=2.0)
