#!/usr/bin/env python3
"""
Shared fixtures: synthetic click tracks at known tempos
"""

import numpy as np
import pytest
from beatmix.core.models import AudioSignal, BeatGrid, TrackAnalysis


def create_click_track(bpm, duration_seconds, sr=22050, offset=0.0, amplitudes=None,
                       click_seconds=0.01, click_freq=1000.0):
    """
    Create a mono click track with one decaying sine burst per beat.

    amplitudes cycles over the beats, e.g. [1.0, 0.3, 0.3, 0.3] accents every
    fourth beat.
    """
    total_samples = int(duration_seconds * sr)
    audio = np.zeros(total_samples, dtype=np.float32)

    click_samples = int(click_seconds * sr)
    t = np.arange(click_samples) / sr
    click = np.sin(2 * np.pi * click_freq * t) * np.exp(-t * 200)

    seconds_per_beat = 60.0 / bpm
    beat = 0
    while True:
        start = int(round((offset + beat * seconds_per_beat) * sr))
        if start >= total_samples:
            break
        amplitude = 1.0 if amplitudes is None else amplitudes[beat % len(amplitudes)]
        end = min(start + click_samples, total_samples)
        audio[start:end] += (amplitude * click[:end - start]).astype(np.float32)
        beat += 1

    return audio


def make_analysis(bpm, duration=60.0, offset=0.0, sr=44100):
    """TrackAnalysis with a uniform grid, for transition tests"""
    grid = BeatGrid.uniform(bpm, duration, offset)
    return TrackAnalysis(bpm=bpm, beat_grid=grid, downbeat=offset, duration=duration, sample_rate=sr)


@pytest.fixture
def click_signal_120():
    sr = 22050
    return AudioSignal(samples=create_click_track(120, 20.0, sr=sr, offset=0.1), sample_rate=sr)


@pytest.fixture
def click_signal_128():
    sr = 22050
    return AudioSignal(samples=create_click_track(128, 20.0, sr=sr, offset=0.2), sample_rate=sr)


@pytest.fixture
def silent_signal():
    return AudioSignal(samples=np.zeros(22050 * 5, dtype=np.float32), sample_rate=22050)


@pytest.fixture
def track_120():
    return make_analysis(120.0)


@pytest.fixture
def track_126():
    return make_analysis(126.0)
