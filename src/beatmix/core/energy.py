#!/usr/bin/env python3
"""
Short-time energy envelope used by tempo and beat analysis
"""

import numpy as np
from beatmix.core.config import AudioConstants
from beatmix.core.models import AudioSignal, EnergyEnvelope


def frame_sizes(sample_rate: int, window_seconds: float = AudioConstants.ENERGY_WINDOW_SECONDS):
    """Return (window_size, hop_size) in samples for a sample rate"""
    window_size = int(sample_rate * window_seconds)
    hop_size = max(1, window_size // 2)
    return window_size, hop_size


def compute_energy_envelope(signal: AudioSignal,
                            window_seconds: float = AudioConstants.ENERGY_WINDOW_SECONDS) -> EnergyEnvelope:
    """
    Reduce PCM to a normalized short-time energy curve.

    Frame i sums the squared samples of [i * hop, i * hop + window). The curve is
    divided by its maximum so it lies in 0..1; silence stays all-zero. A signal
    not longer than one window yields an empty envelope.

    Args:
        signal: Mono PCM and its sample rate
        window_seconds: Analysis window length (hop is half a window)

    Returns:
        EnergyEnvelope in [0, 1]
    """
    window_size, hop_size = frame_sizes(signal.sample_rate, window_seconds)
    samples = np.asarray(signal.samples, dtype=np.float64)

    num_frames = 0
    if window_size > 0 and len(samples) > window_size:
        num_frames = (len(samples) - window_size) // hop_size

    if num_frames <= 0:
        return EnergyEnvelope(
            values=np.zeros(0, dtype=np.float32),
            hop_size=hop_size,
            window_size=window_size,
            sample_rate=signal.sample_rate,
        )

    # Window sums from a running total of squared samples
    squared_total = np.concatenate(([0.0], np.cumsum(samples * samples)))
    starts = np.arange(num_frames) * hop_size
    energy = squared_total[starts + window_size] - squared_total[starts]
    energy = np.maximum(energy, 0.0)

    peak = energy.max()
    if peak > 0:
        energy = energy / peak

    return EnergyEnvelope(
        values=energy.astype(np.float32),
        hop_size=hop_size,
        window_size=window_size,
        sample_rate=signal.sample_rate,
    )
