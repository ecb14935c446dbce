#!/usr/bin/env python3
"""
Spectral tempo estimation on the energy envelope
"""

import logging
import numpy as np
from beatmix.core.config import AudioConstants
from beatmix.core.models import EnergyEnvelope

logger = logging.getLogger(__name__)


class BpmEstimator:
    """Finds the dominant beat frequency of an energy envelope"""

    def __init__(self, min_bpm: float = AudioConstants.MIN_BPM, max_bpm: float = AudioConstants.MAX_BPM,
                 flat_tolerance: float = AudioConstants.BPM_FLAT_TOLERANCE,
                 min_peak_magnitude: float = AudioConstants.BPM_MIN_PEAK_MAGNITUDE):
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm
        self.flat_tolerance = flat_tolerance
        self.min_peak_magnitude = min_peak_magnitude

    def estimate(self, envelope: EnergyEnvelope) -> float:
        """
        Estimate the tempo of an envelope.

        The DC-removed envelope is zero-padded to the next power of two and
        transformed; the strongest bin whose tempo lies in [min_bpm, max_bpm]
        wins. Periodic emphasis in the envelope shows up as a peak at the beat
        frequency, and the restricted range keeps octave errors out.

        Returns:
            BPM rounded to one decimal, or BPM_DETECTION_FAILED (0.0) when the
            envelope is empty, flat, or has no bin inside the range
        """
        if envelope.is_empty:
            return AudioConstants.BPM_DETECTION_FAILED

        values = envelope.dc_removed().astype(np.float64)
        if np.max(np.abs(values)) <= self.flat_tolerance:
            logger.debug("Flat energy envelope, tempo undetected")
            return AudioConstants.BPM_DETECTION_FAILED

        fft_size = 1 << int(np.ceil(np.log2(len(values))))
        magnitudes = np.abs(np.fft.rfft(values, n=fft_size))[:fft_size // 2]

        bin_freq = envelope.frame_rate / fft_size
        bins = np.arange(len(magnitudes))
        tempos = bins * bin_freq * 60.0
        in_range = (bins >= 1) & (tempos >= self.min_bpm) & (tempos <= self.max_bpm)

        if not np.any(in_range):
            logger.warning("Envelope too short to resolve tempos in %.0f-%.0f BPM",
                           self.min_bpm, self.max_bpm)
            return AudioConstants.BPM_DETECTION_FAILED

        candidates = np.where(in_range, magnitudes, 0.0)
        peak_index = int(np.argmax(candidates))
        if candidates[peak_index] <= self.min_peak_magnitude:
            logger.debug("No spectral peak above %.1e, tempo undetected", self.min_peak_magnitude)
            return AudioConstants.BPM_DETECTION_FAILED

        bpm = round(float(tempos[peak_index]), 1)
        logger.debug("Spectral peak at bin %d (%.3f Hz) -> %.1f BPM",
                     peak_index, peak_index * bin_freq, bpm)
        return bpm


def estimate_bpm(envelope: EnergyEnvelope, min_bpm: float = AudioConstants.MIN_BPM,
                 max_bpm: float = AudioConstants.MAX_BPM) -> float:
    """Convenience wrapper around BpmEstimator"""
    return BpmEstimator(min_bpm, max_bpm).estimate(envelope)
