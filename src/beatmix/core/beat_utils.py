#!/usr/bin/env python3
"""
Beat grid utilities: beat tracking, downbeat and phrase location
"""

import logging
import numpy as np
from typing import Optional, Tuple
from beatmix.core.config import AudioConstants
from beatmix.core.models import BeatGrid, EnergyEnvelope

logger = logging.getLogger(__name__)


class BeatTracker:
    """Snaps energy peaks onto an evenly spaced grid at a known tempo"""

    def __init__(self, peak_threshold: float = AudioConstants.PEAK_THRESHOLD,
                 min_detected_beats: int = AudioConstants.MIN_DETECTED_BEATS):
        self.peak_threshold = peak_threshold
        self.min_detected_beats = min_detected_beats

    def detect_peaks(self, envelope: EnergyEnvelope) -> np.ndarray:
        """
        Frames that rise above the previous frame, hold against the next one
        and exceed the peak threshold.
        """
        values = envelope.values
        if len(values) < 3:
            return np.zeros(0, dtype=np.int64)

        centre = values[1:-1]
        is_peak = (centre > values[:-2]) & (centre >= values[2:]) & (centre > self.peak_threshold)
        return np.flatnonzero(is_peak) + 1

    def snap_to_grid(self, peaks: np.ndarray, num_frames: int, beat_hop: float) -> np.ndarray:
        """
        Walk from the first peak in steps of beat_hop frames, snapping each
        target to the closest peak within half a beat.

        When no peak is close enough the nominal target frame is kept, so a
        weak isolated beat is placed on the grid rather than detected. Ties go
        to the earlier peak.

        Returns:
            Beat positions in (possibly fractional) frames
        """
        if len(peaks) == 0 or beat_hop <= 0:
            return np.zeros(0, dtype=np.float64)

        half_beat = beat_hop / 2.0
        beat_frames = []
        frame = float(peaks[0])

        while frame < num_frames:
            best = frame
            best_distance = None
            idx = int(np.searchsorted(peaks, frame))
            for candidate in peaks[max(0, idx - 1):idx + 1]:
                distance = abs(candidate - frame)
                if distance < half_beat and (best_distance is None or distance < best_distance):
                    best = float(candidate)
                    best_distance = distance
            beat_frames.append(best)
            frame += beat_hop

        return np.asarray(beat_frames, dtype=np.float64)

    def track(self, envelope: EnergyEnvelope, bpm: float, duration: float,
              offset: Optional[float] = None) -> BeatGrid:
        """
        Build the beat grid for a track.

        Args:
            envelope: Normalized (not mean-removed) energy envelope
            bpm: Estimated tempo; 0 means detection failed
            duration: Track length in seconds, bounds the synthetic fallback
            offset: Start of the synthetic fallback grid. Defaults to the first
                    energy peak, or 0.0 when there is none

        Returns:
            Detected grid, or a synthetic uniform grid when fewer than
            min_detected_beats beats were found
        """
        if bpm <= 0:
            return BeatGrid.empty()

        peaks = self.detect_peaks(envelope)
        beat_hop = (60.0 / bpm) * envelope.sample_rate / envelope.hop_size
        frames = self.snap_to_grid(peaks, len(envelope), beat_hop)
        times = np.unique(frames * envelope.hop_size / envelope.sample_rate)

        if len(times) >= self.min_detected_beats:
            logger.debug("Tracked %d beats from %d peaks at %.1f BPM", len(times), len(peaks), bpm)
            return BeatGrid(times=times)

        if offset is None:
            offset = envelope.frame_to_time(peaks[0]) if len(peaks) else 0.0

        grid = BeatGrid.uniform(bpm, duration, offset)
        logger.warning("Detection degraded: %d beats found (need %d), using synthetic %.1f BPM grid of %d beats",
                       len(times), self.min_detected_beats, bpm, len(grid))
        return grid


class DownbeatLocator:
    """Finds the first strong beat near the start of a track"""

    def __init__(self, search_beats: int = AudioConstants.DOWNBEAT_SEARCH_BEATS,
                 threshold: float = AudioConstants.DOWNBEAT_THRESHOLD,
                 window_seconds: float = AudioConstants.ENERGY_WINDOW_SECONDS,
                 min_beats: int = AudioConstants.MIN_DETECTED_BEATS):
        self.search_beats = search_beats
        self.threshold = threshold
        self.window_seconds = window_seconds
        self.min_beats = min_beats

    def beat_energies(self, samples: np.ndarray, sample_rate: int, grid: BeatGrid) -> np.ndarray:
        """Energy of a short window starting at each of the first search_beats beats"""
        window = int(sample_rate * self.window_seconds)
        energies = []
        for beat in grid.times[:self.search_beats]:
            start = min(max(int(np.floor(beat * sample_rate)), 0), len(samples))
            segment = np.asarray(samples[start:start + window], dtype=np.float64)
            energies.append(float(np.sum(segment * segment)))
        return np.asarray(energies, dtype=np.float64)

    def locate(self, samples: np.ndarray, sample_rate: int, grid: BeatGrid) -> float:
        """
        Time of the first beat whose energy exceeds threshold * the loudest of
        the first beats.

        Returns 0.0 with fewer than min_beats beats, and the first beat when no
        beat qualifies.
        """
        if len(grid) < self.min_beats:
            return 0.0

        energies = self.beat_energies(samples, sample_rate, grid)
        peak = energies.max()
        if peak <= 0:
            return float(grid.times[0])

        strong = np.flatnonzero(energies / peak > self.threshold)
        if len(strong) == 0:
            return float(grid.times[0])
        return float(grid.times[strong[0]])


class PhraseLocator:
    """Marks phrase starts where the energy of a block of beats lifts"""

    def __init__(self, phrase_length: int = AudioConstants.PHRASE_LENGTH_BEATS,
                 energy_lift: float = AudioConstants.PHRASE_ENERGY_LIFT):
        self.phrase_length = phrase_length
        self.energy_lift = energy_lift

    def locate(self, samples: np.ndarray, sample_rate: int, grid: BeatGrid) -> Tuple[float, ...]:
        length = self.phrase_length
        if len(grid) < length:
            return ()

        starts = []
        energies = []
        for i in range(0, len(grid) - length, length):
            start_sample = int(np.floor(grid.times[i] * sample_rate))
            end_sample = int(np.floor(grid.times[i + length] * sample_rate))
            segment = np.asarray(samples[start_sample:end_sample], dtype=np.float64)
            span = max(end_sample - start_sample, 1)
            energies.append(float(np.sum(segment * segment)) / span)
            starts.append(float(grid.times[i]))

        if not energies:
            return ()

        energies = np.asarray(energies)
        peak = energies.max()
        if peak > 0:
            energies = energies / peak

        phrases = [starts[0]]
        for i in range(1, len(energies)):
            if energies[i] > energies[i - 1] * self.energy_lift:
                phrases.append(starts[i])
        return tuple(phrases)
