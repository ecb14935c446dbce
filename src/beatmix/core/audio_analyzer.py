#!/usr/bin/env python3
"""
Audio analysis for the beatmix engine: tempo, beat grid, downbeat and phrases
"""

import logging
import threading
from typing import Optional
from beatmix.core.config import AnalysisSettings
from beatmix.core.models import (
    AnalysisFailure, AnalysisResult, AudioSignal, FailureReason, TrackAnalysis,
)
from beatmix.core.energy import compute_energy_envelope
from beatmix.core.bpm import BpmEstimator
from beatmix.core.beat_utils import BeatTracker, DownbeatLocator, PhraseLocator

logger = logging.getLogger(__name__)


class AnalysisCancelled(Exception):
    """Raised internally when a caller abandons an analysis"""


class AudioAnalyzer:
    """Handles audio analysis for BPM, beat grid and downbeat detection"""

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()
        self.settings.validate()

        self.bpm_estimator = BpmEstimator(self.settings.min_bpm, self.settings.max_bpm)
        self.beat_tracker = BeatTracker(
            peak_threshold=self.settings.peak_threshold,
            min_detected_beats=self.settings.min_detected_beats,
        )
        self.downbeat_locator = DownbeatLocator(
            search_beats=self.settings.downbeat_search_beats,
            threshold=self.settings.downbeat_threshold,
            window_seconds=self.settings.window_seconds,
            min_beats=self.settings.min_detected_beats,
        )
        self.phrase_locator = PhraseLocator(phrase_length=self.settings.phrase_length)

    def analyze_track(self, signal: AudioSignal,
                      cancel_event: Optional[threading.Event] = None) -> AnalysisResult:
        """
        Analyze one track.

        Bad input never raises: a too-short, silent or tempo-less signal comes
        back as an AnalysisFailure, as does an analysis abandoned through
        cancel_event. Nothing from a cancelled run is kept.

        Args:
            signal: Decoded mono PCM, borrowed for the duration of the call
            cancel_event: Set by the caller to abandon the analysis

        Returns:
            TrackAnalysis on success, AnalysisFailure otherwise
        """
        try:
            return self._analyze(signal, cancel_event)
        except AnalysisCancelled:
            logger.info("Analysis cancelled after partial work, result discarded")
            return AnalysisFailure(FailureReason.CANCELLED, "analysis cancelled", signal.duration)

    def _analyze(self, signal: AudioSignal, cancel_event: Optional[threading.Event]) -> AnalysisResult:
        duration = signal.duration

        self._check_cancelled(cancel_event)
        envelope = compute_energy_envelope(signal, self.settings.window_seconds)
        if envelope.is_empty:
            logger.warning("Signal too short for analysis (%.3fs)", duration)
            return AnalysisFailure(FailureReason.TOO_SHORT,
                                   f"signal of {duration:.3f}s is shorter than one analysis window",
                                   duration)
        if envelope.is_silent:
            logger.warning("Silent signal, no tempo to detect")
            return AnalysisFailure(FailureReason.SILENT, "signal is silent", duration)

        self._check_cancelled(cancel_event)
        bpm = self.bpm_estimator.estimate(envelope)
        if bpm <= 0:
            logger.warning("No tempo found in %.0f-%.0f BPM range",
                           self.settings.min_bpm, self.settings.max_bpm)
            return AnalysisFailure(FailureReason.NO_TEMPO, "no periodicity in tempo range", duration)

        self._check_cancelled(cancel_event)
        grid = self.beat_tracker.track(envelope, bpm, duration)

        self._check_cancelled(cancel_event)
        downbeat = self.downbeat_locator.locate(signal.samples, signal.sample_rate, grid)
        grid = grid.anchored(downbeat, duration)
        phrases = self.phrase_locator.locate(signal.samples, signal.sample_rate, grid)

        self._check_cancelled(cancel_event)
        logger.info("Analyzed %.1fs track: %.1f BPM, %d beats%s, downbeat %.3fs",
                    duration, bpm, len(grid), " (synthetic)" if grid.synthetic else "", downbeat)

        return TrackAnalysis(
            bpm=bpm,
            beat_grid=grid,
            downbeat=downbeat,
            duration=duration,
            sample_rate=signal.sample_rate,
            phrases=phrases,
        )

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]):
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelled()
