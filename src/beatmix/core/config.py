#!/usr/bin/env python3
"""
Configuration and constants for the beatmix engine
Centralized configuration so analysis and transition stages share one source of truth
"""

from dataclasses import dataclass
from typing import Optional
from enum import Enum


class CrossfadeMode(Enum):
    """Transition crossfade policies"""
    STANDARD = "standard"
    EQ = "eq"


class AudioConstants:
    """Audio analysis constants"""
    ENERGY_WINDOW_SECONDS = 0.05  # 50 ms

    # Tempo search range
    MIN_BPM = 60.0
    MAX_BPM = 185.0
    BPM_DETECTION_FAILED = 0.0

    # Envelopes varying less than this are flat; spectral peaks at or below
    # the minimum magnitude count as no periodicity
    BPM_FLAT_TOLERANCE = 1e-6
    BPM_MIN_PEAK_MAGNITUDE = 1e-9

    # Beat detection
    PEAK_THRESHOLD = 0.3
    MIN_DETECTED_BEATS = 4

    # Downbeat detection
    DOWNBEAT_SEARCH_BEATS = 16
    DOWNBEAT_THRESHOLD = 0.5

    # Phrase detection
    PHRASE_LENGTH_BEATS = 16
    PHRASE_ENERGY_LIFT = 1.2


class TransitionConstants:
    """Transition controller constants"""
    TICK_INTERVAL_SECONDS = 0.05
    TRANSITION_BEAT_PRESETS = (8, 16, 32, 64)
    DEFAULT_TRANSITION_BEATS = 16

    # Playback rate band
    MIN_RATE = 0.5
    MAX_RATE = 2.0
    MAX_RATE_STEP = 0.02

    # Gains at or below this are reported as silence
    SILENCE_FLOOR = 0.001

    # EQ crossover sweep (Hz)
    EQ_MAX_HZ = 16000.0
    EQ_MIN_HZ = 40.0


@dataclass
class AnalysisSettings:
    """Per-track analysis settings"""
    window_seconds: float = AudioConstants.ENERGY_WINDOW_SECONDS
    min_bpm: float = AudioConstants.MIN_BPM
    max_bpm: float = AudioConstants.MAX_BPM
    peak_threshold: float = AudioConstants.PEAK_THRESHOLD
    min_detected_beats: int = AudioConstants.MIN_DETECTED_BEATS
    downbeat_search_beats: int = AudioConstants.DOWNBEAT_SEARCH_BEATS
    downbeat_threshold: float = AudioConstants.DOWNBEAT_THRESHOLD
    phrase_length: int = AudioConstants.PHRASE_LENGTH_BEATS

    def validate(self):
        """Validate analysis settings"""
        if self.window_seconds <= 0.0:
            raise ValueError("Energy window must be positive")
        if not 0.0 < self.min_bpm < self.max_bpm:
            raise ValueError(f"Invalid tempo range {self.min_bpm}-{self.max_bpm}")
        if not 0.0 <= self.peak_threshold < 1.0:
            raise ValueError("Peak threshold must be between 0.0 and 1.0")
        if self.min_detected_beats < 1:
            raise ValueError("Minimum detected beats must be at least 1")
        if self.downbeat_search_beats < 1:
            raise ValueError("Downbeat search window must cover at least 1 beat")
        if not 0.0 <= self.downbeat_threshold <= 1.0:
            raise ValueError("Downbeat threshold must be between 0.0 and 1.0")
        if self.phrase_length < 1:
            raise ValueError("Phrase length must be at least 1 beat")


@dataclass
class TransitionSettings:
    """Transition configuration settings"""
    transition_beats: int = TransitionConstants.DEFAULT_TRANSITION_BEATS
    crossfade_mode: CrossfadeMode = CrossfadeMode.STANDARD
    master_volume: float = 1.0
    max_rate_step: float = TransitionConstants.MAX_RATE_STEP
    min_rate: float = TransitionConstants.MIN_RATE
    max_rate: float = TransitionConstants.MAX_RATE
    silence_floor: float = TransitionConstants.SILENCE_FLOOR
    tick_interval: float = TransitionConstants.TICK_INTERVAL_SECONDS
    eq_min_hz: float = TransitionConstants.EQ_MIN_HZ
    eq_max_hz: float = TransitionConstants.EQ_MAX_HZ

    def validate(self):
        """Validate transition settings"""
        if self.transition_beats < 1:
            raise ValueError("Transition beats must be at least 1")
        if not 0.0 <= self.master_volume <= 1.0:
            raise ValueError("Master volume must be between 0.0 and 1.0")
        if self.max_rate_step <= 0.0:
            raise ValueError("Rate step must be positive")
        if not 0.0 < self.min_rate <= 1.0 <= self.max_rate:
            raise ValueError(f"Rate band {self.min_rate}-{self.max_rate} must contain 1.0")
        if not 0.0 < self.silence_floor < 1.0:
            raise ValueError("Silence floor must be between 0.0 and 1.0")
        if self.tick_interval <= 0.0:
            raise ValueError("Tick interval must be positive")
        if not 0.0 < self.eq_min_hz < self.eq_max_hz:
            raise ValueError(f"Invalid EQ sweep {self.eq_min_hz}-{self.eq_max_hz} Hz")


@dataclass
class EngineConfiguration:
    """Complete engine configuration"""
    analysis: AnalysisSettings = None
    transition: TransitionSettings = None

    # Worker threads used for concurrent track analysis
    max_workers: Optional[int] = 2

    def __post_init__(self):
        if self.analysis is None:
            self.analysis = AnalysisSettings()
        if self.transition is None:
            self.transition = TransitionSettings()

    def validate(self):
        """Validate complete configuration"""
        self.analysis.validate()
        self.transition.validate()

        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("At least one analysis worker is required")
