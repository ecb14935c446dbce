#!/usr/bin/env python3
"""
Data models for the beatmix engine
"""

import math
import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union
from beatmix.core.config import AudioConstants


class DeckId(Enum):
    """The two playback decks"""
    DECK_A = "deck-a"
    DECK_B = "deck-b"

    @property
    def other(self) -> "DeckId":
        return DeckId.DECK_B if self is DeckId.DECK_A else DeckId.DECK_A


class TransitionPhase(Enum):
    """Transition controller states"""
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETE = "complete"


class FailureReason(Enum):
    """Why a track could not be analyzed"""
    TOO_SHORT = "too-short"
    SILENT = "silent"
    NO_TEMPO = "no-tempo"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AudioSignal:
    """Borrowed view over decoded mono PCM"""
    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        if np.ndim(self.samples) != 1:
            raise ValueError("AudioSignal expects mono samples; use AudioSignal.from_array")

    @classmethod
    def from_array(cls, audio, sample_rate: int) -> "AudioSignal":
        """Build a signal from any array, downmixing (channels, samples) input to mono"""
        data = np.asarray(audio, dtype=np.float32)
        if data.ndim == 2:
            data = data.mean(axis=0)
        return cls(samples=data, sample_rate=int(sample_rate))

    @property
    def duration(self) -> float:
        """Duration in seconds"""
        return len(self.samples) / self.sample_rate


@dataclass(frozen=True)
class EnergyEnvelope:
    """Short-time energy curve, normalized to 0..1

    values[i] is the energy of the window starting at sample i * hop_size.
    """
    values: np.ndarray
    hop_size: int
    window_size: int
    sample_rate: int

    @property
    def frame_rate(self) -> float:
        """Envelope frames per second"""
        return self.sample_rate / self.hop_size

    @property
    def is_empty(self) -> bool:
        return len(self.values) == 0

    @property
    def is_silent(self) -> bool:
        return self.is_empty or not np.any(self.values > 0.0)

    def dc_removed(self) -> np.ndarray:
        """Mean-removed view used for spectral tempo estimation"""
        if self.is_empty:
            return self.values.copy()
        return self.values - self.values.mean()

    def frame_to_time(self, frame: float) -> float:
        return frame * self.hop_size / self.sample_rate

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class BeatGrid:
    """Strictly increasing beat times in seconds"""
    times: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    synthetic: bool = False

    def __post_init__(self):
        times = np.asarray(self.times, dtype=np.float64)
        if times.ndim != 1:
            raise ValueError("Beat times must be one-dimensional")
        if len(times) > 1 and not np.all(np.diff(times) > 0):
            raise ValueError("Beat times must be strictly increasing")
        object.__setattr__(self, "times", times)

    @classmethod
    def empty(cls) -> "BeatGrid":
        return cls()

    @classmethod
    def uniform(cls, bpm: float, duration: float, offset: float = 0.0) -> "BeatGrid":
        """Evenly spaced grid: offset + i * (60 / bpm) while i * (60 / bpm) < duration"""
        if bpm <= 0 or duration <= 0:
            return cls(synthetic=True)
        seconds_per_beat = 60.0 / bpm
        count = 0
        while count * seconds_per_beat < duration:
            count += 1
        times = offset + np.arange(count, dtype=np.float64) * seconds_per_beat
        return cls(times=times, synthetic=True)

    def __len__(self) -> int:
        return len(self.times)

    def __iter__(self):
        return iter(self.times.tolist())

    def __getitem__(self, index):
        return self.times[index]

    @property
    def first(self) -> Optional[float]:
        return float(self.times[0]) if len(self.times) else None

    def index_after(self, time_sec: float) -> int:
        """Index of the first beat strictly after time_sec (len(grid) if none)"""
        return int(np.searchsorted(self.times, time_sec, side="right"))

    def beat_count_at(self, time_sec: float) -> int:
        """Number of beats already played at time_sec"""
        return self.index_after(time_sec)

    def anchored(self, offset: float, duration: Optional[float] = None) -> "BeatGrid":
        """
        Translate the grid so its first beat lands on offset when it precedes it.

        Spacing is preserved. Beats pushed to or past duration are dropped.
        Anchoring an already-anchored grid returns it unchanged.
        """
        if len(self.times) == 0 or self.times[0] >= offset:
            return self
        shifted = self.times + (offset - self.times[0])
        shifted[0] = offset
        if duration is not None:
            shifted = shifted[shifted < duration]
        return BeatGrid(times=shifted, synthetic=self.synthetic)

    def normalized(self, duration: float) -> np.ndarray:
        """Beat positions as fractions of the track length"""
        if duration <= 0:
            return np.zeros(0, dtype=np.float64)
        return self.times / duration


@dataclass(frozen=True)
class TrackAnalysis:
    """Complete, immutable analysis of one track"""
    bpm: float
    beat_grid: BeatGrid
    downbeat: float
    duration: float
    sample_rate: int
    phrases: Tuple[float, ...] = ()

    def __post_init__(self):
        if self.bpm <= 0:
            raise ValueError(f"BPM {self.bpm} is not a detected tempo")
        if self.downbeat < 0:
            raise ValueError("Downbeat must not be negative")

    @property
    def ok(self) -> bool:
        return True

    @property
    def seconds_per_beat(self) -> float:
        return 60.0 / self.bpm

    @property
    def beat_count(self) -> int:
        return len(self.beat_grid)


@dataclass(frozen=True)
class AnalysisFailure:
    """Analysis could not produce a usable tempo; safe to retry with other input"""
    reason: FailureReason
    message: str = ""
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return False

    @property
    def bpm(self) -> float:
        return AudioConstants.BPM_DETECTION_FAILED

    @property
    def beat_grid(self) -> BeatGrid:
        return BeatGrid.empty()


AnalysisResult = Union[TrackAnalysis, AnalysisFailure]


@dataclass(frozen=True)
class TransitionHandle:
    """Caller-side reference to one scheduled transition"""
    id: int
    from_deck: DeckId
    to_deck: DeckId
    duration: float
    transition_beats: int
    start_beat_time: float


@dataclass(frozen=True)
class DeckBaseline:
    """Gains and rates restored when a transition is cancelled"""
    gain_out: float = 1.0
    gain_in: float = 0.0
    rate_out: float = 1.0
    rate_in: float = 1.0


@dataclass(frozen=True)
class TransitionSample:
    """Control values for one tick"""
    time: float
    phase: TransitionPhase
    progress: float
    gain_out: float
    gain_in: float
    rate_out: float
    rate_in: float
    master_bpm: float
    from_deck: DeckId = DeckId.DECK_A
    crossover_hz: Optional[float] = None
    stop_outgoing: bool = False
    # Scheduling clock time at which the ramp starts, once known
    start_time: Optional[float] = None

    @property
    def to_deck(self) -> DeckId:
        return self.from_deck.other

    @property
    def gain_out_db(self) -> float:
        return gain_to_db(self.gain_out)

    @property
    def gain_in_db(self) -> float:
        return gain_to_db(self.gain_in)

    def gain_for(self, deck: DeckId) -> float:
        return self.gain_out if deck is self.from_deck else self.gain_in

    def rate_for(self, deck: DeckId) -> float:
        return self.rate_out if deck is self.from_deck else self.rate_in


@dataclass
class TransitionState:
    """Mutable state of the single active mixing session"""
    handle: TransitionHandle
    from_track: TrackAnalysis
    to_track: TrackAnalysis
    start_time: Optional[float]
    start_delay: float
    duration: float
    initial_bpm: float
    target_bpm: float
    rate_out: float
    rate_in: float
    phase: TransitionPhase = TransitionPhase.SCHEDULED
    last_tick: Optional[float] = None
    last_sample: Optional[TransitionSample] = None

    @property
    def elapsed(self) -> float:
        if self.start_time is None or self.last_tick is None:
            return 0.0
        return max(0.0, self.last_tick - self.start_time)

    @property
    def remaining(self) -> float:
        return max(0.0, self.duration - self.elapsed)

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 1.0 if self.phase is TransitionPhase.COMPLETE else 0.0
        return min(1.0, self.elapsed / self.duration)


def gain_to_db(gain: float) -> float:
    """Linear gain to decibels; silence maps to -inf"""
    if gain <= 0.0:
        return -math.inf
    return 20.0 * math.log10(gain)
