#!/usr/bin/env python3
"""
Offline playback layer: applies engine control samples to PCM
Used by the CLI to render a transition preview without an audio device
"""

import logging
import numpy as np
import librosa
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from scipy.signal import butter, sosfilt, sosfilt_zi
from beatmix.core.mix_engine import MixEngine
from beatmix.core.models import TrackAnalysis, TransitionPhase, TransitionSample

logger = logging.getLogger(__name__)

NORMALIZATION_PEAK = 0.95


class AudioProcessor:
    """Common audio processing operations"""

    @staticmethod
    def normalize_audio(audio: np.ndarray, peak: float = NORMALIZATION_PEAK) -> np.ndarray:
        """Scale audio down so its peak does not exceed peak"""
        current_peak = np.max(np.abs(audio)) if len(audio) else 0.0
        if current_peak > peak:
            return audio * (peak / current_peak)
        return audio

    @staticmethod
    def resample(audio: np.ndarray, orig_sr: int, target_sr: int) -> np.ndarray:
        """Resample audio to target_sr"""
        if orig_sr == target_sr:
            return audio
        return librosa.resample(audio, orig_sr=orig_sr, target_sr=target_sr)

    @staticmethod
    def varispeed(audio: np.ndarray, position: float, rate: float, length: int) -> Tuple[np.ndarray, float]:
        """
        Read length output samples starting at a fractional position, advancing
        rate input samples per output sample (pitch follows tempo).

        Returns:
            (chunk, next_position). Reads past the end produce silence.
        """
        read_positions = position + rate * np.arange(length)
        lo = max(int(np.floor(read_positions[0])) if length else 0, 0)
        hi = min(int(np.ceil(read_positions[-1])) + 2 if length else 0, len(audio))
        if length == 0 or lo >= hi:
            return np.zeros(length), position + rate * length
        chunk = np.interp(read_positions, np.arange(lo, hi), audio[lo:hi], left=0.0, right=0.0)
        return chunk, position + rate * length

    @staticmethod
    def gain_ramp(start: float, end: float, length: int) -> np.ndarray:
        """Linear gain ramp across one tick to avoid zipper noise"""
        return np.linspace(start, end, length, endpoint=False)


class CrossoverFilter:
    """Butterworth low- or high-pass whose cutoff moves between blocks"""

    def __init__(self, sample_rate: int, btype: str, order: int = 4):
        if btype not in ("lowpass", "highpass"):
            raise ValueError(f"Unknown filter type: {btype}")
        self.sample_rate = sample_rate
        self.btype = btype
        self.order = order
        self._zi = None

    def process(self, block: np.ndarray, cutoff_hz: float) -> np.ndarray:
        nyquist = self.sample_rate / 2
        cutoff_hz = min(max(cutoff_hz, 10.0), nyquist * 0.99)
        sos = butter(self.order, cutoff_hz, btype=self.btype, fs=self.sample_rate, output="sos")
        if self._zi is None:
            self._zi = sosfilt_zi(sos) * (block[0] if len(block) else 0.0)
        filtered, self._zi = sosfilt(sos, block, zi=self._zi)
        return filtered


@dataclass
class Deck:
    """One playback deck of the offline renderer"""
    audio: np.ndarray
    position: float = 0.0
    gain: float = 1.0

    def play(self, rate: float, gain: float, length: int) -> np.ndarray:
        chunk, self.position = AudioProcessor.varispeed(self.audio, self.position, rate, length)
        chunk = chunk * AudioProcessor.gain_ramp(self.gain, gain, length)
        self.gain = gain
        return chunk


@dataclass
class MixRender:
    """Rendered transition preview"""
    audio: np.ndarray
    sample_rate: int
    transition_start: float
    transition_end: float
    samples: List[TransitionSample] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return len(self.audio) / self.sample_rate


class OfflineMixRenderer:
    """Plays two decks through a transition, tick by tick, into one buffer"""

    def __init__(self, engine: MixEngine, sample_rate: int):
        self.engine = engine
        self.sample_rate = sample_rate
        self.tick_interval = engine.config.transition.tick_interval

    def render(self, audio_out: np.ndarray, audio_in: np.ndarray,
               track_out: TrackAnalysis, track_in: TrackAnalysis,
               start_at: float, transition_beats: Optional[int] = None,
               tail_seconds: float = 10.0) -> MixRender:
        """
        Render the outgoing track from its downbeat, the transition, and a tail
        of the incoming track.

        Args:
            audio_out: Outgoing track PCM at self.sample_rate
            audio_in: Incoming track PCM at self.sample_rate
            track_out: Analysis of the outgoing track
            track_in: Analysis of the incoming track
            start_at: Outgoing track time at which the transition is requested
            transition_beats: Window length in beats (defaults to configuration)
            tail_seconds: Incoming-track audio kept after the transition completes
        """
        sr = self.sample_rate
        tick_samples = max(1, int(round(self.tick_interval * sr)))
        start_at = max(start_at, track_out.downbeat)

        deck_out = Deck(audio=np.asarray(audio_out, dtype=np.float64), position=track_out.downbeat * sr)
        deck_in = Deck(audio=np.asarray(audio_in, dtype=np.float64), position=track_in.downbeat * sr, gain=0.0)

        # Solo play-in of the outgoing track up to the requested start point
        intro_length = int(round((start_at - track_out.downbeat) * sr))
        blocks = [deck_out.play(1.0, 1.0, intro_length)] if intro_length > 0 else []

        clock = intro_length / sr
        handle = self.engine.start_transition(track_out, track_in, transition_beats,
                                              from_current_time=start_at, now=clock)
        logger.info("Transition %d beats (%.2fs) from beat at %.2fs",
                    handle.transition_beats, handle.duration, handle.start_beat_time)

        lowpass = CrossoverFilter(sr, "lowpass")
        highpass = CrossoverFilter(sr, "highpass")
        samples = []
        transition_start = None

        while True:
            sample = self.engine.tick(handle, clock)
            samples.append(sample)
            if sample.phase is TransitionPhase.COMPLETE:
                break

            block = deck_out.play(sample.rate_out, sample.gain_out, tick_samples)
            if sample.crossover_hz is not None:
                block = lowpass.process(block, sample.crossover_hz)

            if sample.phase is TransitionPhase.RUNNING:
                if transition_start is None:
                    # Ticks land up to one interval after the beat; skip ahead to stay in phase
                    transition_start = sample.start_time
                    deck_in.position += (clock - transition_start) * sample.rate_in * sr
                incoming = deck_in.play(sample.rate_in, sample.gain_in, tick_samples)
                if sample.crossover_hz is not None:
                    incoming = highpass.process(incoming, sample.crossover_hz)
                block = block + incoming

            blocks.append(block)
            clock += tick_samples / sr

        transition_end = clock
        if transition_start is None:
            transition_start = clock

        # Outgoing deck is stopped; the incoming deck carries on alone
        tail_length = int(round(tail_seconds * sr))
        if tail_length > 0:
            blocks.append(deck_in.play(samples[-1].rate_in, samples[-1].gain_in, tail_length))

        mixed = np.concatenate(blocks) if blocks else np.zeros(0)
        logger.info("Rendered %.1fs preview, transition %.2fs-%.2fs, %d ticks",
                    len(mixed) / sr, transition_start, transition_end, len(samples))

        return MixRender(
            audio=AudioProcessor.normalize_audio(mixed).astype(np.float32),
            sample_rate=sr,
            transition_start=transition_start,
            transition_end=transition_end,
            samples=samples,
        )
