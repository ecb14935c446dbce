#!/usr/bin/env python3
"""
Transition controller: a tick-driven state machine producing gain and
playback-rate trajectories for a beat-aligned crossfade between two decks
"""

import itertools
import logging
import math
import threading
from dataclasses import replace
from typing import Optional, Tuple
from beatmix.core.config import CrossfadeMode, TransitionSettings
from beatmix.core.errors import OutOfRangeTempo, RejectionReason, TransitionRejected
from beatmix.core.models import (
    DeckBaseline, DeckId, TrackAnalysis, TransitionHandle, TransitionPhase,
    TransitionSample, TransitionState,
)

logger = logging.getLogger(__name__)


def eased_progress(progress: float) -> float:
    """Raised-cosine S-curve: slow at both ends of the ramp"""
    return 0.5 - 0.5 * math.cos(progress * math.pi)


def crossfade_gains(progress: float) -> Tuple[float, float]:
    """
    Crossfade volumes (outgoing, incoming) at a given progress.

    The outgoing deck holds full volume until p^2 passes 0.5, then follows a
    cosine down to silence at p = 1. The incoming deck rises on a cosine and
    reaches full volume at p = 0.5.
    """
    p = min(max(progress, 0.0), 1.0)
    vol_out = 1.0 if p <= 0.5 else math.cos(max(0.0, p * p - 0.5) * math.pi)
    vol_in = 1.0 if p >= 0.5 else math.cos((0.5 - p * p) * math.pi)
    return max(vol_out, 0.0), max(vol_in, 0.0)


def tempo_targets(eased: float, bpm_out: float, bpm_in: float) -> Tuple[float, float, float]:
    """
    Target playback rates and master tempo at an eased progress.

    Returns:
        (rate_out, rate_in, master_bpm). Both decks play at master_bpm when
        running at their targets.
    """
    rate_out = 1.0 - (1.0 - bpm_in / bpm_out) * eased
    rate_in = (bpm_out / bpm_in) + (1.0 - bpm_out / bpm_in) * eased
    master_bpm = bpm_out + (bpm_in - bpm_out) * eased
    return rate_out, rate_in, master_bpm


def step_rate(current: float, target: float, max_step: float, min_rate: float, max_rate: float) -> float:
    """Move current toward target by at most max_step, clamped to the rate band"""
    delta = min(max(target - current, -max_step), max_step)
    return min(max(current + delta, min_rate), max_rate)


def crossover_frequency(eased: float, min_hz: float, max_hz: float) -> float:
    """Logarithmic crossover sweep from max_hz down to min_hz"""
    return max_hz * (min_hz / max_hz) ** eased


class TransitionController:
    """
    Owns the single TransitionState and advances it on external ticks.

    Phases run IDLE -> SCHEDULED -> RUNNING -> COMPLETE. The controller never
    schedules itself: the playback layer calls tick() with its own clock (the
    reference cadence is 50 ms). Each tick is one atomic read-modify-write.
    """

    def __init__(self, settings: Optional[TransitionSettings] = None):
        self.settings = settings or TransitionSettings()
        self.settings.validate()
        self._lock = threading.Lock()
        self._state: Optional[TransitionState] = None
        self._ids = itertools.count(1)

    @property
    def phase(self) -> TransitionPhase:
        with self._lock:
            return self._state.phase if self._state is not None else TransitionPhase.IDLE

    @property
    def state(self) -> Optional[TransitionState]:
        """Copy of the current session for debug displays, or None when idle"""
        with self._lock:
            return replace(self._state) if self._state is not None else None

    def plan_window(self, from_track: TrackAnalysis, transition_beats: int,
                    from_current_time: float) -> Tuple[float, float, int]:
        """
        Place the transition window on the outgoing track's beat grid.

        The window starts on the first beat strictly after from_current_time and
        spans transition_beats beats. Near the end of the grid the window keeps
        its start beat and shrinks to the beats that remain. With no full beat
        left, or fewer than two beats on the grid, the duration follows the
        tempo instead.

        Returns:
            (start_beat_time, duration_seconds, beats_spanned)
        """
        grid = from_track.beat_grid
        if len(grid) < 2:
            return from_current_time, transition_beats * 60.0 / from_track.bpm, transition_beats

        last = len(grid) - 1
        index = grid.index_after(from_current_time)
        beats = min(transition_beats, last - index)
        if beats < 1:
            start_beat_time = float(grid[index]) if index <= last else from_current_time
            return start_beat_time, transition_beats * 60.0 / from_track.bpm, transition_beats

        start_beat_time = float(grid[index])
        duration = float(grid[index + beats] - grid[index])
        return start_beat_time, duration, beats

    def start(self, from_track: Optional[TrackAnalysis], to_track: Optional[TrackAnalysis],
              transition_beats: Optional[int] = None, from_current_time: float = 0.0,
              now: Optional[float] = None, from_deck: DeckId = DeckId.DECK_A) -> TransitionHandle:
        """
        Schedule a transition from one analyzed track to another.

        Args:
            from_track: Analysis of the outgoing (currently playing) track
            to_track: Analysis of the incoming track
            transition_beats: Window length in beats of the outgoing track
                              (defaults to the configured length)
            from_current_time: Current playback position of the outgoing track
            now: Scheduling clock time of this call; when omitted the first
                 tick's time is used
            from_deck: Deck holding the outgoing track

        Raises:
            TransitionRejected: A transition is already scheduled or running,
                                or either side lacks a completed analysis
            OutOfRangeTempo: The tempo ratio cannot be matched inside the rate band
            ValueError: transition_beats is not a positive integer
        """
        if transition_beats is None:
            transition_beats = self.settings.transition_beats

        with self._lock:
            if self._state is not None and self._state.phase in (TransitionPhase.SCHEDULED,
                                                                 TransitionPhase.RUNNING):
                raise TransitionRejected(RejectionReason.ALREADY_RUNNING,
                                         f"transition {self._state.handle.id} is {self._state.phase.value}")

            for side, track in (("outgoing", from_track), ("incoming", to_track)):
                if not isinstance(track, TrackAnalysis) or track.bpm <= 0:
                    raise TransitionRejected(RejectionReason.MISSING_ANALYSIS,
                                             f"{side} track has no completed analysis")

            if isinstance(transition_beats, bool) or not isinstance(transition_beats, int) or transition_beats < 1:
                raise ValueError(f"Transition beats must be a positive integer, got {transition_beats!r}")

            bpm_out, bpm_in = from_track.bpm, to_track.bpm
            ratio = bpm_out / bpm_in
            low, high = self.settings.min_rate, self.settings.max_rate
            if not (low <= ratio <= high and low <= 1.0 / ratio <= high):
                raise OutOfRangeTempo(ratio, self.settings.min_rate, self.settings.max_rate)

            start_beat_time, duration, beats = self.plan_window(from_track, transition_beats,
                                                                from_current_time)
            start_delay = max(0.0, start_beat_time - from_current_time)

            handle = TransitionHandle(
                id=next(self._ids),
                from_deck=from_deck,
                to_deck=from_deck.other,
                duration=duration,
                transition_beats=beats,
                start_beat_time=start_beat_time,
            )
            self._state = TransitionState(
                handle=handle,
                from_track=from_track,
                to_track=to_track,
                start_time=None if now is None else now + start_delay,
                start_delay=start_delay,
                duration=duration,
                initial_bpm=bpm_out,
                target_bpm=bpm_in,
                rate_out=1.0,
                rate_in=self._clamp_rate(ratio),
            )

        if beats < transition_beats:
            logger.warning("Transition shortened to %d beats near the end of the outgoing track", beats)
        logger.info("Transition %d scheduled: %.1f -> %.1f BPM, %d beats (%.2fs) from beat at %.3fs",
                    handle.id, bpm_out, bpm_in, beats, duration, start_beat_time)
        return handle

    def tick(self, handle: TransitionHandle, now: float) -> TransitionSample:
        """
        Advance the transition to clock time now and return its control sample.

        Raises:
            TransitionRejected: handle does not belong to the current transition
        """
        with self._lock:
            state = self._require(handle)

            if state.phase is TransitionPhase.COMPLETE:
                return state.last_sample

            if state.last_tick is not None and now < state.last_tick:
                now = state.last_tick
            state.last_tick = now
            if state.start_time is None:
                state.start_time = now + state.start_delay

            if now < state.start_time:
                sample = self._scheduled_sample(state, now)
            else:
                progress = (now - state.start_time) / state.duration if state.duration > 0 else 1.0
                if progress >= 1.0:
                    sample = self._complete(state, now)
                else:
                    sample = self._running_sample(state, now, progress)

            state.last_sample = sample
            return sample

    def cancel(self, handle: TransitionHandle, baseline: Optional[DeckBaseline] = None,
               now: Optional[float] = None) -> TransitionSample:
        """
        Abort the transition and return the caller's safe baseline.

        The controller goes back to IDLE and no partial ramp is left behind.
        """
        baseline = baseline or DeckBaseline()
        with self._lock:
            state = self._require(handle)
            if now is None:
                now = state.last_tick if state.last_tick is not None else 0.0
            progress = state.progress
            self._state = None

        logger.info("Transition %d cancelled at %.0f%%", handle.id, progress * 100)
        return TransitionSample(
            time=now,
            phase=TransitionPhase.IDLE,
            progress=progress,
            gain_out=baseline.gain_out,
            gain_in=baseline.gain_in,
            rate_out=baseline.rate_out,
            rate_in=baseline.rate_in,
            master_bpm=state.initial_bpm,
            from_deck=handle.from_deck,
        )

    def _require(self, handle: TransitionHandle) -> TransitionState:
        if self._state is None or self._state.handle.id != handle.id:
            raise TransitionRejected(RejectionReason.UNKNOWN_HANDLE,
                                     f"transition {handle.id} is not the active transition")
        return self._state

    def _clamp_rate(self, rate: float) -> float:
        return min(max(rate, self.settings.min_rate), self.settings.max_rate)

    def _gain(self, volume: float) -> float:
        gain = volume * self.settings.master_volume
        return 0.0 if gain <= self.settings.silence_floor else gain

    def _crossover(self, eased: float) -> Optional[float]:
        if self.settings.crossfade_mode is not CrossfadeMode.EQ:
            return None
        return crossover_frequency(eased, self.settings.eq_min_hz, self.settings.eq_max_hz)

    def _scheduled_sample(self, state: TransitionState, now: float) -> TransitionSample:
        state.phase = TransitionPhase.SCHEDULED
        return TransitionSample(
            time=now,
            phase=state.phase,
            progress=0.0,
            gain_out=self._gain(1.0),
            gain_in=0.0,
            rate_out=state.rate_out,
            rate_in=state.rate_in,
            master_bpm=state.initial_bpm,
            from_deck=state.handle.from_deck,
            crossover_hz=self._crossover(0.0),
            start_time=state.start_time,
        )

    def _running_sample(self, state: TransitionState, now: float, progress: float) -> TransitionSample:
        if state.phase is not TransitionPhase.RUNNING:
            logger.debug("Transition %d running", state.handle.id)
        state.phase = TransitionPhase.RUNNING

        eased = eased_progress(progress)
        target_out, target_in, master_bpm = tempo_targets(eased, state.initial_bpm, state.target_bpm)
        s = self.settings
        state.rate_out = step_rate(state.rate_out, target_out, s.max_rate_step, s.min_rate, s.max_rate)
        state.rate_in = step_rate(state.rate_in, target_in, s.max_rate_step, s.min_rate, s.max_rate)

        vol_out, vol_in = crossfade_gains(progress)
        return TransitionSample(
            time=now,
            phase=state.phase,
            progress=progress,
            gain_out=self._gain(vol_out),
            gain_in=self._gain(vol_in),
            rate_out=state.rate_out,
            rate_in=state.rate_in,
            master_bpm=master_bpm,
            from_deck=state.handle.from_deck,
            crossover_hz=self._crossover(eased),
            start_time=state.start_time,
        )

    def _complete(self, state: TransitionState, now: float) -> TransitionSample:
        state.phase = TransitionPhase.COMPLETE
        state.rate_out = 1.0
        state.rate_in = 1.0
        logger.info("Transition %d complete, master tempo %.1f BPM", state.handle.id, state.target_bpm)
        return TransitionSample(
            time=now,
            phase=state.phase,
            progress=1.0,
            gain_out=0.0,
            gain_in=self._gain(1.0),
            rate_out=1.0,
            rate_in=1.0,
            master_bpm=state.target_bpm,
            from_deck=state.handle.from_deck,
            crossover_hz=self._crossover(1.0),
            stop_outgoing=True,
            start_time=state.start_time,
        )
