#!/usr/bin/env python3
"""
Mix engine facade: per-track analysis and transition control for two decks
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Optional, Union
from beatmix.core.config import EngineConfiguration
from beatmix.core.audio_analyzer import AudioAnalyzer
from beatmix.core.transition import TransitionController
from beatmix.core.models import (
    AnalysisResult, AudioSignal, DeckBaseline, DeckId, TrackAnalysis,
    TransitionHandle, TransitionPhase, TransitionSample, TransitionState,
)

logger = logging.getLogger(__name__)

TrackRef = Union[DeckId, TrackAnalysis, None]


class MixEngine:
    """
    Composes analysis and the transition controller.

    The engine keeps the latest successful analysis per deck and never owns
    audio hardware: the caller applies the returned control samples.
    """

    def __init__(self, config: Optional[EngineConfiguration] = None):
        self.config = config or EngineConfiguration()
        self.config.validate()
        self.analyzer = AudioAnalyzer(self.config.analysis)
        self.controller = TransitionController(self.config.transition)

        self._lock = threading.Lock()
        self._analyses: Dict[DeckId, Optional[TrackAnalysis]] = {deck: None for deck in DeckId}
        self._pending: Dict[DeckId, Optional[threading.Event]] = {deck: None for deck in DeckId}

    # Analysis

    def analyze_track(self, signal: AudioSignal,
                      cancel_event: Optional[threading.Event] = None) -> AnalysisResult:
        """Analyze a track without assigning it to a deck"""
        return self.analyzer.analyze_track(signal, cancel_event)

    def load(self, deck: DeckId, signal: AudioSignal) -> AnalysisResult:
        """
        Analyze a track for a deck, replacing the deck's previous analysis.

        An analysis still running for the same deck is cancelled first and its
        result is discarded. A failed analysis leaves the deck without one.
        """
        cancel_event = threading.Event()
        with self._lock:
            previous = self._pending[deck]
            if previous is not None:
                logger.info("Reloading %s, cancelling analysis in progress", deck.value)
                previous.set()
            self._pending[deck] = cancel_event
            self._analyses[deck] = None

        result = self.analyzer.analyze_track(signal, cancel_event)

        with self._lock:
            if self._pending[deck] is cancel_event:
                self._pending[deck] = None
                self._analyses[deck] = result if result.ok else None
        return result

    def reload(self, deck: DeckId, signal: AudioSignal) -> AnalysisResult:
        """Alias of load(): loading always replaces the deck's analysis wholesale"""
        return self.load(deck, signal)

    def analyze_pair(self, signal_a: AudioSignal, signal_b: AudioSignal) -> Dict[DeckId, AnalysisResult]:
        """Analyze both decks concurrently"""
        signals = {DeckId.DECK_A: signal_a, DeckId.DECK_B: signal_b}
        max_workers = min(len(signals), self.config.max_workers or os.cpu_count() or 2)
        results: Dict[DeckId, AnalysisResult] = {}

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_deck = {executor.submit(self.load, deck, signal): deck
                              for deck, signal in signals.items()}
            for future in as_completed(future_to_deck):
                deck = future_to_deck[future]
                results[deck] = future.result()
                logger.debug("%s analysis finished (ok=%s)", deck.value, results[deck].ok)

        return results

    def analysis(self, deck: DeckId) -> Optional[TrackAnalysis]:
        with self._lock:
            return self._analyses[deck]

    # Transitions

    @property
    def phase(self) -> TransitionPhase:
        return self.controller.phase

    @property
    def transition_state(self) -> Optional[TransitionState]:
        """Snapshot of the active transition, safe to read from any thread"""
        return self.controller.state

    def start_transition(self, from_track: TrackRef, to_track: TrackRef = None,
                         transition_beats: Optional[int] = None, from_current_time: float = 0.0,
                         now: Optional[float] = None) -> TransitionHandle:
        """
        Schedule a transition.

        from_track and to_track are analyses or deck ids. Passing only a deck
        id as from_track mixes into the other deck.
        """
        from_deck = from_track if isinstance(from_track, DeckId) else DeckId.DECK_A
        if to_track is None and isinstance(from_track, DeckId):
            to_track = from_track.other

        return self.controller.start(
            self._resolve(from_track),
            self._resolve(to_track),
            transition_beats=transition_beats,
            from_current_time=from_current_time,
            now=now,
            from_deck=from_deck,
        )

    def tick(self, handle: TransitionHandle, now: float) -> TransitionSample:
        return self.controller.tick(handle, now)

    def cancel_transition(self, handle: TransitionHandle, baseline: Optional[DeckBaseline] = None,
                          now: Optional[float] = None) -> TransitionSample:
        return self.controller.cancel(handle, baseline, now)

    def _resolve(self, track: TrackRef) -> Optional[TrackAnalysis]:
        if isinstance(track, DeckId):
            return self.analysis(track)
        return track
