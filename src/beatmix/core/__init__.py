#!/usr/bin/env python3
"""
Beat-synchronized mixing engine core
"""

from beatmix.core.config import (
    AnalysisSettings, CrossfadeMode, EngineConfiguration, TransitionSettings,
)
from beatmix.core.errors import MixEngineError, OutOfRangeTempo, RejectionReason, TransitionRejected
from beatmix.core.models import (
    AnalysisFailure, AudioSignal, BeatGrid, DeckBaseline, DeckId, EnergyEnvelope,
    FailureReason, TrackAnalysis, TransitionHandle, TransitionPhase, TransitionSample,
)
from beatmix.core.audio_analyzer import AudioAnalyzer
from beatmix.core.transition import TransitionController
from beatmix.core.mix_engine import MixEngine
