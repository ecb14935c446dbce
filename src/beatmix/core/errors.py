#!/usr/bin/env python3
"""
Error types raised by the mixing engine

Analysis problems are never raised: they come back as AnalysisFailure results
(see core.models). Only transition state violations and impossible tempo
matches are exceptions.
"""

from enum import Enum


class MixEngineError(Exception):
    """Base class for engine errors"""


class RejectionReason(Enum):
    """Why a transition call was refused"""
    ALREADY_RUNNING = "already-running"
    MISSING_ANALYSIS = "missing-analysis"
    UNKNOWN_HANDLE = "unknown-handle"


class TransitionRejected(MixEngineError):
    """A transition call that violates the controller state machine"""

    def __init__(self, reason: RejectionReason, message: str = ""):
        self.reason = reason
        super().__init__(message or reason.value)


class OutOfRangeTempo(MixEngineError, ValueError):
    """The tempo ratio between two tracks cannot be matched inside the rate band"""

    def __init__(self, ratio: float, min_rate: float, max_rate: float):
        self.ratio = ratio
        self.min_rate = min_rate
        self.max_rate = max_rate
        super().__init__(
            f"Tempo ratio {ratio:.3f} outside playback rate band {min_rate:.2f}-{max_rate:.2f}"
        )
