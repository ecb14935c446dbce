#!/usr/bin/env python3
"""
Command-line argument parser
Centralized argument parsing with validation
"""

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from beatmix.core.config import (
    CrossfadeMode, EngineConfiguration, TransitionConstants, TransitionSettings,
)

DEFAULT_OUTPUT_NAME = "beatmix_transition.wav"


@dataclass
class RunOptions:
    """Per-run options that are not engine configuration"""
    tracks: List[Path]
    output: Path
    start_at: Optional[float]
    tail_seconds: float
    analyze_only: bool
    verbose: bool


class ArgumentParser:
    """Argument parser with validation and configuration building"""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser with all options"""
        parser = argparse.ArgumentParser(
            prog='beatmix',
            description='Beat-synchronized transition between two tracks',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self._get_examples_text()
        )

        parser.add_argument('tracks', nargs=2, help='Outgoing and incoming audio files')

        transition_group = parser.add_argument_group('Transition Settings')
        transition_group.add_argument('--transition-beats', type=int,
                                      default=TransitionConstants.DEFAULT_TRANSITION_BEATS,
                                      help='Transition length in beats of the outgoing track '
                                           f'(presets: {", ".join(map(str, TransitionConstants.TRANSITION_BEAT_PRESETS))}; '
                                           f'default: {TransitionConstants.DEFAULT_TRANSITION_BEATS})')
        transition_group.add_argument('--start-at', type=float,
                                      help='Outgoing track time (s) at which to request the transition '
                                           '(default: as late as the beat grid allows)')
        transition_group.add_argument('--eq-crossfade', action='store_true',
                                      help='Sweep a low/high-pass crossover between the decks')
        transition_group.add_argument('--master-volume', type=float, default=1.0,
                                      help='Master volume 0.0-1.0 (default: 1.0)')

        output_group = parser.add_argument_group('Output')
        output_group.add_argument('-o', '--output', default=DEFAULT_OUTPUT_NAME,
                                  help=f'Rendered preview path (default: {DEFAULT_OUTPUT_NAME})')
        output_group.add_argument('--tail', type=float, default=10.0,
                                  help='Seconds of the incoming track kept after the transition (default: 10)')
        output_group.add_argument('--analyze-only', action='store_true',
                                  help='Print tempo and beat analysis and exit')
        output_group.add_argument('-v', '--verbose', action='store_true',
                                  help='Enable debug logging')

        return parser

    def _get_examples_text(self) -> str:
        """Get examples text for help"""
        return """
Examples:
  # Analyze both tracks
  beatmix --analyze-only track1.wav track2.wav

  # 32-beat transition with an EQ crossover sweep
  beatmix --transition-beats 32 --eq-crossfade track1.wav track2.wav -o preview.wav
        """

    def parse_args(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse arguments with validation"""
        parsed = self.parser.parse_args(args)
        self._validate_args(parsed)
        return parsed

    def _validate_args(self, args: argparse.Namespace):
        """Validate parsed arguments"""
        if args.transition_beats < 1:
            raise ValueError("Transition beats must be at least 1")

        if args.start_at is not None and args.start_at < 0:
            raise ValueError("Start time must not be negative")

        if args.tail < 0:
            raise ValueError("Tail length must not be negative")

        for track_path in args.tracks:
            if not Path(track_path).exists():
                raise ValueError(f"File not found: {track_path}")

    def create_configuration(self, args: argparse.Namespace) -> EngineConfiguration:
        """Create EngineConfiguration from parsed arguments"""
        transition = TransitionSettings(
            transition_beats=args.transition_beats,
            crossfade_mode=CrossfadeMode.EQ if args.eq_crossfade else CrossfadeMode.STANDARD,
            master_volume=args.master_volume,
        )
        config = EngineConfiguration(transition=transition)

        # Validate the complete configuration
        config.validate()

        return config

    def create_options(self, args: argparse.Namespace) -> RunOptions:
        return RunOptions(
            tracks=[Path(track) for track in args.tracks],
            output=Path(args.output),
            start_at=args.start_at,
            tail_seconds=args.tail,
            analyze_only=args.analyze_only,
            verbose=args.verbose,
        )


def parse_command_line(args: Optional[List[str]] = None) -> tuple[EngineConfiguration, RunOptions]:
    """Convenience function to parse command line and return config + run options"""
    parser = ArgumentParser()
    parsed = parser.parse_args(args)
    return parser.create_configuration(parsed), parser.create_options(parsed)
