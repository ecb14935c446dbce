#!/usr/bin/env python3
"""
Main CLI entry point for beatmix
Acts as the playback layer: decodes files, runs the engine and renders a preview
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple
import numpy as np
import librosa
import soundfile as sf
from beatmix.cli.args_parser import RunOptions, parse_command_line
from beatmix.core.config import EngineConfiguration
from beatmix.core.errors import MixEngineError
from beatmix.core.mix_engine import MixEngine
from beatmix.core.models import AudioSignal, DeckId, TrackAnalysis
from beatmix.utils.audio_processing import AudioProcessor, OfflineMixRenderer


class BeatmixCLI:
    """Main CLI application class"""

    def __init__(self):
        self.config: EngineConfiguration = None
        self.options: RunOptions = None
        self.engine: MixEngine = None

    def run(self, args: Optional[List[str]] = None) -> int:
        """Main entry point"""
        try:
            self.config, self.options = parse_command_line(args)
            logging.basicConfig(
                level=logging.DEBUG if self.options.verbose else logging.WARNING,
                format="%(levelname)s %(name)s: %(message)s",
            )
            self.engine = MixEngine(self.config)

            audio, sample_rate = self._load_tracks(self.options.tracks)
            analyses = self._analyze(audio, sample_rate)
            if analyses is None:
                return 1

            if self.options.analyze_only:
                return 0

            self._render(audio, sample_rate, analyses)
            print("✅ Transition preview completed successfully!")
            return 0

        except (MixEngineError, ValueError, OSError) as e:
            print(f"❌ Error: {e}")
            return 1

    def _load_tracks(self, paths: List[Path]) -> Tuple[List[np.ndarray], int]:
        """Decode both tracks to mono; the incoming track is resampled to the outgoing rate"""
        tracks = []
        sample_rate = None
        for i, path in enumerate(paths, 1):
            print(f"Loading [{i}/{len(paths)}]: {path.name}")
            audio, sr = librosa.load(str(path), sr=None, mono=True)
            if sample_rate is None:
                sample_rate = sr
            else:
                audio = AudioProcessor.resample(audio, sr, sample_rate)
            tracks.append(audio)
        return tracks, sample_rate

    def _analyze(self, audio: List[np.ndarray], sample_rate: int) -> Optional[Tuple[TrackAnalysis, TrackAnalysis]]:
        """Analyze both decks concurrently and print a summary"""
        print("Analyzing tracks...")
        signals = [AudioSignal.from_array(track, sample_rate) for track in audio]
        results = self.engine.analyze_pair(*signals)

        failed = False
        for deck, path in zip(DeckId, self.options.tracks):
            result = results[deck]
            if not result.ok:
                print(f"  {path.name}: analysis failed ({result.reason.value}: {result.message})")
                failed = True
                continue
            grid = result.beat_grid
            note = " (synthetic grid)" if grid.synthetic else ""
            print(f"  {path.name}: BPM: {result.bpm:.1f}, Beats: {len(grid)}{note}, "
                  f"Downbeat: {result.downbeat:.3f}s, Phrases: {len(result.phrases)}, "
                  f"Duration: {result.duration:.1f}s")

        if failed:
            return None
        return results[DeckId.DECK_A], results[DeckId.DECK_B]

    def _default_start(self, track: TrackAnalysis) -> float:
        """Latest point from which the full transition still fits on the grid"""
        grid = track.beat_grid
        index = len(grid) - 2 - self.config.transition.transition_beats
        if index < 0:
            return track.downbeat
        return float(grid[index])

    def _render(self, audio: List[np.ndarray], sample_rate: int, analyses: Tuple[TrackAnalysis, TrackAnalysis]):
        """Render the transition preview and write it to disk"""
        track_out, track_in = analyses
        start_at = self.options.start_at
        if start_at is None:
            start_at = self._default_start(track_out)

        print(f"Mixing {track_out.bpm:.1f} BPM -> {track_in.bpm:.1f} BPM "
              f"({self.config.transition.crossfade_mode.value} crossfade) from {start_at:.2f}s")

        renderer = OfflineMixRenderer(self.engine, sample_rate)
        render = renderer.render(
            audio[0], audio[1], track_out, track_in,
            start_at=start_at,
            tail_seconds=self.options.tail_seconds,
        )

        sf.write(str(self.options.output), render.audio, render.sample_rate)
        print(f"  Transition: {render.transition_start:.2f}s - {render.transition_end:.2f}s "
              f"of {render.duration:.1f}s preview")
        print(f"  Written: {self.options.output}")


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for CLI"""
    cli = BeatmixCLI()
    return cli.run(args)


if __name__ == "__main__":
    sys.exit(main())
