"""
Command-line meter.

Plays an audio file (or listens to an input device) through the analysis
core and prints one line of metrics per analysis tick.  Optionally opens a
live spectrum window, saves a spectrum PNG and writes the snapshots as JSON
Lines.
"""

import argparse
import logging
import sys
import time
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from meterscope.core.analyzer import AnalysisSnapshot
from meterscope.core.config import AnalyzerConfig
from meterscope.core.session import connect
from meterscope.core.stream import FilePlayer, RealtimeAnalyzer, open_input_stream
from meterscope.errors import MeterscopeError
from meterscope.io.exporter import SnapshotExporter, format_snapshot
from meterscope.visualizers.canvas import ArrayCanvas
from meterscope.visualizers.spectrum import SpectrumConfig, SpectrumRenderer
from meterscope.visualizers.styles import available_styles


def format_line(index: int, snapshot: AnalysisSnapshot) -> str:
    labels = format_snapshot(snapshot)
    return f"[{index:4d}] " + "  ".join(f"{k}: {v:>10}" for k, v in labels.items())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meterscope",
        description="Real-time loudness, tempo, key and spectrum meter",
    )

    parser.add_argument(
        "audio",
        type=Path,
        nargs="?",
        help="Input audio file (wav, mp3, flac)",
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Analyze an input device instead of a file",
    )
    parser.add_argument(
        "--device",
        default=None,
        help="Input device name or index for --live",
    )
    parser.add_argument(
        "--sample-rate",
        type=int,
        default=44100,
        help="Capture sample rate for --live (default: 44100)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON file with analyzer settings (overridden by flags below)",
    )
    parser.add_argument(
        "-i", "--interval",
        type=float,
        default=None,
        help="Analysis interval in ms (default: 250)",
    )
    parser.add_argument(
        "--fft-size",
        type=int,
        default=None,
        help="FFT size, power of two (default: 4096)",
    )
    parser.add_argument(
        "--smoothing",
        type=float,
        default=None,
        help="Spectrum smoothing time constant 0-1 (default: 0.3)",
    )
    parser.add_argument("--min-db", type=float, default=None, help="Decibel floor (default: -90)")
    parser.add_argument("--max-db", type=float, default=None, help="Decibel ceiling (default: -10)")
    parser.add_argument(
        "--snapshot-smoothing",
        action="store_true",
        help="Smooth level readings between ticks",
    )
    parser.add_argument(
        "--style",
        default="default",
        choices=available_styles(),
        help="Spectrum colour preset",
    )
    parser.add_argument("--title", default=None, help="Spectrum title")
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Open a live spectrum window (requires pygame)",
    )
    parser.add_argument(
        "-f", "--fps",
        type=int,
        default=60,
        help="Preview refresh rate (default: 60)",
    )
    parser.add_argument(
        "--snapshot-png",
        type=Path,
        default=None,
        help="Save the last live spectrum frame as PNG",
    )
    parser.add_argument(
        "--jsonl",
        type=Path,
        default=None,
        help="Write every snapshot to a JSON Lines file",
    )
    parser.add_argument(
        "--max-duration",
        type=float,
        default=None,
        help="Stop after this many seconds",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log session events (-vv for debug)",
    )
    return parser


def _build_config(args: argparse.Namespace) -> AnalyzerConfig:
    settings = {}
    if args.config is not None:
        settings.update(asdict(AnalyzerConfig.from_json(args.config)))
    overrides = {
        "sampling_interval_ms": args.interval,
        "fft_size": args.fft_size,
        "smoothing_time_constant": args.smoothing,
        "min_decibels": args.min_db,
        "max_decibels": args.max_db,
    }
    settings.update({k: v for k, v in overrides.items() if v is not None})
    if args.snapshot_smoothing:
        settings["snapshot_smoothing"] = True
    return AnalyzerConfig.from_dict(settings)


def run(args: argparse.Namespace) -> int:
    config = _build_config(args)

    player: Optional[FilePlayer] = None
    stream = None
    if args.live:
        device = int(args.device) if args.device and args.device.isdigit() else args.device
        analyzer = RealtimeAnalyzer(sample_rate=args.sample_rate, config=config)
        stream = open_input_stream(analyzer, device=device)
        title = args.title or "Input"
    else:
        print(f"Loading audio: {args.audio}", flush=True)
        player = FilePlayer.from_file(args.audio, config=config, max_duration=args.max_duration)
        analyzer = player.analyzer
        title = args.title or args.audio.stem
        print(
            f"Duration: {player.duration:.2f}s  Sample rate: {analyzer.sample_rate:.0f} Hz",
            flush=True,
        )

    renderer = SpectrumRenderer(SpectrumConfig.from_style(args.style, title=title))
    snapshots: List[AnalysisSnapshot] = []

    session = connect(analyzer, config, renderer=renderer)
    try:
        @session.on_snapshot
        def _print(snapshot: AnalysisSnapshot) -> None:
            snapshots.append(snapshot)
            print(format_line(len(snapshots), snapshot), flush=True)

        session.enable()
        if player is not None:
            player.start()

        if args.preview:
            from meterscope.preview import run_preview

            run_preview(session, fps=args.fps, title=f"Meterscope: {title}")
        else:
            started = time.monotonic()
            try:
                while True:
                    if player is not None and player.finished:
                        break
                    if args.max_duration is not None and time.monotonic() - started >= args.max_duration:
                        break
                    time.sleep(0.05)
            except KeyboardInterrupt:
                print("\nInterrupted", flush=True)

        if args.snapshot_png is not None:
            canvas = ArrayCanvas(renderer.cfg.width, renderer.cfg.height)
            if not session.active:
                session.enable()
            session.render(canvas)
            renderer.save_png(canvas.pixels, args.snapshot_png)
            print(f"Saved spectrum: {args.snapshot_png}", flush=True)

        session.disable()
    finally:
        if player is not None:
            player.stop()
        if stream is not None:
            stream.close()
        session.disconnect()

    if args.jsonl is not None:
        SnapshotExporter().write_jsonl(snapshots, args.jsonl, interval=config.sampling_interval)
        print(f"Wrote {len(snapshots)} snapshots: {args.jsonl}", flush=True)

    print(f"Complete! {len(snapshots)} snapshots", flush=True)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING - 10 * min(args.verbose, 2),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.live:
        if args.audio is None:
            parser.error("an audio file is required unless --live is given")
        if not args.audio.exists():
            print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
            return 1

    try:
        return run(args)
    except (MeterscopeError, ImportError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
