"""
Meterscope per-tick cost benchmark.

Usage:
    python scripts/benchmark.py [--quick]

Modes:
    default  : 3 warm-up + 20 timed runs per function
    --quick  : 2 warm-up + 5 timed runs (CI-friendly)

Output: timing table printed to stdout.  The spectrum renderer runs every
display frame and must stay well under one frame budget; the script exits
with status 1 if its mean time exceeds the 10 ms target.
"""

import argparse
import os
import sys
import time
from typing import List

import numpy as np

# Make sure the installed package is on the path when run from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from meterscope.core.analyzer import MetricsEngine
from meterscope.core.config import AnalyzerConfig
from meterscope.core.stream import RealtimeAnalyzer
from meterscope.visualizers.spectrum import SpectrumRenderer

_SEP = "─" * 72
RENDER_TARGET_MS = 10.0


def _hdr(title: str) -> None:
    print(f"\n{_SEP}")
    print(f"  {title}")
    print(_SEP)


def _timeit(fn, *args, warmup: int = 2, runs: int = 5, **kwargs) -> List[float]:
    """Run fn(*args, **kwargs), discard warmup iterations, return timed samples."""
    for _ in range(warmup):
        fn(*args, **kwargs)
    times = []
    for _ in range(runs):
        t0 = time.perf_counter()
        fn(*args, **kwargs)
        times.append(time.perf_counter() - t0)
    return times


def _stats(times: List[float]) -> str:
    arr = np.array(times)
    return f"mean={arr.mean()*1000:.2f} ms  min={arr.min()*1000:.2f} ms  max={arr.max()*1000:.2f} ms"


def _music_like_signal(sr: int, seconds: float = 2.0) -> np.ndarray:
    """Chord plus a click track at 120 BPM."""
    rng = np.random.RandomState(0)
    t = np.arange(int(sr * seconds)) / sr
    y = 0.2 * (
        np.sin(2 * np.pi * 220.0 * t)
        + np.sin(2 * np.pi * 277.18 * t)
        + np.sin(2 * np.pi * 329.63 * t)
    )
    y[:: sr // 2] += 0.8
    y += 0.01 * rng.randn(len(t))
    return np.clip(y, -1.0, 1.0).astype(np.float32)


def main() -> None:
    parser = argparse.ArgumentParser(description="Meterscope tick benchmark")
    parser.add_argument(
        "--quick",
        action="store_true",
        help="Fewer timed runs for fast CI checks",
    )
    args = parser.parse_args()

    WARMUP, RUNS = (2, 5) if args.quick else (3, 20)
    sr = 44100

    print(f"\nMeterscope Benchmark  ({sr} Hz)")
    print(f"Warm-up runs: {WARMUP}  |  Timed runs: {RUNS}")

    engine = MetricsEngine()
    renderer = SpectrumRenderer()
    results = {}

    for fft_size in (4096, 8192):
        config = AnalyzerConfig(fft_size=fft_size)
        analyzer = RealtimeAnalyzer(sample_rate=sr, config=config)
        analyzer.process_chunk(_music_like_signal(sr))
        frame = analyzer.read_frame()
        n = config.frequency_bin_count

        _hdr(f"N = {n} bins (fft_size={fft_size})")

        t = _timeit(analyzer.read_frame, warmup=WARMUP, runs=RUNS)
        results[f"read_frame N={n}"] = t
        print(f"  read_frame     {_stats(t)}")

        t = _timeit(engine.analyze_frame, frame, warmup=WARMUP, runs=RUNS)
        results[f"analyze N={n}"] = t
        print(f"  analyze        {_stats(t)}")

        t = _timeit(renderer.render_frame, frame, warmup=WARMUP, runs=RUNS)
        results[f"render_frame N={n}"] = t
        print(f"  render_frame   {_stats(t)}")

    # ------------------------------------------------------------------
    # Summary table
    # ------------------------------------------------------------------
    _hdr("Summary")
    name_w = max(len(name) for name in results) + 2
    print(f"  {'Function':<{name_w}} Time (ms, mean)")
    print(f"  {'-'*name_w} ---------------")
    for name, times in results.items():
        print(f"  {name:<{name_w}} {np.mean(times)*1000:.2f}")

    slow = [
        name for name, times in results.items()
        if name.startswith("render_frame") and np.mean(times) * 1000 > RENDER_TARGET_MS
    ]
    if slow:
        print(f"\n  !! Render above {RENDER_TARGET_MS:.0f} ms target: {', '.join(slow)}")
        sys.exit(1)
    print(f"\n  Render within {RENDER_TARGET_MS:.0f} ms target.")
    print(f"\n{_SEP}\n")


if __name__ == "__main__":
    main()
