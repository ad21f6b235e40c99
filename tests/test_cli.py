"""Command-line meter."""

import json

import numpy as np
import pytest

from meterscope.cli import _build_config, build_parser, format_line, main
from meterscope.core.analyzer import AnalysisSnapshot


class TestParser:

    def test_defaults(self):
        args = build_parser().parse_args(["song.wav"])
        assert args.style == "default"
        assert args.fps == 60
        assert not args.preview
        config = _build_config(args)
        assert config.fft_size == 4096
        assert config.sampling_interval_ms == 250.0

    def test_flags_override_config_file(self, tmp_path):
        path = tmp_path / "analyzer.json"
        path.write_text(json.dumps({"fftSize": 8192, "samplingIntervalMs": 100}))
        args = build_parser().parse_args(
            ["song.wav", "--config", str(path), "--interval", "500", "--snapshot-smoothing"]
        )
        config = _build_config(args)
        assert config.fft_size == 8192
        assert config.sampling_interval_ms == 500
        assert config.snapshot_smoothing

    def test_unknown_style_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["song.wav", "--style", "neon"])


def test_format_line():
    line = format_line(3, AnalysisSnapshot.silent())
    assert line.startswith("[   3]")
    assert "N/A" in line


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "missing.wav")]) == 1
    assert "not found" in capsys.readouterr().err


def test_invalid_settings(tmp_path, capsys):
    path = tmp_path / "tone.wav"
    path.write_bytes(b"")
    assert main([str(path), "--fft-size", "1000"]) == 1
    assert "power of two" in capsys.readouterr().err


def test_end_to_end(tmp_path, capsys):
    sf = pytest.importorskip("soundfile")
    sr = 8000
    t = np.arange(sr) / sr
    audio = tmp_path / "tone.wav"
    sf.write(str(audio), (0.5 * np.sin(2 * np.pi * 437.5 * t)).astype(np.float32), sr)

    png = tmp_path / "spectrum.png"
    jsonl = tmp_path / "snapshots.jsonl"
    code = main([
        str(audio),
        "--fft-size", "512",
        "--interval", "100",
        "--max-duration", "0.6",
        "--snapshot-png", str(png),
        "--jsonl", str(jsonl),
    ])

    assert code == 0
    out = capsys.readouterr().out
    assert "Complete!" in out
    assert png.exists()
    records = [json.loads(line) for line in jsonl.read_text().splitlines()]
    assert records
    assert all("lufs" in r for r in records)
