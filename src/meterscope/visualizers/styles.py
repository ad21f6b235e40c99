"""
Colour presets for the spectrum renderer.

Presets live in a single packaged JSON file so that hosts embedding the
renderer and the command-line tools agree on the same palettes.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Dict

from importlib import resources


@lru_cache(maxsize=1)
def load_style_presets() -> Dict[str, Any]:
    """Load all style presets from the packaged JSON file."""
    with resources.files("meterscope.visualizers").joinpath("styles.json").open(
        "r", encoding="utf-8"
    ) as f:
        return json.load(f)


def available_styles() -> list[str]:
    return sorted(load_style_presets().get("spectrum", {}))


def get_spectrum_style(style: str) -> Dict[str, Any] | None:
    """
    Get the spectrum style preset for a given style name.

    Returns a dictionary of SpectrumConfig-compatible overrides, or None
    if the style is unknown.
    """
    data = load_style_presets()
    all_styles = data.get("spectrum", {})
    preset = all_styles.get(style)
    return dict(preset) if preset is not None else None
