"""Visualization modules for spectrum display."""

from meterscope.visualizers.canvas import ArrayCanvas
from meterscope.visualizers.spectrum import SpectrumConfig, SpectrumRenderer

__all__ = ["ArrayCanvas", "SpectrumConfig", "SpectrumRenderer"]
