"""Real-time audio metering and spectrum display engine."""

from meterscope.core.analyzer import AnalysisSnapshot, MetricsEngine
from meterscope.core.config import AnalyzerConfig
from meterscope.core.key import detect_key
from meterscope.core.session import (
    AnalyzerSession,
    connect,
    disconnect,
    on_snapshot,
    render,
)
from meterscope.core.stream import FilePlayer, RealtimeAnalyzer, SpectralFrame
from meterscope.core.tempo import detect_tempo
from meterscope.errors import (
    ConfigError,
    MeterscopeError,
    RenderUnavailable,
    SourceUnavailable,
)
from meterscope.visualizers.spectrum import SpectrumConfig, SpectrumRenderer

__version__ = "0.1.0"
__all__ = [
    "AnalysisSnapshot",
    "AnalyzerConfig",
    "AnalyzerSession",
    "ConfigError",
    "FilePlayer",
    "MeterscopeError",
    "MetricsEngine",
    "RealtimeAnalyzer",
    "RenderUnavailable",
    "SourceUnavailable",
    "SpectralFrame",
    "SpectrumConfig",
    "SpectrumRenderer",
    "connect",
    "detect_key",
    "detect_tempo",
    "disconnect",
    "on_snapshot",
    "render",
]
