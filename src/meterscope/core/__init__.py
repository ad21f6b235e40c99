"""Core analysis modules."""

from meterscope.core.analyzer import AnalysisSnapshot, MetricsEngine
from meterscope.core.config import AnalyzerConfig
from meterscope.core.session import AnalyzerSession, connect, disconnect
from meterscope.core.stream import RealtimeAnalyzer, SpectralFrame

__all__ = [
    "AnalysisSnapshot",
    "AnalyzerConfig",
    "AnalyzerSession",
    "MetricsEngine",
    "RealtimeAnalyzer",
    "SpectralFrame",
    "connect",
    "disconnect",
]
