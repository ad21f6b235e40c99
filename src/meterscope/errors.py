"""Exceptions raised by the meterscope core."""


class MeterscopeError(Exception):
    """Base class for all meterscope errors."""


class ConfigError(MeterscopeError, ValueError):
    """An AnalyzerConfig violates one of its invariants."""


class SourceUnavailable(MeterscopeError):
    """No frame-producing source was supplied, or it has been closed."""


class RenderUnavailable(MeterscopeError):
    """The drawing surface handed to the renderer cannot be painted."""
