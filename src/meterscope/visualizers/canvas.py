"""
Drawing surfaces accepted by ``AnalyzerSession.render``.

A surface is anything with integer ``width`` / ``height`` attributes and a
``draw(pixels)`` method taking an ``(height, width, 3)`` uint8 array, or a
writable ``(height, width, 3|4)`` uint8 numpy array painted in place.
"""

from typing import Any, Protocol, runtime_checkable

import numpy as np

from meterscope.errors import RenderUnavailable


@runtime_checkable
class Canvas(Protocol):
    width: int
    height: int

    def draw(self, pixels: np.ndarray) -> None:
        ...


class ArrayCanvas:
    """In-memory RGB canvas; the last painted frame is kept in ``pixels``."""

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.pixels = np.zeros((height, width, 3), dtype=np.uint8)
        self.frames_drawn = 0

    def draw(self, pixels: np.ndarray) -> None:
        np.copyto(self.pixels, pixels)
        self.frames_drawn += 1


class _NdarrayCanvas:
    """Adapter painting into a caller-owned numpy image."""

    def __init__(self, array: np.ndarray):
        self.array = array
        self.height, self.width = array.shape[:2]

    def draw(self, pixels: np.ndarray) -> None:
        self.array[..., :3] = pixels
        if self.array.shape[2] == 4:
            self.array[..., 3] = 255


def as_canvas(surface: Any) -> Canvas:
    """
    Validate *surface* and wrap it as a :class:`Canvas`.

    Raises:
        RenderUnavailable: If the surface is missing or cannot be painted.
    """
    if surface is None:
        raise RenderUnavailable("No drawing surface supplied")

    if isinstance(surface, np.ndarray):
        if (
            surface.ndim != 3
            or surface.shape[2] not in (3, 4)
            or surface.dtype != np.uint8
        ):
            raise RenderUnavailable(
                f"Array surface must be (H, W, 3|4) uint8, got {surface.shape} {surface.dtype}"
            )
        if not surface.flags.writeable:
            raise RenderUnavailable("Array surface is read-only")
        canvas = _NdarrayCanvas(surface)
    elif isinstance(surface, Canvas):
        canvas = surface
    else:
        raise RenderUnavailable(
            f"{type(surface).__name__} is not a drawing surface "
            "(needs width, height and draw(pixels))"
        )

    try:
        width, height = int(canvas.width), int(canvas.height)
    except (TypeError, ValueError) as exc:
        raise RenderUnavailable("Surface has no usable size") from exc
    if width <= 0 or height <= 0:
        raise RenderUnavailable(f"Surface has zero area ({width}x{height})")
    return canvas
