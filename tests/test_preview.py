"""pygame canvas adapter (no window required)."""

import numpy as np
import pytest

from meterscope.core.config import AnalyzerConfig
from meterscope.core.session import connect
from meterscope.core.stream import RealtimeAnalyzer
from meterscope.preview import PygameCanvas

pygame = pytest.importorskip("pygame")


def test_draw_blits_pixels():
    surface = pygame.Surface((90, 60))
    canvas = PygameCanvas(surface)
    assert (canvas.width, canvas.height) == (90, 60)

    pixels = np.zeros((60, 90, 3), dtype=np.uint8)
    pixels[10, 20] = (255, 0, 0)
    canvas.draw(pixels)

    # surfarray is (W, H, 3)
    blitted = pygame.surfarray.array3d(surface)
    assert tuple(blitted[20, 10]) == (255, 0, 0)
    assert tuple(blitted[0, 0]) == (0, 0, 0)


def test_session_renders_onto_pygame_surface():
    config = AnalyzerConfig(fft_size=512, sampling_interval_ms=60_000)
    analyzer = RealtimeAnalyzer(sample_rate=8000, config=config)
    surface = pygame.Surface((120, 80))
    with connect(analyzer) as session:
        session.enable()
        assert session.render(PygameCanvas(surface))
    assert pygame.surfarray.array3d(surface).any()
