"""
Live preview window for an analysis session.

Opens a pygame window whose frame loop is the session's render tick: every
display frame calls ``session.render`` on the window, and the latest
snapshot is shown in a status bar underneath the spectrum.

Keyboard controls while previewing:
    ESC / Q      quit
    SPACE        pause / resume analysis
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from meterscope.core.session import AnalyzerSession
from meterscope.io.exporter import format_snapshot

STATUS_BAR_HEIGHT = 28


class PygameCanvas:
    """Canvas adapter for a pygame surface."""

    def __init__(self, surface):
        self.surface = surface
        self.width, self.height = surface.get_size()

    def draw(self, pixels: np.ndarray) -> None:
        import pygame

        # pygame expects (W, H, 3) for surfarray, numpy gives (H, W, 3)
        frame = pygame.surfarray.make_surface(pixels.swapaxes(0, 1))
        self.surface.blit(frame, (0, 0))


def run_preview(
    session: AnalyzerSession,
    fps: int = 60,
    title: str = "Meterscope",
    size: Optional[Tuple[int, int]] = None,
) -> None:
    """
    Display the session's spectrum in a pygame window until it is closed.

    Args:
        session: Connected session; it is enabled if not already active.
        fps: Target display refresh rate.
        title: Window title string.
        size: Spectrum area (width, height); defaults to the renderer config.
    """
    try:
        import pygame
    except ImportError:
        print(
            "Real-time preview requires pygame.\n"
            "Install it with:  pip install pygame"
        )
        return

    width, height = size or (session.renderer.cfg.width, session.renderer.cfg.height)

    pygame.init()
    screen = pygame.display.set_mode((width, height + STATUS_BAR_HEIGHT))
    pygame.display.set_caption(title)
    clock = pygame.time.Clock()
    font = pygame.font.SysFont(None, 20)
    canvas = PygameCanvas(screen.subsurface((0, 0, width, height)))

    def _status(text: str) -> None:
        screen.fill((18, 18, 18), (0, height, width, STATUS_BAR_HEIGHT))
        label = font.render(text, True, (200, 200, 200))
        screen.blit(label, (8, height + 7))

    if not session.active:
        session.enable()

    running = True
    try:
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key in (pygame.K_ESCAPE, pygame.K_q):
                        running = False
                    elif event.key == pygame.K_SPACE:
                        if session.active:
                            session.disable()
                        else:
                            session.enable()

            session.render(canvas)

            snapshot = session.latest
            if not session.active:
                _status("[PAUSED]  SPACE=resume  ESC=quit")
            elif snapshot is not None:
                _status("  ".join(f"{k}: {v}" for k, v in format_snapshot(snapshot).items()))
            else:
                _status("Waiting for audio...")

            pygame.display.flip()
            clock.tick(fps)
    finally:
        session.disable()
        pygame.quit()
