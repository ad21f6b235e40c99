"""
Log-frequency spectrum renderer.

Maps a decibel spectrum onto a canvas with a logarithmic frequency axis
(20 Hz to Nyquist) and a linear decibel axis, then draws:

  • a glowing spectrum line over the bins at or above 20 Hz,
  • a gradient fill under the curve (opaque near the top, clear at the bottom),
  • reference labels at fixed frequencies and decibel levels,
  • a title in the top-left corner.

The draw path is deterministic: identical frames produce identical pixels.

Performance notes:
  • Bin → x positions depend only on (n_bins, sample_rate, width) and are
    cached together with the pixel column each bin lands in.  Bins sharing
    a column are reduced to their loudest value, so PIL never draws more
    than one vertex per column.
  • Gradient and label masks are cached per canvas size.
"""

from dataclasses import dataclass, fields
from functools import lru_cache
from typing import Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image, ImageChops, ImageColor, ImageDraw, ImageFilter, ImageFont

from meterscope.core.stream import SpectralFrame
from meterscope.visualizers.styles import get_spectrum_style

MIN_FREQUENCY = 20.0  # bottom of human hearing; nothing below is plotted
FREQUENCY_LABELS = (60, 100, 250, 500, 1000, 2000, 5000, 10000, 16000)
DECIBEL_LABELS = (-10, -30, -50, -70, -90)

ArrayLike = Union[float, np.ndarray]


@dataclass
class SpectrumConfig:
    """Appearance of the spectrum plot."""

    width: int = 400
    height: int = 250
    title: str = "Spectrum"
    color: str = "#1DB954"
    background: str = "#121212"
    label_color: str = "#A0A0A0"
    title_color: str = "#FFFFFF"
    line_width: int = 2
    glow_radius: float = 8.0  # 0 disables the glow
    fill_alpha: int = 0x90    # fill opacity at the top edge, 0-255
    label_font_size: int = 12
    title_font_size: int = 16

    @classmethod
    def from_style(cls, style: str, **overrides) -> "SpectrumConfig":
        """
        Build a config from a named preset in ``styles.json``.

        Raises:
            ValueError: If the style is unknown.
        """
        preset = get_spectrum_style(style)
        if preset is None:
            raise ValueError(f"Unknown spectrum style: {style!r}")
        known = {f.name for f in fields(cls)}
        preset = {k: v for k, v in preset.items() if k in known}
        preset.update(overrides)
        return cls(**preset)


# ---------------------------------------------------------------------------
# Axis mapping
# ---------------------------------------------------------------------------

def freq_to_x(freq: ArrayLike, nyquist: float, width: float) -> ArrayLike:
    """Logarithmic position of *freq* between 20 Hz (x=0) and Nyquist (x=width)."""
    log_min = np.log10(MIN_FREQUENCY)
    log_max = np.log10(nyquist)
    pos = (np.log10(freq) - log_min) / (log_max - log_min)
    return pos * width


def db_to_y(db: ArrayLike, min_db: float, max_db: float, height: float) -> ArrayLike:
    """Linear position of *db*: ``max_db`` at y=0, ``min_db`` at y=height."""
    value = (np.asarray(db, dtype=np.float64) - min_db) / (max_db - min_db)
    return (1.0 - value) * height


def format_frequency_label(freq: float) -> str:
    """``250`` → "250", ``1000`` → "1k", ``16000`` → "16k"."""
    if freq < 1000:
        return f"{freq:g}"
    return f"{freq / 1000:g}k"


LAYOUT_CACHE_SIZE = 16


@lru_cache(maxsize=LAYOUT_CACHE_SIZE)
def _bin_x_positions(
    n_bins: int, sample_rate: float, width: int
) -> Tuple[int, np.ndarray, np.ndarray]:
    """
    Column layout of the plotted bins.

    Bins from the first one at or above 20 Hz are grouped by the pixel
    column they land in; high frequencies crowd many bins into one column.

    Returns:
        (first plotted bin, start offset of each column group relative to
        the first bin, mean x of each group).  Arrays are read-only.
    """
    nyquist = sample_rate / 2.0
    freqs = np.arange(n_bins) * (nyquist / n_bins)
    first = max(1, int(np.searchsorted(freqs, MIN_FREQUENCY, side="left")))
    if first >= n_bins or nyquist <= MIN_FREQUENCY:
        starts = np.empty(0, dtype=np.intp)
        xs = np.empty(0)
    else:
        bin_xs = freq_to_x(freqs[first:], nyquist, width)
        columns = np.clip(np.floor(bin_xs).astype(np.intp), 0, width - 1)
        starts = np.flatnonzero(np.r_[True, np.diff(columns) != 0])
        counts = np.diff(np.r_[starts, len(bin_xs)])
        xs = np.add.reduceat(bin_xs, starts) / counts
    starts.setflags(write=False)
    xs.setflags(write=False)
    return first, starts, xs


@lru_cache(maxsize=8)
def _load_font(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def _text_origin(
    font: ImageFont.ImageFont,
    text: str,
    x: float,
    baseline: float,
    align: str = "left",
) -> Tuple[float, float]:
    """Top-left drawing origin placing *text*'s baseline at *baseline*."""
    left, _, right, bottom = font.getbbox(text)
    if align == "center":
        x -= (right - left) / 2.0
    ascent = font.getmetrics()[0] if hasattr(font, "getmetrics") else bottom
    return (x, baseline - ascent)


@lru_cache(maxsize=8)
def _gradient_mask(width: int, height: int, fill_alpha: int) -> Image.Image:
    """Vertical fill opacity: *fill_alpha* at the top edge, 0 at the bottom."""
    column = np.linspace(fill_alpha, 0.0, height)
    alpha = np.repeat(column[:, None], width, axis=1)
    return Image.fromarray(np.round(alpha).astype(np.uint8))


@lru_cache(maxsize=LAYOUT_CACHE_SIZE)
def _label_masks(
    width: int,
    height: int,
    nyquist: float,
    min_db: float,
    max_db: float,
    title: str,
    label_font_size: int,
    title_font_size: int,
) -> Tuple[Image.Image, Image.Image]:
    """Coverage masks of the reference labels and of the title."""
    label_font = _load_font(label_font_size)
    labels = Image.new("L", (width, height), 0)
    draw = ImageDraw.Draw(labels)

    if nyquist > MIN_FREQUENCY:
        for freq in FREQUENCY_LABELS:
            if freq < nyquist:
                x = float(freq_to_x(freq, nyquist, width))
                text = format_frequency_label(freq)
                origin = _text_origin(label_font, text, x, height - 10, align="center")
                draw.text(origin, text, fill=255, font=label_font)

    for db in DECIBEL_LABELS:
        if min_db <= db <= max_db:
            y = float(db_to_y(db, min_db, max_db, height))
            text = f"{db}"
            draw.text(_text_origin(label_font, text, 5, y + 4), text, fill=255, font=label_font)

    title_font = _load_font(title_font_size)
    title_mask = Image.new("L", (width, height), 0)
    ImageDraw.Draw(title_mask).text(
        _text_origin(title_font, title, 10, 25), title, fill=255, font=title_font
    )
    return labels, title_mask


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

class SpectrumRenderer:
    """
    Draws spectral frames as RGB images.

    Stateless between frames apart from the layout caches; the same instance
    may serve several canvases of different sizes.
    """

    def __init__(self, config: Optional[SpectrumConfig] = None):
        self.cfg = config or SpectrumConfig()
        self._rgb = ImageColor.getrgb(self.cfg.color)[:3]
        self._label_rgb = ImageColor.getrgb(self.cfg.label_color)[:3]
        self._title_rgb = ImageColor.getrgb(self.cfg.title_color)[:3]

    def _size(self, size: Optional[Tuple[int, int]]) -> Tuple[int, int]:
        if size is None:
            return self.cfg.width, self.cfg.height
        width, height = size
        return int(width), int(height)

    def spectrum_points(
        self,
        frame: SpectralFrame,
        size: Optional[Tuple[int, int]] = None,
    ) -> np.ndarray:
        """
        Screen coordinates of the spectrum line, shape (n_points, 2).

        Bins below 20 Hz (and DC) are omitted.  Bins sharing a pixel column
        collapse to one point at their loudest level, so there are at most
        ``width`` points, in ascending frequency order.
        """
        width, height = self._size(size)
        first, starts, xs = _bin_x_positions(frame.n_bins, float(frame.sample_rate), width)
        if xs.size == 0:
            return np.empty((0, 2))
        db = np.nan_to_num(
            np.asarray(frame.freq_data[first:], dtype=np.float64),
            nan=frame.min_decibels,
        )
        db = np.clip(np.maximum.reduceat(db, starts), frame.min_decibels, frame.max_decibels)
        ys = db_to_y(db, frame.min_decibels, frame.max_decibels, height)
        return np.column_stack([xs, ys])

    def _draw_curve(self, image: Image.Image, points: np.ndarray) -> None:
        width, height = image.size
        flat = points.ravel().tolist()
        cfg = self.cfg

        if len(points) >= 2:
            if cfg.glow_radius > 0:
                glow = Image.new("L", image.size, 0)
                ImageDraw.Draw(glow).line(flat, fill=255, width=cfg.line_width + 2)
                glow = glow.filter(ImageFilter.GaussianBlur(cfg.glow_radius / 2.0))
                image.paste(self._rgb, (0, 0, width, height), glow)
            ImageDraw.Draw(image).line(flat, fill=self._rgb, width=cfg.line_width, joint="curve")

        # Close the area under the curve down to the bottom edge
        first_x = float(points[0, 0])
        polygon = flat + [float(width), float(height), first_x, float(height)]
        area = Image.new("L", image.size, 0)
        ImageDraw.Draw(area).polygon(polygon, fill=255)
        mask = ImageChops.multiply(area, _gradient_mask(width, height, cfg.fill_alpha))
        image.paste(self._rgb, (0, 0, width, height), mask)

    def _draw_labels(
        self,
        image: Image.Image,
        nyquist: float,
        min_db: float,
        max_db: float,
    ) -> None:
        width, height = image.size
        cfg = self.cfg
        labels, title = _label_masks(
            width,
            height,
            float(nyquist),
            float(min_db),
            float(max_db),
            cfg.title,
            cfg.label_font_size,
            cfg.title_font_size,
        )
        image.paste(self._label_rgb, (0, 0, width, height), labels)
        image.paste(self._title_rgb, (0, 0, width, height), title)

    def render_frame(
        self,
        frame: SpectralFrame,
        size: Optional[Tuple[int, int]] = None,
    ) -> np.ndarray:
        """
        Render one spectral frame.

        Args:
            frame: Decibel spectrum with its sample rate and decibel range.
            size: (width, height) override; defaults to the config size.

        Returns:
            RGB image as an array of shape (height, width, 3), dtype uint8.
        """
        width, height = self._size(size)
        image = Image.new("RGB", (width, height), self.cfg.background)
        points = self.spectrum_points(frame, (width, height))
        if len(points) > 0:
            self._draw_curve(image, points)
        self._draw_labels(image, frame.nyquist, frame.min_decibels, frame.max_decibels)
        return np.array(image)

    def render_idle(
        self,
        sample_rate: float,
        min_db: float = -90.0,
        max_db: float = -10.0,
        size: Optional[Tuple[int, int]] = None,
    ) -> np.ndarray:
        """Render the cleared state: background, reference labels and title."""
        width, height = self._size(size)
        image = Image.new("RGB", (width, height), self.cfg.background)
        self._draw_labels(image, sample_rate / 2.0, min_db, max_db)
        return np.array(image)

    def save_png(self, pixels: np.ndarray, path) -> None:
        Image.fromarray(pixels).save(path, "PNG")


def render_spectrum(
    freq_data: Sequence[float],
    sample_rate: float,
    min_db: float = -90.0,
    max_db: float = -10.0,
    config: Optional[SpectrumConfig] = None,
) -> np.ndarray:
    """One-shot helper: render a bare decibel spectrum."""
    freq = np.asarray(freq_data, dtype=np.float32)
    frame = SpectralFrame(
        time_data=np.zeros_like(freq),
        freq_data=freq,
        sample_rate=sample_rate,
        min_decibels=min_db,
        max_decibels=max_db,
    )
    return SpectrumRenderer(config).render_frame(frame)
