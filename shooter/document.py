"""Fixed-size report pages and their PDF rendering.

Pages are laid out in points with the origin at the top-left corner and a
cursor that only moves down. Nothing is rasterised until ``save``; strips
keep a reference to their source file and row range instead of pixels.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

log = logging.getLogger(__name__)


# A4 in points.
PAGE_WIDTH_PT = 595.28
PAGE_HEIGHT_PT = 841.89
MARGIN_PT = 36.0

DEFAULT_RENDER_SCALE = 1.5   # 108 dpi
PDF_BATCH_PAGES = 16


@dataclass
class TextItem:
    text: str
    x: float
    y: float
    width: float
    height: float
    size: float
    color: str = '#111111'


@dataclass
class ImageStrip:
    """Rows ``[top, bottom)`` of a resized source image, placed on a page."""
    source: Optional[Path]
    source_size: tuple          # (width, height) after resizing
    top: int
    bottom: int
    x: float
    y: float
    width: float
    height: float

    @property
    def rows(self) -> int:
        return self.bottom - self.top


@dataclass
class ReportPage:
    width: float = PAGE_WIDTH_PT
    height: float = PAGE_HEIGHT_PT
    margin: float = MARGIN_PT
    cursor: Optional[float] = None
    items: list = field(default_factory=list)

    def __post_init__(self):
        if self.cursor is None:
            self.cursor = self.margin

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def bottom(self) -> float:
        return self.height - self.margin

    @property
    def remaining(self) -> float:
        return self.bottom - self.cursor

    @property
    def is_blank(self) -> bool:
        return not self.items

    def place(self, item, advance: float) -> None:
        self.items.append(item)
        self.cursor += advance


class ReportDocument:
    """An ordered sequence of ReportPage; always holds at least one page."""

    def __init__(self, page_size: tuple = (PAGE_WIDTH_PT, PAGE_HEIGHT_PT), margin: float = MARGIN_PT):
        self.page_size = page_size
        self.margin = margin
        self.pages: list = []
        self.new_page()

    @property
    def current(self) -> ReportPage:
        return self.pages[-1]

    @property
    def content_width(self) -> float:
        return self.page_size[0] - 2 * self.margin

    def new_page(self) -> ReportPage:
        page = ReportPage(width=self.page_size[0], height=self.page_size[1], margin=self.margin)
        self.pages.append(page)
        return page

    def save(self, path, render_scale: float = DEFAULT_RENDER_SCALE) -> Path:
        """Render every page and write the PDF.

        Pages are rendered in batches into ``<name>.part`` which replaces
        ``path`` only once the last page is written.
        """
        path = Path(path)
        tmp = path.with_name(path.name + '.part')
        resolution = 72.0 * render_scale
        sources = _SourceCache()
        try:
            for start in range(0, len(self.pages), PDF_BATCH_PAGES):
                batch = [render_page(p, render_scale, sources) for p in self.pages[start:start + PDF_BATCH_PAGES]]
                first, *rest = batch
                first.save(
                    tmp, 'PDF',
                    save_all=True,
                    append_images=rest,
                    append=start > 0,
                    resolution=resolution,
                )
            os.replace(tmp, path)
        except BaseException:
            if tmp.exists():
                tmp.unlink()
            raise
        finally:
            sources.close()
        log.info('Report written: %s (%d pages)', path, len(self.pages))
        return path


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

@lru_cache(maxsize=16)
def get_font(size: float):
    """Pillow's bundled font at a pixel size."""
    return ImageFont.load_default(size=max(1, round(size)))


def measure_text(text: str, size: float) -> float:
    """Width of ``text`` in points at ``size`` pt."""
    return float(get_font(size).getlength(text))


def load_resized(path: Path, max_width: int) -> Image.Image:
    """Open an image as RGB, shrunk to ``max_width`` if wider. Never upscales."""
    with Image.open(path) as img:
        img = img.convert('RGB')
    width, height = img.size
    target = resized_dimensions(width, height, max_width)
    if target != (width, height):
        img = img.resize(target, Image.LANCZOS)
    return img


def resized_dimensions(width: int, height: int, max_width: int) -> tuple:
    if width <= max_width:
        return width, height
    return max_width, max(1, round(height * max_width / width))


class _SourceCache:
    """Holds the one source image currently being sliced."""

    def __init__(self):
        self._key = None
        self._image = None

    def get(self, path: Path, size: tuple) -> Image.Image:
        key = (Path(path), tuple(size))
        if key != self._key:
            self.close()
            self._image = load_resized(path, size[0])
            self._key = key
        return self._image

    def close(self) -> None:
        if self._image is not None:
            self._image.close()
        self._image = None
        self._key = None


def render_page(page: ReportPage, scale: float, sources: _SourceCache) -> Image.Image:
    """Rasterise one page at ``scale`` pixels per point."""
    canvas = Image.new('RGB', (round(page.width * scale), round(page.height * scale)), 'white')
    draw = ImageDraw.Draw(canvas)

    for item in page.items:
        if isinstance(item, ImageStrip):
            source = sources.get(item.source, item.source_size)
            part = source.crop((0, item.top, item.source_size[0], item.bottom))
            target = (max(1, round(item.width * scale)), max(1, round(item.height * scale)))
            canvas.paste(part.resize(target, Image.LANCZOS), (round(item.x * scale), round(item.y * scale)))
        else:
            draw.text((item.x * scale, item.y * scale), item.text, fill=item.color, font=get_font(item.size * scale))

    return canvas
