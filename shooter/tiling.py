"""Tiled pagination of screenshots and diagnostics into fixed-size report pages.

Tall screenshots are cut into horizontal strips scaled to exactly the page's
content width. Each strip takes as many whole source rows as fit in the space
left on the current page, so the strips of one image cover its rows in order
with no gap and no overlap. Text uses the same overflow rule line by line.
"""

import logging
import math
from pathlib import Path
from typing import Callable

from PIL import Image

from .artifacts import read_capture_logs
from .document import (
    ReportDocument,
    TextItem,
    ImageStrip,
    measure_text,
    resized_dimensions,
)
from .models import PageManifestEntry

log = logging.getLogger(__name__)


MAX_IMAGE_WIDTH_PX = 1200
MIN_STRIP_HEIGHT_PT = 24.0
STRIP_GAP_PT = 8.0
HEADING_SIZE = 14.0
BODY_SIZE = 9.0
LINE_SPACING = 1.35
LOG_EXCERPT_LINES = 25

_LAYOUT_VIEWPORTS = (('desktop', 'Desktop'), ('mobile', 'Mobile'))


def wrap_text(text: str, max_width: float, measure: Callable[[str], float]) -> list:
    """Word-wrap ``text`` so no returned line measures wider than ``max_width``.

    Newlines start new lines; words too wide on their own are broken
    character by character. A single character wider than ``max_width`` is
    still emitted on its own line.
    """
    lines: list = []
    for paragraph in text.split('\n'):
        current = ''
        for word in paragraph.split():
            candidate = f'{current} {word}' if current else word
            if measure(candidate) <= max_width:
                current = candidate
                continue
            if current:
                lines.append(current)
                current = ''
            if measure(word) <= max_width:
                current = word
                continue
            for ch in word:
                if current and measure(current + ch) > max_width:
                    lines.append(current)
                    current = ''
                current += ch
        lines.append(current)
    return lines


class TilingAssembler:
    """Streams report content into a ReportDocument.

    Args:
        document: Target document; a new A4 document when omitted.
        measure: ``measure(text, size) -> points``; Pillow's bundled font by default.
        max_image_width: Source images wider than this are shrunk first.
        min_strip_height: Below this much room a new page is started before a strip.
        gap: Space left after each strip.
    """

    def __init__(
        self,
        document: ReportDocument = None,
        measure: Callable[[str, float], float] = measure_text,
        max_image_width: int = MAX_IMAGE_WIDTH_PX,
        min_strip_height: float = MIN_STRIP_HEIGHT_PT,
        gap: float = STRIP_GAP_PT,
    ):
        self.document = document or ReportDocument()
        self.measure = measure
        self.max_image_width = max_image_width
        self.min_strip_height = min_strip_height
        self.gap = gap

    # -- pages --------------------------------------------------------------

    def new_page(self):
        """Start a fresh page unless the current one is still blank."""
        if self.document.current.is_blank:
            return self.document.current
        return self.document.new_page()

    def _room_for(self, height: float):
        page = self.document.current
        if page.remaining < height and not page.is_blank:
            page = self.document.new_page()
        return page

    # -- text ---------------------------------------------------------------

    def add_text(self, text: str, size: float = BODY_SIZE, color: str = '#111111') -> int:
        """Wrap and place a text block; returns the number of lines placed."""
        width = self.document.content_width
        line_height = size * LINE_SPACING
        lines = wrap_text(text, width, lambda s: self.measure(s, size))
        for line in lines:
            page = self._room_for(line_height)
            item = TextItem(
                text=line,
                x=page.margin,
                y=page.cursor,
                width=self.measure(line, size),
                height=line_height,
                size=size,
                color=color,
            )
            page.place(item, line_height)
        return len(lines)

    def add_heading(self, text: str) -> int:
        return self.add_text(text, size=HEADING_SIZE)

    def add_placeholder(self, text: str) -> int:
        return self.add_text(text, size=BODY_SIZE + 1, color='#b00020')

    def add_spacing(self, height: float) -> None:
        page = self.document.current
        page.cursor = min(page.cursor + height, page.bottom)

    # -- images -------------------------------------------------------------

    def tile(self, source, width_px: int, height_px: int) -> list:
        """Slice a ``width_px`` x ``height_px`` image into page-filling strips."""
        if width_px <= 0 or height_px <= 0:
            return []
        content_width = self.document.content_width
        scale = content_width / width_px
        strips = []
        row = 0

        while row < height_px:
            page = self.document.current
            fit = math.floor(page.remaining / scale) if page.remaining > 0 else 0
            if (page.remaining < self.min_strip_height or fit < 1) and not page.is_blank:
                page = self.document.new_page()
                fit = math.floor(page.remaining / scale)
            if fit < 1:
                raise ValueError(f'Image {width_px}px wide cannot fit one row on a page')

            rows = min(fit, height_px - row)
            strip = ImageStrip(
                source=source,
                source_size=(width_px, height_px),
                top=row,
                bottom=row + rows,
                x=page.margin,
                y=page.cursor,
                width=content_width,
                height=rows * scale,
            )
            page.place(strip, strip.height + self.gap)
            strips.append(strip)
            row += rows

        return strips

    def add_image(self, path: Path) -> list:
        """Tile a screenshot file. Missing or unreadable files get a placeholder."""
        path = Path(path)
        if not path.exists():
            self.add_placeholder(f'[missing] {path.name} was not captured')
            return []
        try:
            with Image.open(path) as img:
                width, height = img.size
        except (OSError, Image.DecompressionBombError) as exc:
            log.warning('Unreadable screenshot %s: %s', path, exc)
            self.add_placeholder(f'[missing] {path.name} could not be read')
            return []
        width, height = resized_dimensions(width, height, self.max_image_width)
        return self.tile(path, width, height)

    # -- entries ------------------------------------------------------------

    def _stability_line(self, label: str, logs: dict) -> str:
        record = logs.get('stability')
        if not record:
            return f'{label}: no stability record'
        stability = record.get('stability') or {}
        trail = ' > '.join(record.get('states') or [])
        if stability.get('ok'):
            verdict = f"stable (height {stability.get('height')}px, {stability.get('dom_nodes')} nodes)"
        else:
            verdict = f"not settled ({stability.get('reason') or 'unknown'})"
        return f'{label}: {verdict}' + (f' [{trail}]' if trail else '')

    def _log_excerpt(self, title: str, lines: list) -> None:
        if not lines:
            return
        self.add_text(title, size=BODY_SIZE + 1)
        shown = lines[:LOG_EXCERPT_LINES]
        self.add_text('\n'.join(shown))
        if len(lines) > len(shown):
            self.add_text(f'... and {len(lines) - len(shown)} more lines')

    def layout(self, entry: PageManifestEntry, run_dir: Path) -> None:
        """Lay out one manifest entry: header, verdicts, screenshots, log excerpts."""
        run_dir = Path(run_dir)
        logs = {vp: read_capture_logs(run_dir, entry.name, vp) for vp, _ in _LAYOUT_VIEWPORTS}

        self.add_heading(entry.name)
        self.add_text(entry.url or '(url unknown)')
        for vp, label in _LAYOUT_VIEWPORTS:
            self.add_text(self._stability_line(label, logs[vp]))
        self.add_spacing(self.gap)

        for vp, label in _LAYOUT_VIEWPORTS:
            rel = getattr(entry, vp)
            self.add_text(f'{label} viewport', size=BODY_SIZE + 2)
            if not rel:
                self.add_placeholder(f'[missing] no {vp} screenshot recorded')
                continue
            self.add_image(run_dir / rel)

        for vp, label in _LAYOUT_VIEWPORTS:
            self._log_excerpt(f'{label} console errors', logs[vp]['console_errors'])
            self._log_excerpt(f'{label} request failures', logs[vp]['request_failures'])
