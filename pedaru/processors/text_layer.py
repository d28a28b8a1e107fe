# pedaru/processors/text_layer.py
"""
Glyph layout for the invisible, selectable text overlay.

Features:
- GlyphRun -> PositionedSpan layout from the viewport transform
- Horizontal width correction against substitute font metrics
- Case-insensitive search highlighting with page-wide match ordinals
- Cancellable layout passes (superseded passes emit nothing)
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional

from pedaru.models.types import GlyphRun, HighlightSegment, PageViewport, PositionedSpan
from pedaru.processors.font_metrics import SubstituteFontMeasurer, WidthMeasurer
from pedaru.processors.geometry import (
    font_size_from_matrix,
    multiply_transform,
    rotation_from_matrix,
)

# Module logger
logger = logging.getLogger(__name__)

# Minimum change in a span's correction factor worth re-applying
WIDTH_CORRECTION_EPSILON = 0.001


class CancellationToken:
    """
    Captured "cancelled" flag for one render pass.

    The document library offers no hard cancellation, so a superseded pass
    keeps running and checks this flag before applying anything.
    """

    __slots__ = ('_cancelled', 'label')

    def __init__(self, label: str = ""):
        self._cancelled = False
        self.label = label

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        return f"CancellationToken({self.label!r}, cancelled={self._cancelled})"


def layout_glyph_runs(runs: Iterable[GlyphRun], viewport: PageViewport) -> list[PositionedSpan]:
    """
    Position one overlay span per non-empty glyph run.

    Ordinals count non-empty runs in extraction order, so they line up with
    the page text the cache builds from the same runs.
    """
    spans: list[PositionedSpan] = []
    for run in runs:
        if run.is_empty:
            continue
        tx = multiply_transform(viewport.transform, run.transform)
        font_size = font_size_from_matrix(tx)
        spans.append(PositionedSpan(
            index=len(spans),
            text=run.text,
            origin_x=tx[4],
            # Baselines are bottom-anchored; the overlay box is top-anchored
            origin_y=tx[5] - font_size,
            font_size_px=font_size,
            rotation_radians=rotation_from_matrix(tx),
            target_width_px=run.width * viewport.scale,
            font_name=run.font_name,
        ))
    return spans


def _query_pattern(query: str) -> Optional[re.Pattern]:
    if not query:
        return None
    return re.compile(re.escape(query), re.IGNORECASE)


def highlight_span_text(
    text: str,
    query: Optional[str],
    start_ordinal: int = 0,
    focused_match_index: Optional[int] = None,
) -> tuple[list[HighlightSegment], int]:
    """
    Split span text into plain and matched segments.

    Matches are case-insensitive and non-overlapping, scanned left to right.

    Args:
        text: Span text
        query: Search query (None/empty = no highlighting)
        start_ordinal: Page-wide ordinal of the first match in this span
        focused_match_index: Page-wide ordinal of the focused match

    Returns:
        (segments, next_ordinal)
    """
    pattern = _query_pattern(query or "")
    if pattern is None:
        return [HighlightSegment(text)], start_ordinal

    segments: list[HighlightSegment] = []
    ordinal = start_ordinal
    last_index = 0
    for match in pattern.finditer(text):
        if match.start() > last_index:
            segments.append(HighlightSegment(text[last_index:match.start()]))
        segments.append(HighlightSegment(
            match.group(0),
            is_match=True,
            is_focused=(focused_match_index is not None and ordinal == focused_match_index),
        ))
        ordinal += 1
        last_index = match.end()

    if last_index < len(text) or not segments:
        segments.append(HighlightSegment(text[last_index:]))
    return segments, ordinal


@dataclass
class TextLayer:
    """
    The positioned overlay of one rendered page.

    Owns its spans; discarded when the page's render pass is superseded.
    """
    page_number: int
    viewport: PageViewport
    spans: list[PositionedSpan] = field(default_factory=list)
    token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def is_current(self) -> bool:
        return not self.token.cancelled

    def span(self, ordinal: int) -> Optional[PositionedSpan]:
        """Look up a span by its stable ordinal."""
        if 0 <= ordinal < len(self.spans) and self.spans[ordinal].index == ordinal:
            return self.spans[ordinal]
        for span in self.spans:
            if span.index == ordinal:
                return span
        return None

    def sorted_spans(self) -> list[PositionedSpan]:
        return sorted(self.spans, key=lambda s: s.index)

    @property
    def text(self) -> str:
        """Span texts joined the same way the page text cache joins them."""
        return " ".join(span.text for span in self.sorted_spans())

    def apply_width_correction(
        self,
        measurer: WidthMeasurer,
        epsilon: float = WIDTH_CORRECTION_EPSILON,
    ) -> int:
        """
        Stretch spans horizontally so their rendered width matches the target.

        A span is only updated when its new factor differs from the current
        one by at least epsilon, so repeated passes settle instead of
        oscillating.

        Returns:
            Number of spans whose factor changed
        """
        updated = 0
        for span in self.spans:
            actual = measurer.measure(span.text, span.font_name, span.font_size_px)
            if actual <= 0 or span.target_width_px <= 0:
                continue
            factor = span.target_width_px / actual
            if abs(factor - span.width_correction_factor) < epsilon:
                continue
            span.width_correction_factor = factor
            updated += 1
        if updated:
            logger.debug("Page %d: width correction updated %d/%d spans",
                         self.page_number, updated, len(self.spans))
        return updated

    def highlight(
        self,
        query: Optional[str],
        focused_match_index: Optional[int] = None,
    ) -> list[list[HighlightSegment]]:
        """
        Highlight every span, counting match ordinals across the page in
        span order.

        Returns:
            Segments per span, in ordinal order
        """
        result = []
        ordinal = 0
        for span in self.sorted_spans():
            segments, ordinal = highlight_span_text(span.text, query, ordinal, focused_match_index)
            result.append(segments)
        return result

    def match_positions(self, query: Optional[str]) -> list[int]:
        """
        Offsets in the joined page text of the matches highlight() marks.

        Indexed by the page-wide match ordinal.
        """
        pattern = _query_pattern(query or "")
        if pattern is None:
            return []
        positions = []
        span_offset = 0
        for span in self.sorted_spans():
            positions.extend(span_offset + match.start() for match in pattern.finditer(span.text))
            span_offset += span.text_length + 1
        return positions

    def match_count(self, query: Optional[str]) -> int:
        pattern = _query_pattern(query or "")
        if pattern is None:
            return 0
        return sum(len(pattern.findall(span.text)) for span in self.spans)


class TextLayerRenderer:
    """
    Runs layout passes and the two-phase width correction.
    """

    def __init__(
        self,
        measurer: Optional[WidthMeasurer] = None,
        epsilon: float = WIDTH_CORRECTION_EPSILON,
    ):
        self.measurer = measurer or SubstituteFontMeasurer()
        self.epsilon = epsilon

    async def render(
        self,
        page,
        scale: float,
        token: Optional[CancellationToken] = None,
    ) -> Optional[TextLayer]:
        """
        Lay out the overlay for one page.

        Returns None (never a partial overlay, never an exception) if the
        page handle is gone, the library fails, or the pass is cancelled.
        """
        token = token or CancellationToken()
        if page is None or page.destroyed:
            logger.debug("Skipping layout: page handle destroyed")
            return None

        try:
            viewport = page.get_viewport(scale)
            if token.cancelled:
                return None
            runs = await page.get_text_content()
        except Exception as e:  # library errors are not typed
            if not token.cancelled:
                logger.warning("Failed to load text content for page %s: %s",
                               getattr(page, 'page_number', '?'), e)
            return None

        if token.cancelled:
            logger.debug("Discarding superseded layout of page %s", page.page_number)
            return None

        spans = layout_glyph_runs(runs, viewport)
        return TextLayer(page_number=page.page_number, viewport=viewport, spans=spans, token=token)

    async def schedule_width_correction(
        self,
        layer: TextLayer,
        fonts_ready: Optional[Callable[[], Awaitable]] = None,
    ) -> None:
        """
        Correct span widths once after layout and again after fonts load.

        fonts_ready is called (after the first pass) to get an awaitable that
        completes once the host has delivered every font.

        The first pass waits one loop tick so the overlay is painted before
        measuring. The second pass guards against slow font delivery leaving
        the overlay misaligned.
        """
        await asyncio.sleep(0)
        if not layer.is_current:
            return
        layer.apply_width_correction(self.measurer, self.epsilon)

        if fonts_ready is None:
            return
        await fonts_ready()
        if not layer.is_current:
            return
        layer.apply_width_correction(self.measurer, self.epsilon)
