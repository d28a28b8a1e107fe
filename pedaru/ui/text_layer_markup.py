# pedaru/ui/text_layer_markup.py
"""
HTML markup for a page's text overlay.

Every span is absolutely positioned, transparent and pre-formatted so the
browser's native selection lines up with the rasterized page underneath.
Search matches are wrapped in <mark>; the focused one also gets the
"focused" class.
"""

import html
from typing import Optional

from pedaru.models.types import HighlightSegment, PositionedSpan
from pedaru.processors.text_layer import TextLayer

# Yellow wash behind search matches
MATCH_BACKGROUND = "rgba(255, 255, 0, 0.4)"
FOCUSED_MATCH_BACKGROUND = "rgba(255, 150, 0, 0.6)"


def _px(value: float) -> str:
    return f"{value:.3f}px"


def _segments_html(segments: list[HighlightSegment]) -> str:
    parts = []
    for segment in segments:
        text = html.escape(segment.text)
        if not segment.is_match:
            parts.append(text)
        elif segment.is_focused:
            parts.append(
                f'<mark class="highlight focused" style="background: {FOCUSED_MATCH_BACKGROUND}">{text}</mark>'
            )
        else:
            parts.append(f'<mark class="highlight" style="background: {MATCH_BACKGROUND}">{text}</mark>')
    return "".join(parts)


def render_span_html(span: PositionedSpan, segments: Optional[list[HighlightSegment]] = None) -> str:
    """Markup for one overlay span."""
    styles = [
        "position: absolute",
        f"left: {_px(span.origin_x)}",
        f"top: {_px(span.origin_y)}",
        f"font-size: {_px(span.font_size_px)}",
        "font-family: sans-serif",
        "color: transparent",
        "white-space: pre",
        "transform-origin: 0% 0%",
    ]
    transforms = []
    if span.rotation_radians != 0:
        transforms.append(f"rotate({span.rotation_radians:.6f}rad)")
    if span.width_correction_factor != 1.0:
        transforms.append(f"scaleX({span.width_correction_factor:.6f})")
    if transforms:
        styles.append(f"transform: {' '.join(transforms)}")

    content = _segments_html(segments) if segments is not None else html.escape(span.text)
    return f'<span data-text-index="{span.index}" style="{"; ".join(styles)}">{content}</span>'


def render_text_layer_html(
    layer: TextLayer,
    query: Optional[str] = None,
    focused_match_index: Optional[int] = None,
) -> str:
    """
    Markup for a whole page overlay.

    Args:
        layer: Laid out overlay of one page
        query: Search query to highlight (None/empty = no highlighting)
        focused_match_index: Page-wide ordinal of the focused match

    Returns:
        A <div class="text-layer"> containing one <span> per overlay span
    """
    spans = layer.sorted_spans()
    if query:
        highlighted = layer.highlight(query, focused_match_index)
    else:
        highlighted = [None] * len(spans)

    container_style = "; ".join([
        "position: absolute",
        "left: 0",
        "top: 0",
        f"width: {_px(layer.viewport.width)}",
        f"height: {_px(layer.viewport.height)}",
        "overflow: hidden",
        "line-height: 1.0",
    ])
    body = "".join(render_span_html(span, segments) for span, segments in zip(spans, highlighted))
    return (
        f'<div class="text-layer" data-page-number="{layer.page_number}" '
        f'style="{container_style}">{body}</div>'
    )
