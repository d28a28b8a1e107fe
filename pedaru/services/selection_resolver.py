# pedaru/services/selection_resolver.py
"""
Maps a selection anchor in the overlay to a character offset in page text.

The offset is computed from the overlay spans alone: every span before the
anchor span contributes its length plus one separator, matching the page
text cache's single-space join.
"""

import logging
from typing import Optional

from pedaru.models.types import SelectionAnchor, SelectionInfo
from pedaru.processors.text_layer import TextLayer
from pedaru.services.exceptions import UnresolvableSelectionError

# Module logger
logger = logging.getLogger(__name__)


class OverlayRegistry:
    """
    Page number -> the page's current TextLayer.

    Stands in for the container lookup a selection anchor needs: given the
    page an anchor belongs to, find the overlay that owns its spans.
    """

    def __init__(self):
        self._layers: dict[int, TextLayer] = {}

    def register(self, layer: TextLayer) -> None:
        self._layers[layer.page_number] = layer

    def get(self, page_number: int) -> Optional[TextLayer]:
        layer = self._layers.get(page_number)
        if layer is not None and not layer.is_current:
            return None
        return layer

    def discard(self, page_number: int, layer: Optional[TextLayer] = None) -> None:
        """Remove a page's overlay (only if it is still `layer`, when given)."""
        current = self._layers.get(page_number)
        if current is None:
            return
        if layer is not None and current is not layer:
            return
        del self._layers[page_number]

    def clear(self) -> None:
        self._layers.clear()

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, page_number: int) -> bool:
        return self.get(page_number) is not None


def compute_span_offset(layer: TextLayer, span_ordinal: int, offset_within_span: int) -> int:
    """
    Character offset of a position inside a span, in the page's joined text.

    Raises:
        UnresolvableSelectionError: If the span ordinal is not in the layer
    """
    if layer.span(span_ordinal) is None:
        raise UnresolvableSelectionError(
            f"Span {span_ordinal} not found on page {layer.page_number}"
        )
    offset = 0
    for span in layer.sorted_spans():
        if span.index >= span_ordinal:
            break
        offset += span.text_length + 1
    return offset + offset_within_span


def resolve_selection(
    anchor: Optional[SelectionAnchor],
    registry: OverlayRegistry,
) -> Optional[SelectionInfo]:
    """
    Resolve a selection anchor to (offset, page number).

    Returns None when the selection cannot be traced to a span: no anchor,
    an anchor outside any span (negative ordinal), no overlay registered for
    the page, or an ordinal the overlay does not contain.
    """
    if anchor is None:
        return None
    if anchor.span_ordinal < 0:
        logger.debug("Selection anchor is not inside a span")
        return None

    layer = registry.get(anchor.page_number)
    if layer is None:
        logger.debug("No overlay registered for page %d", anchor.page_number)
        return None

    try:
        offset = compute_span_offset(layer, anchor.span_ordinal, anchor.offset_within_span)
    except UnresolvableSelectionError as e:
        logger.debug("Selection unresolvable: %s", e)
        return None
    return SelectionInfo(offset=offset, page_number=anchor.page_number)
