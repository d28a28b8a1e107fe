# pedaru/services/context_extractor.py
"""
Context window extraction around a selection.

The text of the selection's page and its two neighbours is stitched
together so a context window can cross page boundaries. The selection is
then located in the stitched text, preferring the resolver's offset hint:

1. Hint given: try a few small deltas around the estimate, then the rest of
   the offsets within the same radius, and accept the first exact match.
   Otherwise use the clamped estimate as-is.
2. No hint: search the current page's region, then the whole stitched text.
3. Not found at all: split the current page in half and return both halves.

Located selections get up to `context_length` characters on each side, with
an ellipsis where the slice stops short of the stitched text's boundary.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from pedaru.config.settings import DEFAULT_SEARCH_DELTAS, ViewerSettings
from pedaru.models.types import ContextWindow
from pedaru.services.page_text_cache import PAGE_TEXT_SEPARATOR, PageTextCache

# Module logger
logger = logging.getLogger(__name__)

CONTEXT_LENGTH = 500
SEARCH_DELTAS = DEFAULT_SEARCH_DELTAS
ELLIPSIS = "..."


@dataclass(frozen=True)
class StitchedText:
    """Previous, current and next page text joined into one string."""
    text: str
    prev_page_length: int            # Offset of the current page within text
    current_page_text: str

    @property
    def current_page_end(self) -> int:
        return self.prev_page_length + len(self.current_page_text)


def stitch_pages(prev_text: str, current_text: str, next_text: str) -> StitchedText:
    """
    Join the three page texts with single separators.

    Empty pages (document boundaries) contribute neither text nor separator,
    so on the first page the stitched text starts at the page's first
    character.
    """
    text = PAGE_TEXT_SEPARATOR.join(part for part in (prev_text, current_text, next_text) if part)
    prev_page_length = len(prev_text) + (len(PAGE_TEXT_SEPARATOR) if prev_text else 0)
    return StitchedText(text=text, prev_page_length=prev_page_length, current_page_text=current_text)


def _candidate_deltas(search_deltas: Sequence[int]) -> list[int]:
    """
    Configured deltas in order, then every other offset within the same
    radius, nearest first.
    """
    ordered = list(dict.fromkeys(search_deltas))
    radius = max((abs(d) for d in ordered), default=0)
    seen = set(ordered)
    for distance in range(1, radius + 1):
        for delta in (-distance, distance):
            if delta not in seen:
                ordered.append(delta)
                seen.add(delta)
    return ordered


def locate_selection(
    stitched: StitchedText,
    selected_text: str,
    offset_hint: int,
    search_deltas: Sequence[int] = SEARCH_DELTAS,
) -> Optional[int]:
    """
    Find the index of the selection in the stitched text.

    Args:
        stitched: Stitched page texts
        selected_text: Text the user selected
        offset_hint: Offset within the current page (< 0 if unknown)
        search_deltas: Offsets tried around the estimate, in order

    Returns:
        Index into stitched.text, or None if the text was not found
    """
    text = stitched.text
    length = len(selected_text)

    if offset_hint >= 0:
        estimate = stitched.prev_page_length + offset_hint
        for delta in _candidate_deltas(search_deltas):
            candidate = estimate + delta
            if candidate < 0 or candidate + length > len(text):
                continue
            if text[candidate:candidate + length] == selected_text:
                if delta:
                    logger.debug("Selection found %+d chars from the estimate", delta)
                return candidate
        # Approximate position beats no context at all
        logger.debug("Selection not at estimate %d, using it anyway", estimate)
        return max(0, min(estimate, len(text) - 1))

    region_end = stitched.current_page_end + (1 if stitched.current_page_text else 0)
    region = text[stitched.prev_page_length:region_end]
    index = region.find(selected_text)
    if index >= 0:
        return stitched.prev_page_length + index

    index = text.find(selected_text)
    if index >= 0:
        logger.debug("Selection found outside the current page region")
        return index
    return None


def slice_context(
    text: str,
    index: int,
    selection_length: int,
    context_length: int = CONTEXT_LENGTH,
    ellipsis: str = ELLIPSIS,
) -> ContextWindow:
    """Cut the context on both sides of a located selection."""
    before_start = max(0, index - context_length)
    context_before = text[before_start:index]
    if before_start > 0:
        context_before = ellipsis + context_before

    after_start = index + selection_length
    after_end = min(len(text), after_start + context_length)
    context_after = text[after_start:after_end]
    if after_end < len(text):
        context_after = context_after + ellipsis

    return ContextWindow(context_before=context_before, context_after=context_after)


def split_page_context(
    page_text: str,
    context_length: int = CONTEXT_LENGTH,
    ellipsis: str = ELLIPSIS,
) -> ContextWindow:
    """Synthetic context from both halves of a page when the selection is lost."""
    half = min(context_length, len(page_text) // 2)
    return ContextWindow(
        context_before=ellipsis + page_text[:half],
        context_after=page_text[len(page_text) - half:] + ellipsis,
    )


class ContextExtractor:
    """
    Builds the context window of a selection from cached page text.
    """

    def __init__(self, cache: PageTextCache, settings: Optional[ViewerSettings] = None):
        self.cache = cache
        if settings is not None:
            self.context_length = settings.context_length
            self.search_deltas = tuple(settings.search_deltas)
            self.ellipsis = settings.ellipsis
        else:
            self.context_length = CONTEXT_LENGTH
            self.search_deltas = SEARCH_DELTAS
            self.ellipsis = ELLIPSIS

    async def stitch(self, page_number: int) -> StitchedText:
        prev_text, current_text, next_text = await asyncio.gather(
            self.cache.get_page_text(page_number - 1),
            self.cache.get_page_text(page_number),
            self.cache.get_page_text(page_number + 1),
        )
        return stitch_pages(prev_text, current_text, next_text)

    async def extract_context(
        self,
        selected_text: str,
        page_number: int,
        offset_hint: int = -1,
    ) -> ContextWindow:
        """
        Get the text before and after a selection.

        Args:
            selected_text: Selected text (already trimmed)
            page_number: 1-based page the selection started on
            offset_hint: Resolver offset within the page, or -1 if unknown

        Returns:
            ContextWindow; never raises for a missing or moved selection
        """
        stitched = await self.stitch(page_number)
        index = locate_selection(stitched, selected_text, offset_hint, self.search_deltas)

        if index is None:
            logger.debug("Selection not found on page %d, using page halves", page_number)
            return split_page_context(stitched.current_page_text, self.context_length, self.ellipsis)

        return slice_context(
            stitched.text,
            index,
            len(selected_text),
            self.context_length,
            self.ellipsis,
        )
