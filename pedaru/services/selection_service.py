# pedaru/services/selection_service.py
"""
Selection orchestration: capture, classify, resolve context.

A selection goes through
    IDLE -> CAPTURED (sync, context_loading=True) -> RESOLVED
or  IDLE -> CAPTURED -> DISCARDED
when a newer selection (or clear()) arrives before its context resolves.

The offset is resolved synchronously at capture time because the anchor is
only valid until the user's next interaction. Context extraction runs
afterwards as an asyncio task; every capture bumps a generation counter and
a finished task only applies its result if its generation is still current.
"""

import asyncio
import logging
import re
from typing import Optional

from pedaru.config.settings import ViewerSettings
from pedaru.models.types import (
    CapturedSelection,
    ScreenPoint,
    SelectionListener,
    SelectionPhase,
    TextSelection,
)
from pedaru.services.context_extractor import ContextExtractor
from pedaru.services.selection_resolver import OverlayRegistry, resolve_selection

# Module logger
logger = logging.getLogger(__name__)

POPUP_MARGIN = 10.0
WORD_MAX_LENGTH = 30

# Sentence-level punctuation (ASCII and full-width)
_SENTENCE_PUNCTUATION_PATTERN = re.compile(r'[.!?;:,。、！？；：，]')


def is_word_selection(text: str, max_length: int = WORD_MAX_LENGTH) -> bool:
    """
    Check if a selection is a single word rather than a phrase.

    A word has no space, is at most max_length characters and carries no
    sentence punctuation.
    """
    trimmed = text.strip()
    if ' ' in trimmed or len(trimmed) > max_length:
        return False
    return not _SENTENCE_PUNCTUATION_PATTERN.search(trimmed)


class SelectionOrchestrator:
    """
    Turns captured selections into TextSelection records for the popup.
    """

    def __init__(
        self,
        registry: OverlayRegistry,
        extractor: ContextExtractor,
        settings: Optional[ViewerSettings] = None,
    ):
        self.registry = registry
        self.extractor = extractor
        self.popup_margin = settings.popup_margin if settings else POPUP_MARGIN
        self.word_max_length = settings.word_max_length if settings else WORD_MAX_LENGTH
        self.explain_by_default = settings.explain_by_default if settings else False

        self._selection: Optional[TextSelection] = None
        self._phase = SelectionPhase.IDLE
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._listeners: list[SelectionListener] = []
        self.auto_explain = False

    # =========================================================================
    # State
    # =========================================================================
    @property
    def selection(self) -> Optional[TextSelection]:
        return self._selection

    @property
    def phase(self) -> SelectionPhase:
        return self._phase

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_task(self) -> Optional[asyncio.Task]:
        return self._pending

    def add_listener(self, listener: SelectionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SelectionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._selection)

    def is_word_selection(self, text: str) -> bool:
        return is_word_selection(text, self.word_max_length)

    # =========================================================================
    # Lifecycle
    # =========================================================================
    def capture(
        self,
        raw: CapturedSelection,
        fallback_page: int = 1,
        with_explanation: Optional[bool] = None,
    ) -> Optional[TextSelection]:
        """
        Capture a selection and schedule its context resolution.

        Must be called from a running event loop.

        Args:
            raw: Selection as reported by the input layer
            fallback_page: Page used when the anchor does not name one
            with_explanation: Request an explanation alongside the translation
                              (None = settings default)

        Returns:
            The new TextSelection (context still loading), or None if the
            selection is empty, collapsed or not inside the overlay
        """
        if raw.is_collapsed:
            return None
        text = raw.text.strip()
        if not text:
            return None
        if raw.anchor is None:
            logger.debug("Selection outside the page overlay, no popup")
            return None

        info = resolve_selection(raw.anchor, self.registry)
        offset = info.offset if info is not None else -1
        page_number = info.page_number if info is not None else (raw.anchor.page_number or fallback_page)

        rect = raw.bounding_rect
        selection = TextSelection(
            selected_text=text,
            is_word=self.is_word_selection(text),
            screen_position=ScreenPoint(rect.right + self.popup_margin, rect.top),
            page_number=page_number,
            context_loading=True,
        )

        self._generation += 1
        generation = self._generation
        self._selection = selection
        self._phase = SelectionPhase.CAPTURED
        self.auto_explain = self.explain_by_default if with_explanation is None else with_explanation
        logger.debug("Captured %s on page %d (offset %d): %s",
                     "word" if selection.is_word else "phrase", page_number, offset, selection.preview)
        self._notify()

        self._pending = asyncio.get_running_loop().create_task(
            self.resolve(selection, generation, offset)
        )
        return selection

    async def resolve(self, selection: TextSelection, generation: int, offset: int) -> bool:
        """
        Fill in the context of a captured selection.

        Returns:
            True if applied, False if the selection was superseded meanwhile
        """
        window = await self.extractor.extract_context(
            selection.selected_text,
            selection.page_number,
            offset,
        )
        if generation != self._generation:
            logger.debug("Dropping context of superseded selection: %s", selection.preview)
            return False

        selection.context_before = window.context_before
        selection.context_after = window.context_after
        selection.context_loading = False
        self._phase = SelectionPhase.RESOLVED
        self._notify()
        return True

    async def trigger(
        self,
        raw: CapturedSelection,
        with_explanation: bool = False,
        fallback_page: int = 1,
    ) -> Optional[TextSelection]:
        """
        Capture a selection and wait for its context.

        Used by the translate/explain commands. Returns the selection (which
        may have been superseded while waiting), or None if nothing was
        captured.
        """
        selection = self.capture(raw, fallback_page, with_explanation)
        if selection is None:
            return None
        await self._pending
        return selection

    def clear(self) -> None:
        """Discard the current selection; in-flight resolution is dropped."""
        self._generation += 1
        if self._phase == SelectionPhase.CAPTURED:
            self._phase = SelectionPhase.DISCARDED
        else:
            self._phase = SelectionPhase.IDLE
        self._selection = None
        self.auto_explain = False
        self._notify()
