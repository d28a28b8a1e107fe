# tests/test_selection_service.py
"""Tests for pedaru.services.selection_service"""

import pytest

from conftest import FakeDocument, make_run
from pedaru.config.settings import ViewerSettings
from pedaru.models.types import (
    CapturedSelection,
    ScreenPoint,
    SelectionAnchor,
    SelectionPhase,
    SelectionRect,
)
from pedaru.processors.geometry import create_viewport
from pedaru.processors.text_layer import TextLayer, layout_glyph_runs
from pedaru.services.context_extractor import ContextExtractor
from pedaru.services.page_text_cache import PageTextCache
from pedaru.services.selection_resolver import OverlayRegistry
from pedaru.services.selection_service import SelectionOrchestrator, is_word_selection

RECT = SelectionRect(left=100.0, top=200.0, right=180.0, bottom=215.0)


def _orchestrator(*pages, settings=None):
    """Orchestrator over a fake document with overlays registered for every page."""
    document = FakeDocument.from_texts(*pages)
    registry = OverlayRegistry()
    for number, texts in enumerate(pages, start=1):
        viewport = create_viewport((0.0, 0.0, 612.0, 792.0), 1.0)
        spans = layout_glyph_runs([make_run(t) for t in texts], viewport)
        registry.register(TextLayer(number, viewport, spans))
    extractor = ContextExtractor(PageTextCache(document), settings)
    return SelectionOrchestrator(registry, extractor, settings)


def _raw(text, page=1, ordinal=0, offset=0, collapsed=False):
    anchor = SelectionAnchor(page, ordinal, offset)
    return CapturedSelection(text=text, anchor=anchor, bounding_rect=RECT, is_collapsed=collapsed)


class TestIsWordSelection:

    @pytest.mark.parametrize("text", ["hello", "  hello  ", "naïve", "翻訳"])
    def test_words(self, text):
        assert is_word_selection(text) is True

    @pytest.mark.parametrize("text", [
        "hello world",
        "well.",
        "what?",
        "x" * 31,
        "終わり。",
        "はい、",
    ])
    def test_phrases(self, text):
        assert is_word_selection(text) is False

    def test_length_boundary(self):
        assert is_word_selection("x" * 30) is True
        assert is_word_selection("x" * 10, max_length=5) is False


class TestCapture:

    @pytest.mark.asyncio
    async def test_creates_loading_selection_at_popup_position(self):
        orchestrator = _orchestrator(["Hello", "world"])

        selection = orchestrator.capture(_raw("world", ordinal=1))

        assert selection.selected_text == "world"
        assert selection.is_word is True
        assert selection.context_loading is True
        assert selection.screen_position == ScreenPoint(190.0, 200.0)
        assert selection.page_number == 1
        assert orchestrator.phase == SelectionPhase.CAPTURED
        await orchestrator.pending_task

    @pytest.mark.asyncio
    async def test_context_resolves(self):
        orchestrator = _orchestrator(["Hello", "world"])

        selection = orchestrator.capture(_raw("world", ordinal=1))
        applied = await orchestrator.pending_task

        assert applied is True
        assert selection.context_loading is False
        assert selection.context_before == "Hello "
        assert selection.context_after == ""
        assert orchestrator.phase == SelectionPhase.RESOLVED
        assert orchestrator.selection is selection

    @pytest.mark.asyncio
    async def test_text_is_trimmed(self):
        orchestrator = _orchestrator(["Hello world"])
        selection = orchestrator.capture(_raw("  world \n", offset=6))
        await orchestrator.pending_task
        assert selection.selected_text == "world"
        assert selection.context_before == "Hello "

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [
        CapturedSelection("", SelectionAnchor(1, 0, 0), RECT),
        CapturedSelection("   \n ", SelectionAnchor(1, 0, 0), RECT),
        CapturedSelection("Hello", SelectionAnchor(1, 0, 0), RECT, is_collapsed=True),
        CapturedSelection("Hello", None, RECT),
    ])
    async def test_nothing_captured(self, raw):
        orchestrator = _orchestrator(["Hello"])
        assert orchestrator.capture(raw) is None
        assert orchestrator.selection is None
        assert orchestrator.phase == SelectionPhase.IDLE
        assert orchestrator.pending_task is None

    @pytest.mark.asyncio
    async def test_anchor_outside_spans_still_gets_context(self):
        orchestrator = _orchestrator(["first page"], ["Hello", "world"])

        selection = orchestrator.capture(_raw("world", page=2, ordinal=-1))
        await orchestrator.pending_task

        assert selection.page_number == 2
        assert selection.context_before == "first page Hello "

    @pytest.mark.asyncio
    async def test_phrase(self):
        orchestrator = _orchestrator(["Hello world"])
        selection = orchestrator.capture(_raw("Hello world"))
        await orchestrator.pending_task
        assert selection.is_word is False

    @pytest.mark.asyncio
    async def test_settings(self):
        settings = ViewerSettings(popup_margin=4.0, explain_by_default=True)
        orchestrator = _orchestrator(["Hello"], settings=settings)

        selection = orchestrator.capture(_raw("Hello"))
        await orchestrator.pending_task

        assert selection.screen_position == ScreenPoint(184.0, 200.0)
        assert orchestrator.auto_explain is True


class TestStaleResults:

    @pytest.mark.asyncio
    async def test_newer_capture_wins(self):
        orchestrator = _orchestrator(["alpha", "beta", "gamma"])

        first = orchestrator.capture(_raw("alpha"))
        first_task = orchestrator.pending_task
        second = orchestrator.capture(_raw("gamma", ordinal=2))

        assert await first_task is False
        assert await orchestrator.pending_task is True
        assert first.context_loading is True
        assert first.context_before == ""
        assert orchestrator.selection is second
        assert second.context_before == "alpha beta "

    @pytest.mark.asyncio
    async def test_clear_before_resolution_discards(self):
        orchestrator = _orchestrator(["alpha"])

        selection = orchestrator.capture(_raw("alpha"))
        task = orchestrator.pending_task
        orchestrator.clear()

        assert orchestrator.phase == SelectionPhase.DISCARDED
        assert await task is False
        assert orchestrator.selection is None
        assert selection.context_loading is True

    @pytest.mark.asyncio
    async def test_clear_after_resolution_goes_idle(self):
        orchestrator = _orchestrator(["alpha"])
        orchestrator.capture(_raw("alpha"))
        await orchestrator.pending_task

        orchestrator.clear()

        assert orchestrator.phase == SelectionPhase.IDLE
        assert orchestrator.selection is None

    @pytest.mark.asyncio
    async def test_generation_increments(self):
        orchestrator = _orchestrator(["alpha"])
        start = orchestrator.generation
        orchestrator.capture(_raw("alpha"))
        orchestrator.clear()
        assert orchestrator.generation == start + 2


class TestListenersAndTrigger:

    @pytest.mark.asyncio
    async def test_listener_sees_capture_and_resolution(self):
        orchestrator = _orchestrator(["Hello", "world"])
        seen = []
        orchestrator.add_listener(lambda s: seen.append(None if s is None else s.context_loading))

        orchestrator.capture(_raw("world", ordinal=1))
        await orchestrator.pending_task
        orchestrator.clear()

        assert seen == [True, False, None]

    @pytest.mark.asyncio
    async def test_removed_listener_is_not_called(self):
        orchestrator = _orchestrator(["Hello"])
        seen = []
        listener = seen.append
        orchestrator.add_listener(listener)
        orchestrator.remove_listener(listener)
        orchestrator.remove_listener(listener)

        orchestrator.capture(_raw("Hello"))
        await orchestrator.pending_task

        assert seen == []

    @pytest.mark.asyncio
    async def test_trigger_waits_for_context(self):
        orchestrator = _orchestrator(["Hello", "world"])

        selection = await orchestrator.trigger(_raw("world", ordinal=1), with_explanation=True)

        assert selection.context_loading is False
        assert selection.context_before == "Hello "
        assert orchestrator.auto_explain is True

    @pytest.mark.asyncio
    async def test_trigger_without_selection(self):
        orchestrator = _orchestrator(["Hello"])
        assert await orchestrator.trigger(_raw("Hello", collapsed=True)) is None
        assert orchestrator.auto_explain is False
