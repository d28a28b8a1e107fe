# tests/test_context_extractor.py
"""Tests for pedaru.services.context_extractor"""

import pytest

from conftest import FakeDocument
from pedaru.config.settings import ViewerSettings
from pedaru.services.context_extractor import (
    CONTEXT_LENGTH,
    ELLIPSIS,
    ContextExtractor,
    locate_selection,
    slice_context,
    split_page_context,
    stitch_pages,
)
from pedaru.services.page_text_cache import PageTextCache


def _filler(word: str, length: int) -> str:
    """Text of exactly `length` characters built from a repeated word."""
    return ((word + " ") * (length // len(word) + 1))[:length]


def _extractor(*pages: str, settings=None) -> tuple[ContextExtractor, FakeDocument]:
    document = FakeDocument.from_texts(*[[text] for text in pages])
    return ContextExtractor(PageTextCache(document), settings), document


class TestStitchPages:

    def test_three_pages(self):
        stitched = stitch_pages("prev", "cur", "next")
        assert stitched.text == "prev cur next"
        assert stitched.prev_page_length == 5
        assert stitched.text[stitched.prev_page_length:stitched.current_page_end] == "cur"

    def test_first_page_has_no_leading_separator(self):
        stitched = stitch_pages("", "cur", "next")
        assert stitched.text == "cur next"
        assert stitched.prev_page_length == 0

    def test_last_page(self):
        assert stitch_pages("prev", "cur", "").text == "prev cur"


class TestLocateSelection:

    def test_exact_hint(self):
        stitched = stitch_pages("aaaa", "xx TARGET yy", "")
        assert locate_selection(stitched, "TARGET", 3) == 8

    @pytest.mark.parametrize("error", [-20, -13, -7, -1, 1, 5, 13, 20])
    def test_hint_off_by_up_to_twenty(self, error):
        current = _filler("lorem", 100) + "TARGET" + _filler("ipsum", 100)
        stitched = stitch_pages(_filler("prev", 50), current, "")
        true_index = stitched.prev_page_length + 100
        assert locate_selection(stitched, "TARGET", 100 + error) == true_index

    def test_configured_deltas_tried_first(self):
        # Occurrences at +2 and -1; -1 comes first in the delta order
        stitched = stitch_pages("", "ab ab ab", "")
        assert locate_selection(stitched, "ab", 4, (0, -1, 1, -2, 2)) == 3

    def test_miss_falls_back_to_clamped_estimate(self):
        stitched = stitch_pages("", "short text", "")
        assert locate_selection(stitched, "absent", 4) == 4
        assert locate_selection(stitched, "absent", 500) == len("short text") - 1

    def test_no_hint_prefers_current_page(self):
        stitched = stitch_pages("TARGET on prev", "and TARGET here", "")
        assert locate_selection(stitched, "TARGET", -1) == stitched.prev_page_length + 4

    def test_no_hint_falls_back_to_whole_text(self):
        stitched = stitch_pages("prev", "cur", "TARGET next")
        assert locate_selection(stitched, "TARGET", -1) == stitched.text.index("TARGET")

    def test_not_found(self):
        assert locate_selection(stitch_pages("a", "b", "c"), "zzz", -1) is None


class TestSliceContext:

    def test_ellipsis_only_when_truncated(self):
        window = slice_context("0123456789", 4, 2, context_length=3)
        assert window.context_before == "...123"
        assert window.context_after == "678..."

    def test_reaches_both_boundaries(self):
        window = slice_context("0123456789", 4, 2, context_length=10)
        assert window.context_before == "0123"
        assert window.context_after == "6789"


class TestSplitPageContext:

    def test_halves(self):
        window = split_page_context("abcdefghij")
        assert window.context_before == "...abcde"
        assert window.context_after == "fghij..."

    def test_halves_capped_at_context_length(self):
        page = "x" * 5000
        window = split_page_context(page)
        assert window.context_before == ELLIPSIS + "x" * CONTEXT_LENGTH
        assert window.context_after == "x" * CONTEXT_LENGTH + ELLIPSIS

    def test_single_character_page(self):
        window = split_page_context("a")
        assert window.context_before == ELLIPSIS
        assert window.context_after == ELLIPSIS


class TestExtractContext:

    @pytest.mark.asyncio
    async def test_context_symmetry(self):
        before = _filler("alpha", 800)
        after = _filler("omega", 800)
        extractor, _ = _extractor("first page", before + "TARGET" + after, "last page")

        window = await extractor.extract_context("TARGET", 2, len(before))

        assert window.context_before.startswith(ELLIPSIS)
        assert window.context_after.endswith(ELLIPSIS)
        body_before = window.context_before[len(ELLIPSIS):]
        body_after = window.context_after[:-len(ELLIPSIS)]
        assert len(body_before) == 500
        assert len(body_after) == 500
        assert body_before == before[-500:]
        assert body_after == after[:500]
        assert "TARGET" not in window.context_before
        assert "TARGET" not in window.context_after

    @pytest.mark.asyncio
    async def test_first_page_boundary(self):
        page_one = "Short opening. TARGET and then some more words."
        extractor, document = _extractor(page_one, "Page two text.")

        window = await extractor.extract_context("TARGET", 1, page_one.index("TARGET"))

        assert window.context_before == "Short opening. "
        assert not window.context_before.startswith(ELLIPSIS)
        assert window.context_after == " and then some more words. Page two text."
        # No library call for the nonexistent page 0
        requested = [call.args[0] for call in document.get_page.await_args_list]
        assert 0 not in requested

    @pytest.mark.asyncio
    async def test_context_crosses_into_previous_page(self):
        extractor, _ = _extractor("end of page one.", "TARGET starts page two.")
        window = await extractor.extract_context("TARGET", 2, 0)
        assert window.context_before == "end of page one. "

    @pytest.mark.asyncio
    async def test_tolerant_search_uses_true_location(self):
        before = _filler("lorem", 300)
        page = before + "needle" + " " + _filler("ipsum", 300)
        extractor, _ = _extractor(page)

        exact = await extractor.extract_context("needle", 1, len(before))
        hinted = await extractor.extract_context("needle", 1, len(before) + 17)

        assert hinted == exact

    @pytest.mark.asyncio
    async def test_without_hint(self):
        extractor, _ = _extractor("prev has needle too", "current needle here", "next")
        window = await extractor.extract_context("needle", 2, -1)
        assert window.context_before == "prev has needle too current "
        assert window.context_after == " here next"

    @pytest.mark.asyncio
    async def test_missing_selection_degrades_to_page_halves(self):
        extractor, _ = _extractor("one", "abcdefghij", "three")
        window = await extractor.extract_context("vanished text", 2, -1)
        assert window.context_before == "...abcde"
        assert window.context_after == "fghij..."

    @pytest.mark.asyncio
    async def test_destroyed_document_never_raises(self):
        extractor, document = _extractor("page")
        document.destroy()
        window = await extractor.extract_context("page", 1, 0)
        assert window.context_before == ""
        assert window.context_after == ""

    @pytest.mark.asyncio
    async def test_settings_override_constants(self):
        settings = ViewerSettings(context_length=5, ellipsis="…")
        extractor, _ = _extractor("0123456789TARGET0123456789", settings=settings)
        window = await extractor.extract_context("TARGET", 1, 10)
        assert window.context_before == "…56789"
        assert window.context_after == "01234…"
