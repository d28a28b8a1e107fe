# tests/test_search_service.py
"""Tests for pedaru.services.search_service"""

import asyncio

import pytest

from conftest import LETTER, FakeDocument, make_run
from pedaru.config.settings import ViewerSettings
from pedaru.processors.geometry import create_viewport
from pedaru.processors.text_layer import TextLayer, layout_glyph_runs
from pedaru.services.page_text_cache import PageTextCache
from pedaru.services.search_service import SearchService, find_matches


def _service(*page_texts, settings=None):
    document = FakeDocument.from_texts(*[[text] for text in page_texts])
    return SearchService(PageTextCache(document), settings)


def _layer(page_number, texts):
    viewport = create_viewport(LETTER, 1.0)
    return TextLayer(page_number, viewport, layout_glyph_runs([make_run(t) for t in texts], viewport))


class TestFindMatches:

    def test_case_insensitive(self):
        results = find_matches("Apple apple APPLE", "apple", page=3)
        assert [r.match_text for r in results] == ["Apple", "apple", "APPLE"]
        assert [r.match_index for r in results] == [0, 1, 2]
        assert all(r.page == 3 for r in results)

    def test_overlapping_occurrences(self):
        results = find_matches("aaaa", "aa", page=1)
        assert len(results) == 3

    def test_context_is_capped(self):
        text = "x" * 100 + "needle" + "y" * 100
        [result] = find_matches(text, "needle", page=1)
        assert result.context_before == "x" * 40
        assert result.context_after == "y" * 40

    def test_context_at_page_edges(self):
        [result] = find_matches("needle in text", "needle", page=1, context_length=5)
        assert result.context_before == ""
        assert result.context_after == " in t"

    def test_regex_characters_are_literal(self):
        assert len(find_matches("cost (USD) is $5.00", "(usd)", page=1)) == 1
        assert find_matches("abc", "a.c", page=1) == []

    def test_empty_query(self):
        assert find_matches("text", "", page=1) == []


class TestSearchService:

    @pytest.mark.asyncio
    async def test_results_in_page_order(self):
        service = _service("one fox", "no match", "fox and fox")

        results = await service.search("fox")

        assert [(r.page, r.match_index) for r in results] == [(1, 0), (3, 0), (3, 1)]
        assert service.results == results
        assert service.query == "fox"
        assert service.is_searching is False
        assert service.current == results[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_blank_query(self, query):
        service = _service("text")
        assert await service.search(query) == []
        assert service.results == []
        assert service.current is None

    @pytest.mark.asyncio
    async def test_no_document(self):
        service = SearchService(PageTextCache())
        assert await service.search("anything") == []

    @pytest.mark.asyncio
    async def test_partial_results_every_five_pages(self):
        service = _service(*["hit"] * 12)
        published = []
        service.add_listener(lambda results: published.append(len(results)))

        await service.search("hit")

        assert published == [0, 5, 10, 12]

    @pytest.mark.asyncio
    async def test_newer_search_supersedes(self):
        service = _service(*["alpha beta"] * 6)

        first = asyncio.create_task(service.search("alpha"))
        await asyncio.sleep(0)
        second = await service.search("beta")

        assert await first == []
        assert len(second) == 6
        assert all(r.match_text == "beta" for r in service.results)
        assert service.query == "beta"

    @pytest.mark.asyncio
    async def test_clear_stops_running_search(self):
        service = _service(*["hit"] * 10)
        published = []

        def on_results(results):
            published.append(len(results))
            if results:
                service.clear()

        service.add_listener(on_results)
        assert await service.search("hit") == []
        assert service.results == []
        assert service.query == ""
        assert published == [0, 5, 0]

    @pytest.mark.asyncio
    async def test_settings(self):
        settings = ViewerSettings(search_context_length=3, search_yield_every_pages=1)
        service = _service("abc needle def", "needle", settings=settings)
        published = []
        service.add_listener(lambda results: published.append(len(results)))

        results = await service.search("needle")

        assert results[0].context_before == "bc "
        assert published == [0, 1, 2, 2]


class TestNavigation:

    @pytest.mark.asyncio
    async def test_next_and_previous_wrap(self):
        service = _service("fox", "fox fox")
        await service.search("fox")

        assert service.current_index == 0
        assert service.next().page == 2
        assert service.next().match_index == 1
        assert service.next() == service.results[0]
        assert service.previous() == service.results[2]
        assert service.current_index == 2

    def test_navigation_without_results(self):
        service = _service("text")
        assert service.next() is None
        assert service.previous() is None


class TestFocusedMatchOnPage:

    @pytest.mark.asyncio
    async def test_current_result_maps_to_overlay_ordinal(self):
        service = _service("fox", "fox fox")
        await service.search("fox")
        service.next()
        service.next()

        assert service.focused_match_on_page(_layer(2, ["fox fox"])) == 1
        assert service.focused_match_on_page(_layer(1, ["fox"])) is None

    @pytest.mark.asyncio
    async def test_hit_across_runs_is_not_focused(self):
        texts = ["tea", "bag a b"]
        service = SearchService(PageTextCache(FakeDocument.from_texts(texts)))
        layer = _layer(1, texts)

        results = await service.search("a b")

        # "te|a b" crosses the run boundary, "a b" in "bag a b" does not
        assert [r.position for r in results] == [2, 8]
        assert service.focused_match_on_page(layer) is None

        service.next()
        focused = service.focused_match_on_page(layer)
        assert focused == 0
        segments = layer.highlight(service.query, focused)[1]
        assert [s.text for s in segments if s.is_focused] == ["a b"]
        assert segments[0].text == "bag "

    @pytest.mark.asyncio
    async def test_overlapping_hit_is_not_focused(self):
        service = _service("aaa")
        layer = _layer(1, ["aaa"])
        await service.search("aa")

        assert len(service.results) == 2
        assert service.focused_match_on_page(layer) == 0
        service.next()
        assert service.focused_match_on_page(layer) is None

    def test_no_results(self):
        service = _service("text")
        assert service.focused_match_on_page(_layer(1, ["text"])) is None
