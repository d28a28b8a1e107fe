# pedaru/services/search_service.py
"""
Full-text search across every page of the open document.

Searches run page by page over the cached page text, publish partial
results every few pages and can be superseded at any time: starting a new
search (or clearing) bumps the search id, and an outdated search stops at
its next page boundary without publishing anything.
"""

import asyncio
import logging
import re
from typing import Optional

from pedaru.config.settings import ViewerSettings
from pedaru.models.types import SearchListener, SearchResult
from pedaru.processors.text_layer import TextLayer
from pedaru.services.page_text_cache import PageTextCache

# Module logger
logger = logging.getLogger(__name__)

SEARCH_CONTEXT_LENGTH = 40
SEARCH_YIELD_EVERY_PAGES = 5


def find_matches(
    text: str,
    query: str,
    page: int,
    context_length: int = SEARCH_CONTEXT_LENGTH,
) -> list[SearchResult]:
    """
    Find every case-insensitive occurrence of query in one page's text.

    Overlapping occurrences are reported too: scanning resumes one character
    after each hit.
    """
    if not query:
        return []
    pattern = re.compile(re.escape(query), re.IGNORECASE)
    results = []
    search_from = 0
    while True:
        match = pattern.search(text, search_from)
        if match is None:
            break
        start, end = match.start(), match.end()
        results.append(SearchResult(
            page=page,
            match_index=len(results),
            context_before=text[max(0, start - context_length):start],
            match_text=text[start:end],
            context_after=text[end:min(len(text), end + context_length)],
            position=start,
        ))
        search_from = start + 1
    return results


class SearchService:
    """
    Incremental, cancellable full-text search with result navigation.
    """

    def __init__(self, cache: PageTextCache, settings: Optional[ViewerSettings] = None):
        self.cache = cache
        self.context_length = settings.search_context_length if settings else SEARCH_CONTEXT_LENGTH
        self.yield_every_pages = settings.search_yield_every_pages if settings else SEARCH_YIELD_EVERY_PAGES

        self._search_id = 0
        self._query = ""
        self._results: list[SearchResult] = []
        self._current_index = 0
        self._is_searching = False
        self._listeners: list[SearchListener] = []

    @property
    def query(self) -> str:
        return self._query

    @property
    def results(self) -> list[SearchResult]:
        return list(self._results)

    @property
    def is_searching(self) -> bool:
        return self._is_searching

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current(self) -> Optional[SearchResult]:
        if not self._results:
            return None
        return self._results[self._current_index]

    def add_listener(self, listener: SearchListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SearchListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, results: list[SearchResult]) -> None:
        self._results = results
        for listener in list(self._listeners):
            listener(list(results))

    def clear(self) -> None:
        """Cancel any running search and drop the results."""
        self._search_id += 1
        self._query = ""
        self._current_index = 0
        self._is_searching = False
        self._publish([])

    async def search(self, query: str) -> list[SearchResult]:
        """
        Search every page for query.

        Returns:
            All results, or [] if the query is blank or the search was
            superseded before it finished
        """
        self._search_id += 1
        search_id = self._search_id

        if not query.strip() or self.cache.document is None:
            self._query = ""
            self._current_index = 0
            self._is_searching = False
            self._publish([])
            return []

        self._query = query
        self._is_searching = True
        self._publish([])

        total_pages = self.cache.document.num_pages
        results: list[SearchResult] = []
        for page_number in range(1, total_pages + 1):
            if self._search_id != search_id:
                logger.debug("Search for %r superseded at page %d", query, page_number)
                return []

            text = await self.cache.get_page_text(page_number)
            results.extend(find_matches(text, query, page_number, self.context_length))

            if page_number % self.yield_every_pages == 0:
                if self._search_id == search_id:
                    self._publish(list(results))
                await asyncio.sleep(0)

        if self._search_id != search_id:
            return []

        self._current_index = 0
        self._is_searching = False
        self._publish(results)
        logger.debug("Search for %r: %d results in %d pages", query, len(results), total_pages)
        return list(results)

    def next(self) -> Optional[SearchResult]:
        """Move to the next result, wrapping after the last."""
        if not self._results:
            return None
        self._current_index = (self._current_index + 1) % len(self._results)
        return self._results[self._current_index]

    def previous(self) -> Optional[SearchResult]:
        """Move to the previous result, wrapping before the first."""
        if not self._results:
            return None
        self._current_index = (self._current_index - 1) % len(self._results)
        return self._results[self._current_index]

    def focused_match_on_page(self, layer: TextLayer) -> Optional[int]:
        """
        Overlay match ordinal of the current result on the layer's page.

        Hits are matched to overlay marks by their offset in the joined page
        text. Returns None if the current result is on another page or the
        overlay cannot mark it (it spans two runs or overlaps a previous hit).
        """
        current = self.current
        if current is None or current.page != layer.page_number:
            return None
        positions = layer.match_positions(self._query)
        if current.position not in positions:
            return None
        return positions.index(current.position)
