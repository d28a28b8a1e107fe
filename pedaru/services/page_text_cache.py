# pedaru/services/page_text_cache.py
"""
Per-document cache of joined page text.

Each page's text is the concatenation of its non-empty glyph runs in
extraction order, joined with exactly one space. The same join is assumed
by the selection resolver, so span offsets and cached text line up.
"""

import logging
from typing import Optional

from pedaru.services.exceptions import StaleHandleError

# Module logger
logger = logging.getLogger(__name__)

# Separator between glyph runs in the joined page text
PAGE_TEXT_SEPARATOR = " "


def join_glyph_runs(runs) -> str:
    """Join the text of non-empty runs with a single space."""
    return PAGE_TEXT_SEPARATOR.join(run.text for run in runs if run.text)


class PageTextCache:
    """
    Page number -> joined page text, scoped to one open document.

    Entries are populated lazily and never partially invalidated: attaching
    a new document (or calling invalidate()) drops everything.

    Only touched from the event loop, so no lock is held.
    """

    def __init__(self, document=None):
        self._document = document
        self._cache: dict[int, str] = {}
        self._hits = 0
        self._misses = 0

    @property
    def document(self):
        return self._document

    def attach(self, document) -> None:
        """Switch to another document; every cached page is dropped."""
        self._document = document
        self.invalidate()

    def invalidate(self) -> None:
        """Drop every cached page and reset statistics."""
        self._cache.clear()
        self._hits = 0
        self._misses = 0
        logger.debug("Page text cache cleared")

    def peek(self, page_number: int) -> Optional[str]:
        """Cached text of a page without touching the document."""
        return self._cache.get(page_number)

    def _is_live(self) -> bool:
        return self._document is not None and not self._document.destroyed

    async def get_page_text(self, page_number: int) -> str:
        """
        Get the joined text of one page (1-based).

        Returns:
            Page text, or "" if the page is out of range, no document is
            attached, or the document was destroyed or failed mid-read.
            Failures are not cached.
        """
        cached = self._cache.get(page_number)
        if cached is not None:
            self._hits += 1
            return cached

        document = self._document
        if not self._is_live():
            return ""
        if not 1 <= page_number <= document.num_pages:
            return ""

        self._misses += 1
        try:
            page = await document.get_page(page_number)
            if document.destroyed:
                return ""
            runs = await page.get_text_content()
        except StaleHandleError:
            logger.debug("Document destroyed while reading page %d", page_number)
            return ""
        except Exception as e:  # library errors are not typed
            logger.warning("Failed to read text of page %d: %s", page_number, e)
            return ""

        # A newer document may have been attached while awaiting
        if document is not self._document or document.destroyed:
            return ""

        text = join_glyph_runs(runs)
        self._cache[page_number] = text
        return text

    @property
    def stats(self) -> dict:
        """Get cache statistics."""
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0.0
        return {
            "size": len(self._cache),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{hit_rate:.1f}%",
        }
