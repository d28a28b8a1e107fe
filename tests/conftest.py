from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import AsyncMock


# Ensure the project root is importable when running `pytest` via its entrypoint
# (e.g., `uv run --extra test pytest`), where `sys.path[0]` may not be the repo root.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from pedaru.models.types import GlyphRun  # noqa: E402
from pedaru.processors.geometry import create_viewport  # noqa: E402
from pedaru.services.exceptions import StaleHandleError  # noqa: E402

LETTER = (0.0, 0.0, 612.0, 792.0)


def make_run(
    text: str,
    x: float = 72.0,
    y: float = 700.0,
    size: float = 10.0,
    width: float | None = None,
    font_name: str = "Helvetica",
) -> GlyphRun:
    """Horizontal glyph run at (x, y) in PDF user space."""
    return GlyphRun(
        text=text,
        transform=(size, 0.0, 0.0, size, x, y),
        width=width if width is not None else len(text) * size * 0.5,
        height=size,
        font_name=font_name,
    )


class FakePage:
    """Page handle whose get_text_content is an AsyncMock (call counting)."""

    def __init__(self, document: "FakeDocument", page_number: int, runs: list[GlyphRun],
                 view_box=LETTER, rotation: int = 0):
        self._document = document
        self.page_number = page_number
        self.runs = runs
        self.view_box = view_box
        self.rotation = rotation
        self.get_text_content = AsyncMock(side_effect=self._text_content)

    @property
    def destroyed(self) -> bool:
        return self._document.destroyed

    def get_viewport(self, scale: float):
        return create_viewport(self.view_box, scale, self.rotation)

    def _text_content(self):
        if self._document.destroyed:
            raise StaleHandleError("destroyed")
        if self._document.fail_pages and self.page_number in self._document.fail_pages:
            raise RuntimeError("library failure")
        return list(self.runs)


class FakeDocument:
    """Document handle built from per-page run lists."""

    def __init__(self, pages: list[list[GlyphRun]]):
        self._destroyed = False
        self.fail_pages: set[int] = set()
        self.pages = [FakePage(self, i + 1, runs) for i, runs in enumerate(pages)]
        self.get_page = AsyncMock(side_effect=self._get_page)

    @classmethod
    def from_texts(cls, *page_texts: list[str]) -> "FakeDocument":
        """One run per string, stacked down the page."""
        return cls([
            [make_run(text, y=700.0 - 14.0 * i) for i, text in enumerate(texts)]
            for texts in page_texts
        ])

    @property
    def num_pages(self) -> int:
        return len(self.pages)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        self._destroyed = True

    def _get_page(self, page_number: int) -> FakePage:
        if self._destroyed:
            raise StaleHandleError("destroyed")
        if not 1 <= page_number <= self.num_pages:
            raise ValueError(f"page {page_number} out of range")
        return self.pages[page_number - 1]

    @property
    def text_content_calls(self) -> int:
        return sum(page.get_text_content.await_count for page in self.pages)

