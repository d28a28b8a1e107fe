# pedaru/processors/pdf_document.py
"""
Document library adapter backed by pdfminer.six.

The overlay core only consumes three things from a document library:
per-page glyph runs, a viewport for a given zoom, and a liveness flag.
DocumentHandle/PageHandle describe that contract; PdfMinerDocument
implements it for PDF files.

Each pdfminer text line becomes one GlyphRun. Its transform is the first
character's text rendering matrix (Tm x CTM) pre-multiplied by the font
size, horizontal scaling and rise, which is the same convention viewer
libraries use for text items.
"""

import asyncio
import logging
import math
import threading
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from pedaru.models.types import GlyphRun, Matrix, PageViewport
from pedaru.processors.geometry import create_viewport, multiply_transform
from pedaru.services.exceptions import StaleHandleError

# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Lazy Imports
# =============================================================================
_pdfminer = None
_GlyphAggregator = None


def _get_pdfminer():
    """Lazy import pdfminer.six for glyph extraction."""
    global _pdfminer
    if _pdfminer is None:
        from pdfminer.pdffont import PDFUnicodeNotDefined
        from pdfminer.pdfpage import PDFPage
        from pdfminer.pdfparser import PDFParser, PDFSyntaxError
        from pdfminer.pdfdocument import PDFDocument
        from pdfminer.pdfinterp import PDFResourceManager, PDFPageInterpreter
        from pdfminer.converter import PDFPageAggregator
        from pdfminer.layout import LTChar, LTTextLine, LTLayoutContainer, LAParams
        _pdfminer = {
            'PDFUnicodeNotDefined': PDFUnicodeNotDefined,
            'PDFPage': PDFPage,
            'PDFParser': PDFParser,
            'PDFSyntaxError': PDFSyntaxError,
            'PDFDocument': PDFDocument,
            'PDFResourceManager': PDFResourceManager,
            'PDFPageInterpreter': PDFPageInterpreter,
            'PDFPageAggregator': PDFPageAggregator,
            'LTChar': LTChar,
            'LTTextLine': LTTextLine,
            'LTLayoutContainer': LTLayoutContainer,
            'LAParams': LAParams,
        }
    return _pdfminer


def get_glyph_aggregator_class():
    """
    Get GlyphAggregator class (created lazily to avoid import cost).

    A PDFPageAggregator that keeps font size, horizontal scaling and rise on
    every LTChar so the full glyph transform can be rebuilt afterwards.
    """
    global _GlyphAggregator
    if _GlyphAggregator is not None:
        return _GlyphAggregator

    pdfminer = _get_pdfminer()
    PDFPageAggregator = pdfminer['PDFPageAggregator']
    LTChar = pdfminer['LTChar']
    PDFUnicodeNotDefined = pdfminer['PDFUnicodeNotDefined']

    class GlyphAggregator(PDFPageAggregator):
        def render_char(self, matrix, font, fontsize, scaling, rise, cid, ncs,
                        graphicstate):
            try:
                text = font.to_unichr(cid)
            except PDFUnicodeNotDefined:
                text = self.handle_undefined_char(font, cid)
            textwidth = font.char_width(cid)
            textdisp = font.char_disp(cid)
            item = LTChar(matrix, font, fontsize, scaling, rise, text,
                          textwidth, textdisp, ncs, graphicstate)
            self.cur_item.add(item)
            item.glyph_fontsize = fontsize
            item.glyph_scaling = scaling
            item.glyph_rise = rise
            return item.adv

    _GlyphAggregator = GlyphAggregator
    return _GlyphAggregator


# =============================================================================
# Document library contract
# =============================================================================
class PageHandle(Protocol):
    """One page of an open document."""

    page_number: int

    @property
    def destroyed(self) -> bool:
        ...

    def get_viewport(self, scale: float) -> PageViewport:
        ...

    async def get_text_content(self) -> list[GlyphRun]:
        ...


class DocumentHandle(Protocol):
    """An open document owned by the host application."""

    @property
    def num_pages(self) -> int:
        ...

    @property
    def destroyed(self) -> bool:
        ...

    async def get_page(self, page_number: int) -> PageHandle:
        ...


# =============================================================================
# Glyph run construction
# =============================================================================
def glyph_run_from_chars(chars: list[Any], text: str) -> Optional[GlyphRun]:
    """
    Build a GlyphRun from the LTChar objects of one text line.

    Args:
        chars: LTChar objects of the line, in content order
        text: Line text as pdfminer reports it (inserted spaces included)

    Returns:
        GlyphRun, or None if the line has no characters
    """
    if not chars:
        return None
    first = chars[0]
    last = chars[-1]

    fontsize = getattr(first, 'glyph_fontsize', None) or first.size
    scaling = getattr(first, 'glyph_scaling', 1.0)
    rise = getattr(first, 'glyph_rise', 0.0)
    matrix: Matrix = tuple(first.matrix)

    # Text space -> user space with font size applied
    transform = multiply_transform(matrix, (fontsize * scaling, 0.0, 0.0, fontsize, 0.0, rise))

    # Baseline length from the first glyph origin to the last glyph's advance
    start_x, start_y = first.matrix[4], first.matrix[5]
    end_x = last.matrix[4] + last.adv * last.matrix[0]
    end_y = last.matrix[5] + last.adv * last.matrix[1]
    width = math.hypot(end_x - start_x, end_y - start_y)
    height = fontsize * math.hypot(matrix[2], matrix[3])

    return GlyphRun(
        text=text,
        transform=transform,
        width=width,
        height=height,
        font_name=first.fontname or "",
    )


def _iter_text_lines(container: Any, line_type: type, container_type: type):
    for obj in container:
        if isinstance(obj, line_type):
            yield obj
        elif isinstance(obj, container_type):
            yield from _iter_text_lines(obj, line_type, container_type)


# =============================================================================
# pdfminer-backed document
# =============================================================================
class PdfMinerPage:
    """A page of a PdfMinerDocument."""

    def __init__(self, document: "PdfMinerDocument", page_number: int, pdf_page: Any):
        self._document = document
        self.page_number = page_number
        self._pdf_page = pdf_page
        self.view_box: tuple[float, float, float, float] = tuple(
            float(v) for v in pdf_page.mediabox
        )
        self.rotation: int = int(getattr(pdf_page, 'rotate', 0) or 0)

    @property
    def destroyed(self) -> bool:
        return self._document.destroyed

    def get_viewport(self, scale: float) -> PageViewport:
        return create_viewport(self.view_box, scale, self.rotation)

    async def get_text_content(self) -> list[GlyphRun]:
        if self.destroyed:
            raise StaleHandleError(f"Document destroyed before page {self.page_number} text was read")
        return await asyncio.to_thread(self._extract_glyph_runs)

    def _extract_glyph_runs(self) -> list[GlyphRun]:
        pdfminer = _get_pdfminer()
        LTChar = pdfminer['LTChar']
        aggregator_class = get_glyph_aggregator_class()

        with self._document._lock:
            if self.destroyed:
                raise StaleHandleError(f"Document destroyed while reading page {self.page_number}")
            rsrcmgr = pdfminer['PDFResourceManager']()
            device = aggregator_class(rsrcmgr, laparams=pdfminer['LAParams'](all_texts=True))
            interpreter = pdfminer['PDFPageInterpreter'](rsrcmgr, device)
            interpreter.process_page(self._pdf_page)
            layout = device.get_result()

        runs: list[GlyphRun] = []
        for line in _iter_text_lines(layout, pdfminer['LTTextLine'], pdfminer['LTLayoutContainer']):
            chars = [obj for obj in line if isinstance(obj, LTChar)]
            text = line.get_text().rstrip("\n")
            run = glyph_run_from_chars(chars, text)
            if run is not None:
                runs.append(run)

        logger.debug("Page %d: extracted %d glyph runs", self.page_number, len(runs))
        return runs


class PdfMinerDocument:
    """
    An open PDF file exposing the document library contract.

    The file stays open until destroy() (or the context manager exit).
    After that every call raises StaleHandleError.
    """

    def __init__(self, path: Path, fp: Any, pdf_pages: list[Any]):
        self.path = path
        self._fp = fp
        self._pdf_pages = pdf_pages
        self._destroyed = False
        # pdfminer objects share the file pointer; parse one page at a time
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Union[str, Path]) -> "PdfMinerDocument":
        """
        Open a PDF file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file cannot be parsed as PDF
        """
        pdfminer = _get_pdfminer()
        path = Path(path)
        fp = open(path, 'rb')
        try:
            parser = pdfminer['PDFParser'](fp)
            document = pdfminer['PDFDocument'](parser)
            pdf_pages = list(pdfminer['PDFPage'].create_pages(document))
        except pdfminer['PDFSyntaxError'] as e:
            fp.close()
            raise ValueError(f"Not a valid PDF file: {path}") from e
        except Exception:
            fp.close()
            raise
        logger.info("Opened %s (%d pages)", path.name, len(pdf_pages))
        return cls(path, fp, pdf_pages)

    @property
    def num_pages(self) -> int:
        return len(self._pdf_pages)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    async def get_page(self, page_number: int) -> PdfMinerPage:
        if self._destroyed:
            raise StaleHandleError(f"Document destroyed before page {page_number} was requested")
        if not 1 <= page_number <= self.num_pages:
            raise ValueError(f"Page {page_number} out of range 1..{self.num_pages}")
        return PdfMinerPage(self, page_number, self._pdf_pages[page_number - 1])

    def destroy(self) -> None:
        """Close the file; the handle is unusable afterwards."""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
            self._fp.close()
        logger.debug("Closed %s", self.path.name)

    def __enter__(self) -> "PdfMinerDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()
