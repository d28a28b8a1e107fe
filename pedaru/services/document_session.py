# pedaru/services/document_session.py
"""
Document session: everything scoped to the currently open document.

Owns the page text cache, the overlay registry, the layout renderer and the
per-page render tokens. Replacing the document, the page scale or a page's
render pass cancels the superseded tokens; their results are discarded
when they land.
"""

import asyncio
import logging
from typing import Optional

from pedaru.config.settings import ViewerSettings
from pedaru.processors.font_metrics import LoadedFontMeasurer
from pedaru.processors.text_layer import CancellationToken, TextLayer, TextLayerRenderer
from pedaru.services.context_extractor import ContextExtractor
from pedaru.services.page_text_cache import PageTextCache
from pedaru.services.search_service import SearchService
from pedaru.services.selection_resolver import OverlayRegistry
from pedaru.services.selection_service import SelectionOrchestrator
from pedaru.services.exceptions import StaleHandleError

# Module logger
logger = logging.getLogger(__name__)


class DocumentSession:
    """
    Wires the text-position components around one document handle.

    The session never owns the handle: the host opens and destroys
    documents, the session only checks liveness before use.
    """

    def __init__(
        self,
        settings: Optional[ViewerSettings] = None,
        measurer: Optional[LoadedFontMeasurer] = None,
    ):
        self.settings = settings or ViewerSettings()
        self.measurer = measurer or LoadedFontMeasurer()
        self.renderer = TextLayerRenderer(self.measurer, self.settings.width_correction_epsilon)
        self.cache = PageTextCache()
        self.registry = OverlayRegistry()
        self.extractor = ContextExtractor(self.cache, self.settings)
        self.selection = SelectionOrchestrator(self.registry, self.extractor, self.settings)
        self.search = SearchService(self.cache, self.settings)

        self._document = None
        self._tokens: dict[int, CancellationToken] = {}
        self._scale = self.settings.default_scale
        self._correction_tasks: dict[int, asyncio.Task] = {}

    @property
    def document(self):
        return self._document

    @property
    def scale(self) -> float:
        return self._scale

    def _cancel_all(self) -> None:
        for token in self._tokens.values():
            token.cancel()
        self._tokens.clear()
        for task in self._correction_tasks.values():
            task.cancel()
        self._correction_tasks.clear()
        self.registry.clear()

    def open_document(self, document) -> None:
        """Switch to another document; all per-document state is dropped."""
        self._cancel_all()
        self.selection.clear()
        self.search.clear()
        self._document = document
        self.cache.attach(document)
        if document is not None:
            logger.info("Session attached to document (%d pages)", document.num_pages)

    def close_document(self) -> None:
        self.open_document(None)

    def set_scale(self, scale: float) -> float:
        """
        Change the zoom factor; every rendered overlay is invalidated.

        Returns:
            The applied (clamped) scale
        """
        scale = self.settings.clamp_scale(scale)
        if scale != self._scale:
            self._cancel_all()
            self._scale = scale
        return scale

    def cancel_page(self, page_number: int) -> None:
        """Cancel a page's render pass and forget its overlay."""
        token = self._tokens.pop(page_number, None)
        if token is not None:
            token.cancel()
        task = self._correction_tasks.pop(page_number, None)
        if task is not None:
            task.cancel()
        self.registry.discard(page_number)

    async def render_page(self, page_number: int, scale: Optional[float] = None) -> Optional[TextLayer]:
        """
        Lay out a page's overlay and schedule its width correction.

        Returns:
            The registered TextLayer, or None if the document is gone or the
            pass was superseded
        """
        if scale is not None:
            self.set_scale(scale)

        document = self._document
        if document is None or document.destroyed:
            return None

        self.cancel_page(page_number)
        token = CancellationToken(f"page {page_number} @ {self._scale}")
        self._tokens[page_number] = token

        try:
            page = await document.get_page(page_number)
        except StaleHandleError:
            logger.debug("Document destroyed before page %d was loaded", page_number)
            return None
        except ValueError as e:
            logger.debug("Cannot render page %d: %s", page_number, e)
            return None
        except Exception as e:  # library errors are not typed
            logger.warning("Failed to load page %d: %s", page_number, e)
            return None

        if token.cancelled:
            return None
        layer = await self.renderer.render(page, self._scale, token)
        if layer is None or token.cancelled:
            return None

        self.registry.register(layer)
        fonts_ready = None if self.measurer.fonts_loaded else self.measurer.wait_fonts_ready
        self._correction_tasks[page_number] = asyncio.get_running_loop().create_task(
            self.renderer.schedule_width_correction(layer, fonts_ready)
        )
        return layer

    async def wait_width_corrections(self) -> None:
        """
        Wait for the scheduled width-correction passes.

        Blocks until fonts are marked loaded if any pass is waiting for them.
        """
        pending = [task for task in self._correction_tasks.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending)
