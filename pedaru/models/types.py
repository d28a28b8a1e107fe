# pedaru/models/types.py
"""
Core data types for the Pedaru text overlay and selection context core.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

# PDF affine matrix (a, b, c, d, e, f)
Matrix = tuple[float, float, float, float, float, float]


@dataclass(frozen=True)
class GlyphRun:
    """
    A contiguous string of text sharing one transform/font.
    Produced by the document library per page; immutable per render pass.
    """
    text: str                        # Extracted text of the run
    transform: Matrix                # Text-space -> user-space matrix (font size included)
    width: float                     # Advance width in user space units
    height: float                    # Height in user space units
    font_name: str = ""              # Font resource name reported by the library

    @property
    def is_empty(self) -> bool:
        return len(self.text) == 0


@dataclass(frozen=True)
class PageViewport:
    """
    Document-space -> screen-space mapping for one page at one zoom level.
    Use geometry.create_viewport() to build one from a page box.
    """
    width: float                     # Screen width in px
    height: float                    # Screen height in px
    scale: float                     # Zoom factor (1.0 = 72 dpi)
    rotation: int                    # Page rotation in degrees (0, 90, 180, 270)
    transform: Matrix                # Viewport transform


@dataclass
class PositionedSpan:
    """
    An invisible, positioned overlay span derived from a GlyphRun.

    Spans of a page form an ordered sequence; ordinal order is the
    extraction order, not necessarily visual left-to-right.
    """
    index: int                       # Stable ordinal within the page
    text: str                        # Run text (what the overlay span contains)
    origin_x: float                  # Left edge (px)
    origin_y: float                  # Top edge (px); baseline shifted up by font size
    font_size_px: float
    rotation_radians: float
    target_width_px: float           # Width the span must occupy on screen
    width_correction_factor: float = 1.0
    font_name: str = ""

    @property
    def text_length(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class SelectionAnchor:
    """
    Where a UI selection starts, traced back to an overlay span.
    span_ordinal is -1 when the selection started outside any span.
    """
    page_number: int
    span_ordinal: int
    offset_within_span: int


@dataclass(frozen=True)
class ScreenPoint:
    """Screen position in px (origin top-left)."""
    x: float
    y: float


@dataclass(frozen=True)
class SelectionRect:
    """Bounding box of a UI selection in screen px."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


@dataclass(frozen=True)
class SelectionInfo:
    """Resolved (page, character offset) of a selection start."""
    offset: int
    page_number: int


@dataclass(frozen=True)
class ContextWindow:
    """Text surrounding a selection, ellipsis-marked when truncated."""
    context_before: str
    context_after: str


@dataclass
class CapturedSelection:
    """
    Raw selection as reported by the UI input layer at capture time.
    The anchor may be None when the selection cannot be traced to the overlay.
    """
    text: str
    anchor: Optional[SelectionAnchor]
    bounding_rect: SelectionRect
    is_collapsed: bool = False


class SelectionPhase(Enum):
    """Selection lifecycle"""
    IDLE = "idle"
    CAPTURED = "captured"            # Created synchronously, context loading
    RESOLVED = "resolved"            # Context filled in
    DISCARDED = "discarded"          # Superseded or cleared before resolution


@dataclass
class TextSelection:
    """
    Selection record handed to popup/overlay presentation components.

    Created with context_loading=True the instant a selection is captured,
    then completed in place once context resolution finishes.
    Never persisted.
    """
    selected_text: str
    context_before: str = ""
    context_after: str = ""
    is_word: bool = False
    screen_position: ScreenPoint = field(default_factory=lambda: ScreenPoint(0.0, 0.0))
    page_number: int = 1
    context_loading: bool = True

    @property
    def preview(self) -> str:
        """Get preview of selected text (truncated)"""
        max_len = 50
        if len(self.selected_text) <= max_len:
            return self.selected_text
        return self.selected_text[:max_len] + "..."


@dataclass(frozen=True)
class HighlightSegment:
    """A piece of span text, optionally a search match."""
    text: str
    is_match: bool = False
    is_focused: bool = False


@dataclass(frozen=True)
class SearchResult:
    """A full-text search hit with surrounding context."""
    page: int                        # 1-based page number
    match_index: int                 # Ordinal of the hit within its page
    context_before: str
    match_text: str
    context_after: str
    position: int = 0                # Offset of the hit in the page's joined text


@dataclass(frozen=True)
class TranslationRequest:
    """
    Payload sent to the translation/explanation backend.
    """
    selected_text: str
    context_before: str
    context_after: str
    model_id: str

    def to_payload(self) -> dict[str, str]:
        """Backend wire format (camelCase keys)."""
        return {
            "selectedText": self.selected_text,
            "contextBefore": self.context_before,
            "contextAfter": self.context_after,
            "modelId": self.model_id,
        }


@dataclass
class TranslationOutcome:
    """
    Result of a translation/explanation call for one selection.
    error_message is set (and the other fields empty) on backend failure.
    """
    selected_text: str
    translation: str = ""
    explanation_points: list[str] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error_message is not None


# Callback types
SelectionListener = Callable[[Optional[TextSelection]], None]
SearchListener = Callable[[list[SearchResult]], None]
