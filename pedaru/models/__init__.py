"""
Data models for Pedaru.
"""

from .types import (
    Matrix,
    GlyphRun,
    PageViewport,
    PositionedSpan,
    SelectionAnchor,
    ScreenPoint,
    SelectionRect,
    SelectionInfo,
    ContextWindow,
    CapturedSelection,
    SelectionPhase,
    TextSelection,
    HighlightSegment,
    SearchResult,
    TranslationRequest,
    TranslationOutcome,
    SelectionListener,
    SearchListener,
)

__all__ = [
    'Matrix',
    'GlyphRun',
    'PageViewport',
    'PositionedSpan',
    'SelectionAnchor',
    'ScreenPoint',
    'SelectionRect',
    'SelectionInfo',
    'ContextWindow',
    'CapturedSelection',
    'SelectionPhase',
    'TextSelection',
    'HighlightSegment',
    'SearchResult',
    'TranslationRequest',
    'TranslationOutcome',
    'SelectionListener',
    'SearchListener',
]
