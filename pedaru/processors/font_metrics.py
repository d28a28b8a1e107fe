# pedaru/processors/font_metrics.py
"""
Font metrics for the invisible text overlay.

The overlay draws span text with a substitute font whose metrics rarely match
the font embedded in the PDF. The glyph layout renderer measures what the
substitute (or, once available, the real font) would draw and stretches each
span horizontally so it lines up with the rasterized glyphs.

Features:
- Substitute font metrics from PyMuPDF's built-in Base-14 fonts
- Real font metrics once a font file/buffer is registered
- Unicode-class width estimate when no font can measure a character
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Union

# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Lazy Imports
# =============================================================================
_pymupdf = None


def _get_pymupdf():
    """Lazy import PyMuPDF"""
    global _pymupdf
    if _pymupdf is None:
        import pymupdf
        _pymupdf = pymupdf
    return _pymupdf


# =============================================================================
# Substitute font selection
# =============================================================================
# Base-14 font codes understood by pymupdf.get_text_length()
SUBSTITUTE_SANS = "helv"
SUBSTITUTE_SERIF = "tiro"
SUBSTITUTE_MONO = "cour"

_SERIF_HINTS = ("times", "serif", "roman", "mincho", "georgia", "garamond", "minion")
_MONO_HINTS = ("courier", "mono", "consol", "code")


def substitute_font_for(font_name: str) -> str:
    """
    Pick the Base-14 substitute used to draw a span of the given PDF font.

    Subset prefixes ("ABCDEF+Times-Roman") are ignored.
    """
    name = (font_name or "").split("+", 1)[-1].lower()
    # "sans" wins over "serif" in names like "NotoSansSerif"
    if "sans" in name:
        return SUBSTITUTE_SANS
    if any(hint in name for hint in _MONO_HINTS):
        return SUBSTITUTE_MONO
    if any(hint in name for hint in _SERIF_HINTS):
        return SUBSTITUTE_SERIF
    return SUBSTITUTE_SANS


def estimate_char_width_normalized(char: str) -> float:
    """
    Estimate normalized character width (0.0-1.0) from Unicode properties.

    Used when no font metrics are available.

    Args:
        char: Single character

    Returns:
        Normalized character width (multiply by font_size for px)
    """
    code = ord(char)

    # Half-width characters -> 0.5
    if (0x0020 <= code <= 0x007F or  # Basic Latin
            0x0080 <= code <= 0x00FF or  # Latin-1 Supplement
            0xFF61 <= code <= 0xFF9F):   # Halfwidth Katakana
        return 0.5

    # Full-width characters -> 1.0
    if (0x3040 <= code <= 0x309F or  # Hiragana
            0x30A0 <= code <= 0x30FF or  # Katakana
            0x4E00 <= code <= 0x9FFF or  # CJK Unified Ideographs
            0x3400 <= code <= 0x4DBF or  # CJK Extension A
            0xFF00 <= code <= 0xFF60 or  # Fullwidth Forms (before halfwidth)
            0xFFA0 <= code <= 0xFFEF or  # Fullwidth Forms (after halfwidth)
            0xAC00 <= code <= 0xD7AF or  # Hangul Syllables
            0x3000 <= code <= 0x303F):   # CJK Symbols and Punctuation
        return 1.0

    if code > 0x2E7F:
        return 1.0

    return 0.5


class WidthMeasurer(Protocol):
    """Measures the rendered width of span text."""

    def measure(self, text: str, font_name: str, font_size: float) -> float:
        ...


# =============================================================================
# Substitute font measurer
# =============================================================================
class SubstituteFontMeasurer:
    """
    Measures text as the overlay draws it before real fonts are available.

    Latin-1 runs are measured with PyMuPDF's Base-14 metrics; anything the
    Base-14 encodings cannot represent is estimated per character.
    """

    def __init__(self):
        # (substitute, text) -> width at font size 1.0
        self._width_cache: dict[tuple[str, str], float] = {}

    def measure(self, text: str, font_name: str, font_size: float) -> float:
        if not text or font_size <= 0:
            return 0.0
        substitute = substitute_font_for(font_name)
        cache_key = (substitute, text)
        normalized = self._width_cache.get(cache_key)
        if normalized is None:
            normalized = self._measure_normalized(text, substitute)
            self._width_cache[cache_key] = normalized
        return normalized * font_size

    def _measure_normalized(self, text: str, substitute: str) -> float:
        total = 0.0
        chunk: list[str] = []
        for char in text:
            if ord(char) <= 0xFF:
                chunk.append(char)
                continue
            if chunk:
                total += self._measure_base14("".join(chunk), substitute)
                chunk = []
            total += estimate_char_width_normalized(char)
        if chunk:
            total += self._measure_base14("".join(chunk), substitute)
        return total

    def _measure_base14(self, text: str, substitute: str) -> float:
        try:
            return _get_pymupdf().get_text_length(text, fontname=substitute, fontsize=1.0)
        except (RuntimeError, ValueError, TypeError) as e:
            # RuntimeError: PyMuPDF internal errors
            # ValueError: Unknown font name
            # TypeError: Invalid argument type
            logger.debug("Base-14 measurement failed for %r: %s", text[:20], e)
            return sum(estimate_char_width_normalized(c) for c in text)

    def clear_cache(self) -> None:
        self._width_cache.clear()


# =============================================================================
# Loaded font measurer
# =============================================================================
class LoadedFontMeasurer:
    """
    Measures with real fonts once they are registered, substitute otherwise.

    Registering fonts does not signal readiness by itself; the host calls
    mark_fonts_loaded() once every pending font has arrived, which releases
    wait_fonts_ready() so the second width-correction pass can run.
    """

    def __init__(self, fallback: Optional[SubstituteFontMeasurer] = None):
        self._fallback = fallback or SubstituteFontMeasurer()
        self._fonts: dict[str, Any] = {}  # PDF font name -> pymupdf.Font
        self._fonts_ready = asyncio.Event()

    @staticmethod
    def _normalize_name(font_name: str) -> str:
        return (font_name or "").split("+", 1)[-1]

    def register_font(
        self,
        font_name: str,
        source: Union[str, Path, bytes],
    ) -> bool:
        """
        Register a real font for a PDF font name.

        Args:
            font_name: Font name as reported in glyph runs (subset prefix ignored)
            source: Font file path or raw font bytes

        Returns:
            True if the font could be loaded
        """
        pymupdf = _get_pymupdf()
        try:
            if isinstance(source, (bytes, bytearray)):
                font = pymupdf.Font(fontbuffer=bytes(source))
            else:
                font = pymupdf.Font(fontfile=str(source))
        except (RuntimeError, ValueError, OSError) as e:
            logger.warning("Failed to load font %s: %s", font_name, e)
            return False
        self._fonts[self._normalize_name(font_name)] = font
        logger.debug("Registered font %s", font_name)
        return True

    def has_font(self, font_name: str) -> bool:
        return self._normalize_name(font_name) in self._fonts

    def mark_fonts_loaded(self) -> None:
        """Signal that font delivery has finished."""
        self._fonts_ready.set()

    @property
    def fonts_loaded(self) -> bool:
        return self._fonts_ready.is_set()

    async def wait_fonts_ready(self) -> None:
        await self._fonts_ready.wait()

    def measure(self, text: str, font_name: str, font_size: float) -> float:
        if not text or font_size <= 0:
            return 0.0
        font = self._fonts.get(self._normalize_name(font_name))
        if font is None:
            return self._fallback.measure(text, font_name, font_size)
        try:
            return font.text_length(text, fontsize=font_size)
        except (RuntimeError, ValueError, TypeError) as e:
            logger.debug("Real font measurement failed for %s: %s", font_name, e)
            return self._fallback.measure(text, font_name, font_size)
