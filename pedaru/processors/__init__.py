# pedaru/processors/__init__.py
"""
Document-library adapters and overlay layout for Pedaru.

The pdfminer-backed document is lazy-loaded for faster startup.
Use explicit imports like:
    from pedaru.processors.pdf_document import PdfMinerDocument
"""

# Fast imports - pure geometry and layout
from .geometry import create_viewport, multiply_transform, apply_transform
from .text_layer import (
    CancellationToken,
    TextLayer,
    TextLayerRenderer,
    highlight_span_text,
    layout_glyph_runs,
)

# Lazy-loaded modules via __getattr__
_LAZY_IMPORTS = {
    'PdfMinerDocument': 'pdf_document',
    'PdfMinerPage': 'pdf_document',
    'DocumentHandle': 'pdf_document',
    'PageHandle': 'pdf_document',
    'SubstituteFontMeasurer': 'font_metrics',
    'LoadedFontMeasurer': 'font_metrics',
    'WidthMeasurer': 'font_metrics',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {'geometry', 'text_layer', 'font_metrics', 'pdf_document'}


def __getattr__(name: str):
    """Lazy-load heavy processor modules on first access."""
    import importlib
    # Support accessing submodules directly (for unittest.mock.patch)
    if name in _SUBMODULES:
        return importlib.import_module(f'.{name}', __package__)
    if name in _LAZY_IMPORTS:
        module_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(f'.{module_name}', __package__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'create_viewport',
    'multiply_transform',
    'apply_transform',
    'CancellationToken',
    'TextLayer',
    'TextLayerRenderer',
    'highlight_span_text',
    'layout_glyph_runs',
    'PdfMinerDocument',
    'PdfMinerPage',
    'DocumentHandle',
    'PageHandle',
    'SubstituteFontMeasurer',
    'LoadedFontMeasurer',
    'WidthMeasurer',
]
