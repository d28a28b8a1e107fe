# pedaru/ui/__init__.py
"""
Overlay markup emitted to the rendering surface.
"""

from .text_layer_markup import render_span_html, render_text_layer_html

__all__ = [
    'render_span_html',
    'render_text_layer_html',
]
