# pedaru/services/__init__.py
"""
Service layer for Pedaru.

Heavy service imports are lazy-loaded for faster startup.
Use explicit imports like:
    from pedaru.services.document_session import DocumentSession
"""

# Fast imports - exceptions
from .exceptions import StaleHandleError, UnresolvableSelectionError, BackendFailureError

# Lazy-loaded services via __getattr__
_LAZY_IMPORTS = {
    'PageTextCache': 'page_text_cache',
    'OverlayRegistry': 'selection_resolver',
    'resolve_selection': 'selection_resolver',
    'compute_span_offset': 'selection_resolver',
    'ContextExtractor': 'context_extractor',
    'SelectionOrchestrator': 'selection_service',
    'is_word_selection': 'selection_service',
    'SearchService': 'search_service',
    'DocumentSession': 'document_session',
    'PromptBuilder': 'translation_request',
    'SelectionTranslator': 'translation_request',
    'build_translation_request': 'translation_request',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {'page_text_cache', 'selection_resolver', 'context_extractor', 'selection_service',
               'search_service', 'document_session', 'translation_request', 'exceptions'}


def __getattr__(name: str):
    """Lazy-load heavy service modules on first access."""
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
    'StaleHandleError',
    'UnresolvableSelectionError',
    'BackendFailureError',
    'PageTextCache',
    'OverlayRegistry',
    'resolve_selection',
    'compute_span_offset',
    'ContextExtractor',
    'SelectionOrchestrator',
    'is_word_selection',
    'SearchService',
    'DocumentSession',
    'PromptBuilder',
    'SelectionTranslator',
    'build_translation_request',
]
