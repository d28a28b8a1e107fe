# pedaru/services/exceptions.py
"""
Exception types shared by the overlay, selection and context components.

None of these escape the core: each is caught at its component boundary and
turned into an empty, absent or approximate result.
"""


class StaleHandleError(Exception):
    """Raised when a document or page handle was destroyed mid-operation."""

    pass


class UnresolvableSelectionError(Exception):
    """Raised when a selection anchor cannot be traced to an overlay span."""

    pass


class BackendFailureError(Exception):
    """Raised when the translation/explanation backend call fails."""

    pass
