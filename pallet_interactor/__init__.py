"""
Metadata-driven pallet interactor.

This package derives callable namespaces, callables and typed parameters from
a live runtime metadata document and dispatches the resulting calls through an
external chain gateway. See DESIGN.md for full details.
"""

__all__ = ["config", "interactor"]
