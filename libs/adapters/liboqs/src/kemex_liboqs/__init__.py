"""Adapter package for liboqs-backed KEMs.

Importing it registers the ``liboqs`` backend when liboqs-python can be
loaded; otherwise the backend stays absent and a warning says why.
"""
import warnings

from . import kem_adapters as _kem_adapters

_available = _kem_adapters.AVAILABLE

if not _available:
    warnings.warn("kemex_liboqs disabled: the oqs module (liboqs-python) could not be imported")

__all__: list[str] = []
