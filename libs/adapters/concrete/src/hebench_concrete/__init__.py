"""Circuit-based FHE adapter backed by concrete-python.

Importing this package requires ``concrete-python`` (the ``fhe`` extra);
the CLI treats a failed import as an unavailable adapter.
"""

from .fhe_adapter import FheUint8

__all__ = ["FheUint8"]
