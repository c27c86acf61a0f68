"""Paillier adapter backed by python-paillier (``phe``)."""

from .paillier_adapter import PaillierScheme

__all__ = ["PaillierScheme"]
