"""Bounded discrete-log (additive ElGamal) adapter.

Importing the package registers the adapter under the name ``elgamal``.
"""

from .elgamal_adapter import AdditiveElGamal, Ciphertext, PublicKey, SecretKey, discrete_log

__all__ = ["AdditiveElGamal", "Ciphertext", "PublicKey", "SecretKey", "discrete_log"]
