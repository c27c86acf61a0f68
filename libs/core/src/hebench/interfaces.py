from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

"""Scheme interfaces used by adapters.

Adapters implement this Protocol and register themselves into the global
registry. The CLI and the key cache interact only with these interfaces,
never with the vendor libraries directly.
"""


@dataclass(frozen=True)
class KeyPair:
    """Secret/public material of one scheme.

    The secret half is excluded from repr so it cannot leak into logs or
    exported summaries by accident.
    """
    secret: Any = field(repr=False)
    public: Any


@dataclass(frozen=True)
class DecryptContext:
    """Scheme-specific auxiliary decryption parameters.

    `search_bound` is the upper bound of the discrete-log search used by the
    bounded ElGamal variant; other schemes ignore it.
    """
    search_bound: Optional[int] = None


class AdditiveScheme(Protocol):
    """Additively homomorphic encryption contract."""
    name: str
    label: str
    expensive_keygen: bool
    encrypts_with_secret: bool

    def keygen(self) -> KeyPair: ...
    def encrypt(self, key: Any, plaintext: int) -> Any: ...
    def decrypt(self, secret_key: Any, ciphertext: Any, context: Optional[DecryptContext] = None) -> int: ...
    def add(self, public_key: Any, lhs: Any, rhs: Any) -> Any: ...

    def serialize_secret(self, secret_key: Any) -> bytes: ...
    def deserialize_secret(self, data: bytes) -> Any: ...
    def serialize_public(self, public_key: Any) -> bytes: ...
    def deserialize_public(self, data: bytes) -> Any: ...


def encryption_key(adapter: AdditiveScheme, keys: KeyPair) -> Any:
    """Return the half of `keys` the adapter encrypts with.

    Circuit-based FHE encrypts under the client (secret) key; the public-key
    schemes encrypt under the public half.
    """
    if getattr(adapter, "encrypts_with_secret", False):
        return keys.secret
    return keys.public
