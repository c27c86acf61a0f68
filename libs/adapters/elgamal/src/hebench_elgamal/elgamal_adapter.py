from __future__ import annotations
import math
import secrets
from dataclasses import dataclass
from typing import Dict, Optional

import nacl.bindings as sodium

from hebench import DecryptContext, KeyPair, SchemeCapacityError, registry

# Ed25519 prime subgroup order
L = 2**252 + 27742317777372353535851937790883648493
SCALAR_BYTES = 32
POINT_BYTES = 32
MAX_PLAINTEXT = 2**32 - 1

# Encoded identity point (0,1): y=1, sign=0
IDENTITY = b"\x01" + (b"\x00" * 31)


def _scalar_to_bytes(k: int) -> bytes:
    return (int(k) % L).to_bytes(SCALAR_BYTES, "little")


def _random_scalar() -> int:
    return secrets.randbelow(L - 1) + 1


def _mul_base(k: int) -> bytes:
    # [k]B without clamping; libsodium rejects k == 0
    if k % L == 0:
        return IDENTITY
    return sodium.crypto_scalarmult_ed25519_base_noclamp(_scalar_to_bytes(k))


def _mul(point: bytes, k: int) -> bytes:
    return sodium.crypto_scalarmult_ed25519_noclamp(_scalar_to_bytes(k), point)


def _add(p: bytes, q: bytes) -> bytes:
    return sodium.crypto_core_ed25519_add(p, q)


def _sub(p: bytes, q: bytes) -> bytes:
    return sodium.crypto_core_ed25519_sub(p, q)


@dataclass(frozen=True)
class SecretKey:
    scalar: int

    def __repr__(self) -> str:
        return "SecretKey(<redacted>)"


@dataclass(frozen=True)
class PublicKey:
    point: bytes


@dataclass(frozen=True)
class Ciphertext:
    c1: bytes  # r*B
    c2: bytes  # m*B + r*Y


def discrete_log(target: bytes, bound: int) -> Optional[int]:
    """Find m in [0, bound] with m*B == target (baby-step giant-step).

    Both the table and the giant-step walk are sized by sqrt(bound), so the
    cost follows the declared bound rather than the plaintext.
    """
    if bound < 0:
        raise ValueError("search bound must be non-negative")
    step = math.isqrt(bound) + 1
    base = _mul_base(1)
    baby: Dict[bytes, int] = {}
    point = IDENTITY
    for j in range(step):
        baby.setdefault(point, j)
        point = _add(point, base)
    giant = _mul_base(step)
    current = target
    for i in range(step + 1):
        j = baby.get(current)
        if j is not None:
            m = i * step + j
            return m if m <= bound else None
        current = _sub(current, giant)
    return None


@registry.register("elgamal")
class AdditiveElGamal:
    """Exponential (additive) ElGamal over the Ed25519 prime-order group.

    Plaintexts live in the exponent, so decryption is a bounded discrete-log
    search whose upper bound is supplied through `DecryptContext`.
    """
    name = "elgamal"
    label = "Additive ElGamal"
    expensive_keygen = False
    encrypts_with_secret = False
    bounded_decrypt = True
    fixed_plaintexts = (100, 200)

    def __init__(self, search_bound: int = 1_000_000) -> None:
        self.search_bound = int(search_bound)
        self.mech = "ElGamal-Ed25519-additive"

    def keygen(self) -> KeyPair:
        x = _random_scalar()
        return KeyPair(secret=SecretKey(x), public=PublicKey(_mul_base(x)))

    def encrypt(self, key: PublicKey, plaintext: int) -> Ciphertext:
        m = int(plaintext)
        if not 0 <= m <= MAX_PLAINTEXT:
            raise SchemeCapacityError(f"ElGamal plaintext {m} outside [0, {MAX_PLAINTEXT}]")
        r = _random_scalar()
        shared = _mul(key.point, r)
        c2 = _add(_mul_base(m), shared) if m else shared
        return Ciphertext(c1=_mul_base(r), c2=c2)

    def decrypt(self, secret_key: SecretKey, ciphertext: Ciphertext, context: Optional[DecryptContext] = None) -> int:
        bound = self.search_bound
        if context is not None and context.search_bound is not None:
            bound = int(context.search_bound)
        target = _sub(ciphertext.c2, _mul(ciphertext.c1, secret_key.scalar))
        m = discrete_log(target, bound)
        if m is None:
            raise SchemeCapacityError(f"ElGamal plaintext not found within search bound {bound}")
        return m

    def add(self, public_key: PublicKey, lhs: Ciphertext, rhs: Ciphertext) -> Ciphertext:
        return Ciphertext(c1=_add(lhs.c1, rhs.c1), c2=_add(lhs.c2, rhs.c2))

    def serialize_secret(self, secret_key: SecretKey) -> bytes:
        return _scalar_to_bytes(secret_key.scalar)

    def deserialize_secret(self, data: bytes) -> SecretKey:
        if len(data) != SCALAR_BYTES:
            raise ValueError(f"ElGamal secret key must be {SCALAR_BYTES} bytes, got {len(data)}")
        x = int.from_bytes(data, "little")
        if not 0 < x < L:
            raise ValueError("ElGamal secret scalar out of range")
        return SecretKey(x)

    def serialize_public(self, public_key: PublicKey) -> bytes:
        return bytes(public_key.point)

    def deserialize_public(self, data: bytes) -> PublicKey:
        data = bytes(data)
        if len(data) != POINT_BYTES:
            raise ValueError(f"ElGamal public key must be {POINT_BYTES} bytes, got {len(data)}")
        if not sodium.crypto_core_ed25519_is_valid_point(data):
            raise ValueError("invalid Ed25519 point encoding")
        return PublicKey(data)
