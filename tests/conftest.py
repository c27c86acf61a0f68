from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
for rel in (
    "libs/core/src",
    "libs/adapters/elgamal/src",
    "libs/adapters/paillier/src",
    "libs/adapters/concrete/src",
    "apps/cli/src",
):
    candidate = str(ROOT / rel)
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

from hebench import DecryptContext, KeyPair, registry  # noqa: E402


class ToyScheme:
    """Insecure additive scheme with integer keys, used as a test double.

    ct = m + public, public = 7 * secret. Counts keygen calls so tests can
    check the key cache never generates twice.
    """
    name = "toy"
    label = "Toy"
    expensive_keygen = False
    encrypts_with_secret = False
    fixed_plaintexts = (15, 27)

    def __init__(self) -> None:
        self.keygen_calls = 0

    def keygen(self) -> KeyPair:
        self.keygen_calls += 1
        secret = 1000 + self.keygen_calls
        return KeyPair(secret=secret, public=7 * secret)

    def encrypt(self, key: int, plaintext: int) -> int:
        return plaintext + key

    def decrypt(self, secret_key: int, ciphertext: int, context: Optional[DecryptContext] = None) -> int:
        return ciphertext - 7 * secret_key

    def add(self, public_key: int, lhs: int, rhs: int) -> int:
        return lhs + rhs - public_key

    def serialize_secret(self, secret_key: int) -> bytes:
        return str(secret_key).encode("ascii")

    def deserialize_secret(self, data: bytes) -> int:
        return int(data.decode("ascii"))

    def serialize_public(self, public_key: int) -> bytes:
        return str(public_key).encode("ascii")

    def deserialize_public(self, data: bytes) -> int:
        return int(data.decode("ascii"))


class ExpensiveToyScheme(ToyScheme):
    name = "toy-expensive"
    label = "Toy Cached"
    expensive_keygen = True


@pytest.fixture
def toy_registry():
    original_items = dict(registry._items)  # type: ignore[attr-defined]
    registry._items.clear()  # type: ignore[attr-defined]
    registry._items.update(  # type: ignore[attr-defined]
        {
            "toy": ToyScheme,
            "toy-expensive": ExpensiveToyScheme,
        }
    )
    try:
        yield
    finally:
        registry._items.clear()  # type: ignore[attr-defined]
        registry._items.update(original_items)  # type: ignore[attr-defined]


@pytest.fixture
def key_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the persisted key locations at a temporary directory."""
    monkeypatch.setenv("HEBENCH_FHE_CLIENT_KEY", str(tmp_path / "client_key.bin"))
    monkeypatch.setenv("HEBENCH_FHE_SERVER_KEY", str(tmp_path / "server_key.bin"))
    return tmp_path
