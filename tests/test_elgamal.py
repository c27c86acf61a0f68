from __future__ import annotations

from pathlib import Path

import pytest

from hebench import DecryptContext, FileKeyStore, SchemeCapacityError, registry

from hebench_elgamal import AdditiveElGamal, Ciphertext, discrete_log
from hebench_elgamal.elgamal_adapter import IDENTITY, _mul_base


@pytest.fixture(scope="module")
def scheme() -> AdditiveElGamal:
    return AdditiveElGamal(search_bound=20000)


@pytest.fixture(scope="module")
def keys(scheme: AdditiveElGamal):
    return scheme.keygen()


def test_registered() -> None:
    assert registry.get("elgamal") is AdditiveElGamal


@pytest.mark.parametrize("m", [0, 1, 100, 9999])
def test_encrypt_decrypt_round_trip(scheme, keys, m: int) -> None:
    ct = scheme.encrypt(keys.public, m)
    assert scheme.decrypt(keys.secret, ct, DecryptContext(search_bound=10000)) == m


def test_addition_decrypts_to_sum(scheme, keys) -> None:
    total = scheme.add(keys.public, scheme.encrypt(keys.public, 100), scheme.encrypt(keys.public, 200))
    assert scheme.decrypt(keys.secret, total, DecryptContext(search_bound=1000)) == 300


def test_decrypt_100_with_large_bound(scheme, keys) -> None:
    ct = scheme.encrypt(keys.public, 100)
    assert scheme.decrypt(keys.secret, ct, DecryptContext(search_bound=1_000_000)) == 100


def test_bound_below_plaintext_fails(scheme, keys) -> None:
    ct = scheme.encrypt(keys.public, 100)
    with pytest.raises(SchemeCapacityError):
        scheme.decrypt(keys.secret, ct, DecryptContext(search_bound=50))


def test_bound_below_sum_fails(scheme, keys) -> None:
    total = scheme.add(keys.public, scheme.encrypt(keys.public, 60), scheme.encrypt(keys.public, 70))
    with pytest.raises(SchemeCapacityError):
        scheme.decrypt(keys.secret, total, DecryptContext(search_bound=129))
    assert scheme.decrypt(keys.secret, total, DecryptContext(search_bound=130)) == 130


def test_default_bound_comes_from_adapter(keys) -> None:
    narrow = AdditiveElGamal(search_bound=10)
    ct = narrow.encrypt(keys.public, 11)
    with pytest.raises(SchemeCapacityError):
        narrow.decrypt(keys.secret, ct)
    assert narrow.decrypt(keys.secret, ct, DecryptContext(search_bound=11)) == 11


def test_encryption_is_randomized(scheme, keys) -> None:
    assert scheme.encrypt(keys.public, 5) != scheme.encrypt(keys.public, 5)


def test_keygen_is_fresh(scheme) -> None:
    assert scheme.keygen().public != scheme.keygen().public


@pytest.mark.parametrize("m", [-1, 2**32])
def test_plaintext_outside_range_rejected(scheme, keys, m: int) -> None:
    with pytest.raises(SchemeCapacityError):
        scheme.encrypt(keys.public, m)


def test_discrete_log_edges() -> None:
    assert discrete_log(IDENTITY, 0) == 0
    assert discrete_log(_mul_base(1), 0) is None
    assert discrete_log(_mul_base(49), 49) == 49
    assert discrete_log(_mul_base(50), 49) is None
    with pytest.raises(ValueError):
        discrete_log(IDENTITY, -1)


def test_key_serialization_round_trip(scheme, keys, tmp_path: Path) -> None:
    store = FileKeyStore(tmp_path)
    store.save(scheme.serialize_secret(keys.secret), "sk.bin")
    store.save(scheme.serialize_public(keys.public), "pk.bin")
    secret = scheme.deserialize_secret(store.load("sk.bin"))
    public = scheme.deserialize_public(store.load("pk.bin"))
    assert secret == keys.secret
    assert public == keys.public
    ct = scheme.encrypt(public, 77)
    assert scheme.decrypt(secret, ct, DecryptContext(search_bound=100)) == 77


def test_deserialize_rejects_bad_blobs(scheme) -> None:
    with pytest.raises(ValueError):
        scheme.deserialize_secret(b"short")
    with pytest.raises(ValueError):
        scheme.deserialize_public(b"\x00" * 31)
    with pytest.raises(ValueError):
        scheme.deserialize_secret(b"\x00" * 32)


def test_secret_not_in_repr(keys) -> None:
    assert str(keys.secret.scalar) not in repr(keys)
    assert str(keys.secret.scalar) not in repr(keys.secret)


def test_ciphertext_shape(scheme, keys) -> None:
    ct = scheme.encrypt(keys.public, 3)
    assert isinstance(ct, Ciphertext)
    assert len(ct.c1) == 32 and len(ct.c2) == 32
