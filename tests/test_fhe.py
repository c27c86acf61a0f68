from __future__ import annotations

from pathlib import Path

import pytest

pytest.importorskip("concrete.fhe")

from hebench import BenchConfig, FileKeyStore, KeyCache, SchemeCapacityError, encryption_key  # noqa: E402

from hebench_concrete import FheUint8  # noqa: E402
from hebench_cli.runners.common import BenchContext, build_scenarios, run_scenario  # noqa: E402


@pytest.fixture(scope="module")
def scheme() -> FheUint8:
    return FheUint8()


@pytest.fixture(scope="module")
def cached(scheme: FheUint8, tmp_path_factory: pytest.TempPathFactory):
    root = tmp_path_factory.mktemp("fhe-keys")
    cache = KeyCache(scheme, FileKeyStore(root), "client_key.bin", "server_key.bin")
    return root, cache, cache.get()


def test_add_15_and_27(scheme, cached) -> None:
    _, _, keys = cached
    enc_key = encryption_key(scheme, keys)
    total = scheme.add(keys.public, scheme.encrypt(enc_key, 15), scheme.encrypt(enc_key, 27))
    assert scheme.decrypt(keys.secret, total) == 42


def test_round_trip(scheme, cached) -> None:
    _, _, keys = cached
    assert scheme.decrypt(keys.secret, scheme.encrypt(keys.secret, 200)) == 200


def test_plaintext_outside_uint8_rejected(scheme, cached) -> None:
    _, _, keys = cached
    with pytest.raises(SchemeCapacityError):
        scheme.encrypt(keys.secret, 256)


def test_second_run_loads_the_same_keys(scheme, cached) -> None:
    root, cache, keys = cached
    assert cache.source == "generated"
    assert (root / "client_key.bin").is_file()
    ct = scheme.encrypt(keys.secret, 99)
    before = scheme.decrypt(keys.secret, ct)

    later_scheme = FheUint8()
    later = KeyCache(later_scheme, FileKeyStore(root), "client_key.bin", "server_key.bin")
    loaded = later.get()

    assert later.source == "loaded"
    assert later_scheme.decrypt(loaded.secret, ct) == before == 99


def test_reloaded_keys_compile_before_timed_encrypt(cached) -> None:
    root, _, _ = cached
    config = BenchConfig(
        client_key_path=str(root / "client_key.bin"),
        server_key_path=str(root / "server_key.bin"),
    )
    ctx = BenchContext(config)
    scenario = next(s for s in build_scenarios(ctx, "fhe-uint8") if s.op == "encrypt")
    adapter = ctx.adapter("fhe-uint8")
    assert adapter._circuit is None

    result = run_scenario(scenario, 3, warmup=0)

    assert ctx.key_cache("fhe-uint8").source == "loaded"
    assert adapter._circuit is not None
    assert result.stats.runs == 3
    # Compilation takes far longer than one encryption; it must not land in the series.
    assert result.stats.series[0] < 20 * max(result.stats.median_ms, 1.0)
