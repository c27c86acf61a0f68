"""Run configuration resolved from `HEBENCH_*` environment variables.

CLI options override individual fields through `BenchConfig.with_overrides`.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Tuple

DEFAULT_PAILLIER_BITS = 2048
DEFAULT_SEARCH_BOUND = 1_000_000
DEFAULT_ELGAMAL_TIERS: Tuple[int, ...] = (100, 1000, 10000)
DEFAULT_BOUND_SWEEP: Tuple[int, ...] = (1000, 10000, 100000, 1000000)
SWEEP_PLAINTEXT = 100
DEFAULT_CLIENT_KEY = "client_key.bin"
DEFAULT_SERVER_KEY = "server_key.bin"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    override = env.get(name)
    if override:
        try:
            return int(override)
        except ValueError as exc:
            raise ValueError(f"{name} must be an integer") from exc
    return default


def _env_int_list(env: Mapping[str, str], name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    override = env.get(name)
    if not override:
        return default
    try:
        values = tuple(int(part) for part in override.split(",") if part.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a comma-separated list of integers") from exc
    if not values:
        raise ValueError(f"{name} must list at least one integer")
    return values


@dataclass(frozen=True)
class BenchConfig:
    paillier_bits: int = DEFAULT_PAILLIER_BITS
    search_bound: int = DEFAULT_SEARCH_BOUND
    elgamal_tiers: Tuple[int, ...] = DEFAULT_ELGAMAL_TIERS
    bound_sweep: Tuple[int, ...] = DEFAULT_BOUND_SWEEP
    client_key_path: str = DEFAULT_CLIENT_KEY
    server_key_path: str = DEFAULT_SERVER_KEY
    seed: int = 0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BenchConfig":
        env = os.environ if env is None else env
        config = cls(
            paillier_bits=_env_int(env, "HEBENCH_PAILLIER_BITS", DEFAULT_PAILLIER_BITS),
            search_bound=_env_int(env, "HEBENCH_ELGAMAL_SEARCH_BOUND", DEFAULT_SEARCH_BOUND),
            elgamal_tiers=_env_int_list(env, "HEBENCH_ELGAMAL_TIERS", DEFAULT_ELGAMAL_TIERS),
            bound_sweep=_env_int_list(env, "HEBENCH_ELGAMAL_BOUND_SWEEP", DEFAULT_BOUND_SWEEP),
            client_key_path=env.get("HEBENCH_FHE_CLIENT_KEY") or DEFAULT_CLIENT_KEY,
            server_key_path=env.get("HEBENCH_FHE_SERVER_KEY") or DEFAULT_SERVER_KEY,
            seed=_env_int(env, "HEBENCH_SEED", 0),
        )
        config.validate()
        return config

    def with_overrides(self, **overrides) -> "BenchConfig":
        updated = replace(self, **{k: v for k, v in overrides.items() if v is not None})
        updated.validate()
        return updated

    def validate(self) -> None:
        if self.paillier_bits < 128 or self.paillier_bits % 2:
            raise ValueError("paillier_bits must be an even integer >= 128")
        if self.search_bound < 0:
            raise ValueError("search_bound must be non-negative")
        # Every tier must be recoverable under the held-fixed search bound.
        too_large = [t for t in self.elgamal_tiers if t < 0 or t > self.search_bound]
        if too_large:
            raise ValueError(
                f"ElGamal tiers {too_large} fall outside [0, search_bound={self.search_bound}]"
            )
        if any(b < SWEEP_PLAINTEXT for b in self.bound_sweep):
            raise ValueError(f"bound sweep values must be >= {SWEEP_PLAINTEXT}")
        if self.client_key_path == self.server_key_path:
            raise ValueError("client and server key locations must differ")
