from __future__ import annotations
"""Shared benchmarking utilities for the CLI.

Includes adapter bootstrap, the timing engine, the per-process benchmark
context (adapters plus key caches), scenario construction for every scheme,
and JSON export helpers.
"""

import copy
import inspect
import json
import math
import os
import pathlib
import platform
import random
import statistics
import subprocess
import sys
import threading
import time

import psutil

from dataclasses import dataclass, asdict, field
from typing import Callable, Dict, Any, List, Tuple, Optional, Sequence
from hebench import (
    BenchConfig,
    BenchmarkResult,
    DecryptContext,
    FileKeyStore,
    HEBenchError,
    KeyCache,
    KeyPair,
    MetricRecord,
    encryption_key,
    registry,
)
from hebench.config import SWEEP_PLAINTEXT

_MEMORY_SAMPLE_INTERVAL = 0.0015  # seconds between RSS samples
OPS = ("keygen", "encrypt", "decrypt", "add")
_HERE = pathlib.Path(__file__).resolve()

try:
    _PROJECT_ROOT = next(p for p in _HERE.parents if (p / "libs").exists())
except StopIteration:
    _PROJECT_ROOT = _HERE.parents[0]

_ADAPTER_PATHS = {
    "hebench_elgamal": _PROJECT_ROOT / "libs" / "adapters" / "elgamal" / "src",
    "hebench_paillier": _PROJECT_ROOT / "libs" / "adapters" / "paillier" / "src",
    "hebench_concrete": _PROJECT_ROOT / "libs" / "adapters" / "concrete" / "src",
}

_ENVIRONMENT_CACHE: Dict[str, Any] | None = None
_ADAPTER_IMPORT_ERRORS: Dict[str, str] = {}

try:
    _CI_Z = statistics.NormalDist().inv_cdf(0.975)
except Exception:
    _CI_Z = 1.959964


def _detect_cpu_model() -> str | None:
    system = platform.system()
    try:
        if system == "Darwin":
            out = subprocess.check_output(
                ["sysctl", "-n", "machdep.cpu.brand_string"],
                stderr=subprocess.DEVNULL,
                text=True,
            ).strip()
            if out:
                return out
        elif system == "Linux":
            cpuinfo = pathlib.Path("/proc/cpuinfo")
            if cpuinfo.exists():
                for line in cpuinfo.read_text(encoding="utf-8", errors="ignore").splitlines():
                    if line.lower().startswith("model name"):
                        return line.split(":", 1)[1].strip()
        elif system == "Windows":
            val = os.environ.get("PROCESSOR_IDENTIFIER")
            if val:
                return val
    except (OSError, subprocess.SubprocessError):
        pass
    uname = platform.uname()
    for val in (getattr(uname, "processor", ""), getattr(uname, "machine", "")):
        if val:
            return val
    return None


def _library_versions() -> Dict[str, str]:
    from importlib import metadata

    versions: Dict[str, str] = {}
    for dist in ("phe", "PyNaCl", "concrete-python"):
        try:
            versions[dist] = metadata.version(dist)
        except metadata.PackageNotFoundError:
            continue
    return versions


def _collect_environment_meta() -> Dict[str, Any]:
    global _ENVIRONMENT_CACHE
    if _ENVIRONMENT_CACHE is None:
        info: Dict[str, Any] = {}
        cpu_model = _detect_cpu_model()
        if cpu_model:
            info["cpu_model"] = cpu_model
        info["os"] = platform.platform(aliased=True)
        info["python"] = platform.python_version()
        deps = _library_versions()
        if deps:
            info["dependencies"] = deps
        _ENVIRONMENT_CACHE = info
    return copy.deepcopy(_ENVIRONMENT_CACHE)


def _compute_ci95(mean: float, samples: Sequence[float]) -> Tuple[float, float]:
    if len(samples) < 2:
        return mean, mean
    std = statistics.stdev(samples)
    if std == 0:
        return mean, mean
    margin = _CI_Z * (std / math.sqrt(len(samples)))
    return mean - margin, mean + margin


def _load_adapters() -> None:
    import importlib, importlib.util, traceback
    for mod, candidate in _ADAPTER_PATHS.items():
        spec = importlib.util.find_spec(mod)
        if spec is None and candidate.exists():
            if str(candidate) not in sys.path:
                sys.path.append(str(candidate))
            spec = importlib.util.find_spec(mod)
        if spec is None:
            _ADAPTER_IMPORT_ERRORS[mod] = "not installed"
            continue
        try:
            importlib.import_module(mod)
        except ImportError as e:
            # Optional backends (concrete-python) are simply unavailable.
            _ADAPTER_IMPORT_ERRORS[mod] = str(e)
            print(f"[adapter optional] {mod} unavailable: {e}")
        except Exception as e:
            _ADAPTER_IMPORT_ERRORS[mod] = repr(e)
            print(f"[adapter import error] {mod}: {e}")
            traceback.print_exc()
        else:
            _ADAPTER_IMPORT_ERRORS.pop(mod, None)

_load_adapters()


@dataclass
class OpStats:
    runs: int
    mean_ms: float
    min_ms: float
    max_ms: float
    median_ms: float
    stddev_ms: float
    ci95_low_ms: float
    ci95_high_ms: float
    range_ms: float
    series: List[float]
    warmup: int = 0
    # Memory footprint (per-invocation process delta / Python peak), sampled
    # in a separate pass so tracing never inflates the timing series.
    mem_mean_kb: float | None = None
    mem_max_kb: float | None = None
    mem_series_kb: List[float] | None = None


@dataclass
class Scenario:
    """One independently timed unit of measurement.

    `prepare` builds keys and inputs outside the timed region and returns the
    zero-argument operation handed to the timing engine.
    """
    label: str
    op: str  # 'keygen', 'encrypt', 'decrypt' or 'add'
    prepare: Callable[[], Callable[[], Any]]
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ScenarioResult:
    label: str
    op: str
    params: Dict[str, Any]
    stats: OpStats


@dataclass
class SchemeSummary:
    scheme: str
    label: str
    scenarios: Dict[str, ScenarioResult]
    meta: Dict[str, Any]


def _timing_stats(times: List[float], warmup: int) -> OpStats:
    mean = sum(times) / len(times)
    min_time = min(times)
    max_time = max(times)
    ci_low, ci_high = _compute_ci95(mean, times)
    return OpStats(
        runs=len(times),
        mean_ms=mean,
        min_ms=min_time,
        max_ms=max_time,
        median_ms=statistics.median(times),
        stddev_ms=statistics.pstdev(times) if len(times) > 1 else 0.0,
        ci95_low_ms=ci_low,
        ci95_high_ms=ci_high,
        range_ms=max_time - min_time,
        series=times,
        warmup=warmup,
    )


def measure(
    fn: Callable[[], Any],
    runs: int,
    *,
    warmup: int = 1,
    progress_cb: Optional[Callable[[int, int], None]] = None,
    capture_memory: bool = False,
    memory_runs: int = 3,
) -> OpStats:
    """Time `fn` over `runs` invocations after `warmup` unrecorded ones.

    Every invocation is timed individually with `time.perf_counter`. When
    `capture_memory` is set, up to `memory_runs` further invocations run under
    psutil/tracemalloc monitoring and their peaks are attached to the stats.
    """
    if runs < 1:
        raise ValueError("runs must be >= 1")
    for _ in range(max(0, warmup)):
        fn()
    times: List[float] = []
    for i in range(runs):
        t0 = time.perf_counter()
        fn()
        times.append((time.perf_counter() - t0) * 1000.0)
        if progress_cb is not None:
            try:
                progress_cb(i + 1, runs)
            except Exception:
                # Never let progress reporting break measurements
                pass
    stats = _timing_stats(times, max(0, warmup))
    if capture_memory:
        peaks = [_memory_peak_kb(fn) for _ in range(max(1, min(runs, memory_runs)))]
        stats.mem_series_kb = peaks
        stats.mem_mean_kb = sum(peaks) / len(peaks)
        stats.mem_max_kb = max(peaks)
    return stats


def _memory_peak_kb(fn: Callable[[], Any]) -> float:
    """Run `fn` once and return its peak memory delta in KB.

    The larger of the sampled RSS delta and the tracemalloc Python-heap peak
    is reported.
    """
    import gc
    import tracemalloc

    gc.collect()
    proc = psutil.Process(os.getpid())
    baseline = int(proc.memory_info().rss)
    peak_holder = [baseline]
    monitor_stop = threading.Event()

    def _monitor_peak() -> None:
        while not monitor_stop.is_set():
            try:
                sample = int(proc.memory_info().rss)
            except psutil.Error:
                break
            if sample > peak_holder[0]:
                peak_holder[0] = sample
            if monitor_stop.wait(_MEMORY_SAMPLE_INTERVAL):
                break

    monitor = threading.Thread(target=_monitor_peak, name="hebench-memmon", daemon=True)
    monitor.start()
    tracemalloc.start()
    try:
        fn()
    finally:
        _, py_peak = tracemalloc.get_traced_memory()
        tracemalloc.stop()
        monitor_stop.set()
        monitor.join(timeout=0.5)
    rss_delta_kb = max(0.0, float(peak_holder[0] - baseline)) / 1024.0
    return max(rss_delta_kb, py_peak / 1024.0)


class BenchContext:
    """Per-process benchmark state passed explicitly into the driver.

    Holds the resolved configuration, one adapter instance per scheme, and a
    `KeyCache` for every scheme whose key generation is expensive. Cheap
    schemes get a fresh key pair per scenario.
    """

    def __init__(self, config: BenchConfig | None = None, store: FileKeyStore | None = None) -> None:
        self.config = config or BenchConfig.from_env()
        self.store = store or FileKeyStore()
        self._adapters: Dict[str, Any] = {}
        self._caches: Dict[str, KeyCache] = {}
        self._rng = random.Random(self.config.seed)

    def adapter(self, name: str):
        adapter = self._adapters.get(name)
        if adapter is None:
            cls = registry.get(name)
            adapter = self._instantiate(cls)
            self._adapters[name] = adapter
        return adapter

    def _instantiate(self, cls):
        # Adapters with tunable parameters take them from the run config.
        params = inspect.signature(cls).parameters
        kwargs: Dict[str, Any] = {}
        if "search_bound" in params:
            kwargs["search_bound"] = self.config.search_bound
        if "bits" in params:
            kwargs["bits"] = self.config.paillier_bits
        return cls(**kwargs)

    def key_cache(self, name: str) -> KeyCache:
        cache = self._caches.get(name)
        if cache is None:
            cache = KeyCache(
                self.adapter(name),
                self.store,
                self.config.client_key_path,
                self.config.server_key_path,
            )
            self._caches[name] = cache
        return cache

    def keys(self, name: str) -> KeyPair:
        adapter = self.adapter(name)
        if getattr(adapter, "expensive_keygen", False):
            return self.key_cache(name).get()
        return adapter.keygen()

    def plaintexts(self, name: str) -> Tuple[int, int]:
        fixed = getattr(self.adapter(name), "fixed_plaintexts", None)
        if fixed is not None:
            return int(fixed[0]), int(fixed[1])
        return self._rng.randrange(10000), self._rng.randrange(10000)


def _expected_sum(adapter, a: int, b: int) -> int:
    modulus = getattr(adapter, "plaintext_modulus", None)
    return (a + b) % modulus if modulus else a + b


def _keygen_factory(ctx: BenchContext, name: str) -> Callable[[], Any]:
    adapter = ctx.adapter(name)

    def _op() -> None:
        adapter.keygen()

    return _op


def _encrypt_factory(ctx: BenchContext, name: str, plaintext: int) -> Callable[[], Any]:
    """Prepare keys, return op that only runs encrypt."""
    adapter = ctx.adapter(name)
    key = encryption_key(adapter, ctx.keys(name))

    def _op() -> None:
        adapter.encrypt(key, plaintext)

    return _op


def _add_factory(ctx: BenchContext, name: str, a: int, b: int) -> Callable[[], Any]:
    """Prepare keys and two ciphertexts, return op that only runs add."""
    adapter = ctx.adapter(name)
    keys = ctx.keys(name)
    enc_key = encryption_key(adapter, keys)
    c1 = adapter.encrypt(enc_key, a)
    c2 = adapter.encrypt(enc_key, b)

    def _op() -> None:
        adapter.add(keys.public, c1, c2)

    return _op


def _decrypt_sum_factory(ctx: BenchContext, name: str, a: int, b: int) -> Callable[[], Any]:
    """Prepare the homomorphic sum of `a` and `b`, return op that only decrypts it."""
    adapter = ctx.adapter(name)
    keys = ctx.keys(name)
    enc_key = encryption_key(adapter, keys)
    total = adapter.add(keys.public, adapter.encrypt(enc_key, a), adapter.encrypt(enc_key, b))
    expected = _expected_sum(adapter, a, b)
    got = adapter.decrypt(keys.secret, total)
    if got != expected:
        raise HEBenchError(f"{name}: decrypted {got}, expected {expected}; scenario parameters are wrong")

    def _op() -> None:
        adapter.decrypt(keys.secret, total)

    return _op


def _decrypt_bounded_factory(ctx: BenchContext, name: str, plaintext: int, bound: int) -> Callable[[], Any]:
    """Prepare a ciphertext of `plaintext`, return op decrypting it with search bound `bound`."""
    adapter = ctx.adapter(name)
    keys = ctx.keys(name)
    ct = adapter.encrypt(encryption_key(adapter, keys), plaintext)
    context = DecryptContext(search_bound=bound)
    got = adapter.decrypt(keys.secret, ct, context)
    if got != plaintext:
        raise HEBenchError(f"{name}: decrypted {got}, expected {plaintext}; scenario parameters are wrong")

    def _op() -> None:
        adapter.decrypt(keys.secret, ct, context)

    return _op


def build_scenarios(ctx: BenchContext, name: str) -> List[Scenario]:
    """Return the named scenarios for scheme `name`.

    Scenarios never share inputs: each `prepare` builds its own keys and
    ciphertexts, so the list can run in any order.
    """
    adapter = ctx.adapter(name)
    label = adapter.label
    suffix = getattr(adapter, "label_suffix", "")
    a, b = ctx.plaintexts(name)
    scenarios: List[Scenario] = []

    # Schemes behind a key cache generate keys once per process; there is no
    # repeatable keygen to time.
    if not getattr(adapter, "expensive_keygen", False):
        scenarios.append(Scenario(
            f"{label} Key Generation{suffix}", "keygen",
            lambda: _keygen_factory(ctx, name),
        ))
    scenarios.append(Scenario(
        f"{label} Encryption{suffix}", "encrypt",
        lambda: _encrypt_factory(ctx, name, a),
        {"plaintext": a},
    ))
    scenarios.append(Scenario(
        f"{label} Addition{suffix}", "add",
        lambda: _add_factory(ctx, name, a, b),
        {"plaintexts": [a, b]},
    ))

    if getattr(adapter, "bounded_decrypt", False):
        bound = ctx.config.search_bound
        for tier in ctx.config.elgamal_tiers:
            scenarios.append(Scenario(
                f"{label} Decryption (range = {tier}){suffix}", "decrypt",
                lambda tier=tier: _decrypt_bounded_factory(ctx, name, tier, bound),
                {"range": tier, "plaintext": tier, "search_bound": bound},
            ))
        for sweep in ctx.config.bound_sweep:
            scenarios.append(Scenario(
                f"{label} Decryption (bound = {sweep}){suffix}", "decrypt",
                lambda sweep=sweep: _decrypt_bounded_factory(ctx, name, SWEEP_PLAINTEXT, sweep),
                {"plaintext": SWEEP_PLAINTEXT, "search_bound": sweep},
            ))
    else:
        scenarios.append(Scenario(
            f"{label} Decryption{suffix}", "decrypt",
            lambda: _decrypt_sum_factory(ctx, name, a, b),
            {"plaintexts": [a, b]},
        ))
    return scenarios


def run_scenario(
    scenario: Scenario,
    runs: int,
    *,
    warmup: int = 1,
    capture_memory: bool = False,
    progress_cb: Optional[Callable[[int, int], None]] = None,
) -> ScenarioResult:
    op = scenario.prepare()
    stats = measure(op, runs, warmup=warmup, capture_memory=capture_memory, progress_cb=progress_cb)
    return ScenarioResult(label=scenario.label, op=scenario.op, params=dict(scenario.params), stats=stats)


def run_scheme(
    name: str,
    runs: int,
    *,
    context: BenchContext | None = None,
    warmup: int = 1,
    capture_memory: bool = False,
    progress: Optional[Callable[[str, int, int], None]] = None,
    only: Optional[Sequence[str]] = None,
) -> SchemeSummary:
    """Run every scenario of scheme `name` and collect their statistics.

    `only` restricts the run to scenarios whose op is listed (e.g. ['encrypt']).
    """
    unknown = sorted(set(only or ()) - set(OPS))
    if unknown:
        raise ValueError(f"unknown op(s) {unknown}; expected one of {list(OPS)}")
    ctx = context or BenchContext()
    adapter = ctx.adapter(name)
    results: Dict[str, ScenarioResult] = {}

    for scenario in build_scenarios(ctx, name):
        if only and scenario.op not in only:
            continue
        cb = None
        if progress is not None:
            cb = (lambda label: (lambda i, total: progress(label, i, total)))(scenario.label)
        results[scenario.label] = run_scenario(
            scenario,
            runs,
            warmup=warmup,
            capture_memory=capture_memory,
            progress_cb=cb,
        )

    meta: Dict[str, Any] = {
        "mechanism": getattr(adapter, "mech", None),
        "runs": runs,
        "warmup": warmup,
        "seed": ctx.config.seed,
        "environment": _collect_environment_meta(),
    }
    if getattr(adapter, "expensive_keygen", False):
        meta["key_cache"] = ctx.key_cache(name).status()
    return SchemeSummary(scheme=name, label=adapter.label, scenarios=results, meta=meta)


def summary_records(summary: SchemeSummary) -> BenchmarkResult:
    records = [
        MetricRecord(
            scheme=summary.scheme,
            scenario=result.label,
            op=result.op,
            runs=result.stats.runs,
            mean_ms=result.stats.mean_ms,
            stddev_ms=result.stats.stddev_ms,
            params=dict(result.params),
            ci95_low_ms=result.stats.ci95_low_ms,
            ci95_high_ms=result.stats.ci95_high_ms,
        )
        for result in summary.scenarios.values()
    ]
    return BenchmarkResult(records=records, notes=str(summary.meta.get("mechanism") or ""))


def _build_export_payload(summary: SchemeSummary) -> dict:
    return {
        "scheme": summary.scheme,
        "label": summary.label,
        "scenarios": {k: asdict(v) for k, v in summary.scenarios.items()},
        "meta": summary.meta,
    }


def export_json(summaries: SchemeSummary | Sequence[SchemeSummary], export_path: str | None) -> pathlib.Path | None:
    if not export_path:
        return None
    # Normalize Windows-style separators on POSIX if users pass e.g. "results\file.json"
    if "\\" in export_path and ":" not in export_path:
        export_path = export_path.replace("\\", "/")
    path = pathlib.Path(export_path)
    if not path.is_absolute():
        path = pathlib.Path.cwd() / path
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(summaries, SchemeSummary):
        payload: Any = _build_export_payload(summaries)
    else:
        payload = [_build_export_payload(s) for s in summaries]
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    return path
