from __future__ import annotations
from typing import List, Optional

import typer

from hebench import BenchConfig, DecryptContext, HEBenchError, encryption_key, registry
from .runners.common import (
    BenchContext,
    SchemeSummary,
    _ADAPTER_IMPORT_ERRORS,
    _load_adapters,
    export_json,
    run_scheme,
)

app = typer.Typer(add_completion=False, help="Additive homomorphic encryption benchmark CLI")


def _context(
    *,
    paillier_bits: Optional[int] = None,
    search_bound: Optional[int] = None,
    seed: Optional[int] = None,
) -> BenchContext:
    config = BenchConfig.from_env().with_overrides(
        paillier_bits=paillier_bits,
        search_bound=search_bound,
        seed=seed,
    )
    return BenchContext(config)


def _print_summary(summary: SchemeSummary) -> None:
    typer.echo(f"== {summary.label} ({summary.scheme}) ==")
    width = max((len(label) for label in summary.scenarios), default=10)
    typer.echo(f"{'scenario'.ljust(width)}  {'mean ms':>12}  {'median ms':>12}  {'stddev ms':>12}")
    for label, result in summary.scenarios.items():
        s = result.stats
        typer.echo(f"{label.ljust(width)}  {s.mean_ms:12.4f}  {s.median_ms:12.4f}  {s.stddev_ms:12.4f}")
    cache = summary.meta.get("key_cache")
    if cache and not cache["initialized"]:
        typer.echo(f"key cache: not initialized ({cache['secret_location']})")
    elif cache:
        typer.echo(f"key cache: {cache['source']} in {cache['init_ms']:.1f} ms ({cache['secret_location']})")


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command("list-schemes")
def list_schemes():
    """List registered schemes available via adapters."""
    _load_adapters()
    for name, cls in registry.list().items():
        typer.echo(f"- {name}: {getattr(cls, 'label', name)}")
    for mod, reason in _ADAPTER_IMPORT_ERRORS.items():
        typer.echo(f"  (unavailable: {mod}: {reason})", err=True)


@app.command()
def demo(name: str, a: Optional[int] = typer.Option(None, help="First plaintext."), b: Optional[int] = typer.Option(None, help="Second plaintext.")):
    """Encrypt two values, add them homomorphically and decrypt the sum."""
    _load_adapters()
    try:
        ctx = _context()
        adapter = ctx.adapter(name)
        default_a, default_b = ctx.plaintexts(name)
        a = default_a if a is None else a
        b = default_b if b is None else b
        pair = ctx.keys(name)
        enc_key = encryption_key(adapter, pair)
        total = adapter.add(pair.public, adapter.encrypt(enc_key, a), adapter.encrypt(enc_key, b))
        context = DecryptContext(search_bound=ctx.config.search_bound)
        result = adapter.decrypt(pair.secret, total, context)
    except (KeyError, ValueError, HEBenchError) as exc:
        _fail(exc)
    modulus = getattr(adapter, "plaintext_modulus", None)
    expected = (a + b) % modulus if modulus else a + b
    typer.echo(f"[{name}] {a} + {b} -> {result} ({'ok' if result == expected else 'MISMATCH'})")
    if result != expected:
        raise typer.Exit(code=1)


@app.command()
def run(
    name: str,
    runs: int = typer.Option(20, min=1, help="Timed invocations per scenario."),
    warmup: int = typer.Option(2, min=0, help="Untimed invocations before timing."),
    export: Optional[str] = typer.Option(None, help="Write a JSON summary to this path."),
    memory: bool = typer.Option(False, "--memory/--no-memory", help="Sample memory peaks after timing."),
    op: Optional[List[str]] = typer.Option(None, "--op", help="Restrict to keygen/encrypt/decrypt/add (repeatable)."),
    paillier_bits: Optional[int] = typer.Option(None, help="Paillier modulus size (overrides HEBENCH_PAILLIER_BITS)."),
    search_bound: Optional[int] = typer.Option(None, help="ElGamal search bound (overrides HEBENCH_ELGAMAL_SEARCH_BOUND)."),
    seed: Optional[int] = typer.Option(None, help="Plaintext RNG seed (overrides HEBENCH_SEED)."),
):
    """Run every scenario of one scheme."""
    _load_adapters()
    try:
        ctx = _context(paillier_bits=paillier_bits, search_bound=search_bound, seed=seed)
        summary = run_scheme(name, runs, context=ctx, warmup=warmup, capture_memory=memory, only=op)
    except (KeyError, ValueError, HEBenchError) as exc:
        _fail(exc)
    _print_summary(summary)
    path = export_json(summary, export)
    if path is not None:
        typer.echo(f"exported {path}")


@app.command("run-all")
def run_all(
    runs: int = typer.Option(20, min=1, help="Timed invocations per scenario."),
    warmup: int = typer.Option(2, min=0, help="Untimed invocations before timing."),
    export: Optional[str] = typer.Option(None, help="Write a JSON array of summaries to this path."),
    memory: bool = typer.Option(False, "--memory/--no-memory", help="Sample memory peaks after timing."),
):
    """Run every registered scheme with one shared context."""
    _load_adapters()
    summaries: List[SchemeSummary] = []
    try:
        ctx = _context()
        for name in registry.list():
            summary = run_scheme(name, runs, context=ctx, warmup=warmup, capture_memory=memory)
            _print_summary(summary)
            summaries.append(summary)
    except (ValueError, HEBenchError) as exc:
        _fail(exc)
    path = export_json(summaries, export)
    if path is not None:
        typer.echo(f"exported {path}")


@app.command()
def keys(
    clear: bool = typer.Option(False, "--clear", help="Delete persisted keys so the next run regenerates them."),
):
    """Show (or clear) the persisted key locations of the cached FHE scheme."""
    try:
        ctx = _context()
    except ValueError as exc:
        _fail(exc)
    for location in (ctx.config.client_key_path, ctx.config.server_key_path):
        path = ctx.store.resolve(location)
        if clear:
            try:
                removed = ctx.store.delete(location)
            except HEBenchError as exc:
                _fail(exc)
            typer.echo(f"{path}: {'deleted' if removed else 'absent'}")
        else:
            typer.echo(f"{path}: {'present' if ctx.store.exists(location) else 'absent'}")


def app_main():
    app()

if __name__ == "__main__":
    app_main()
