
from hebench import registry
from hebench_cli.runners.common import measure


def _noop() -> None:
    return None

def test_registry_has_schemes():
    items = registry.list()
    assert "elgamal" in items
    assert "paillier" in items


def test_measure_reports_extended_stats():
    stats = measure(_noop, runs=3)
    assert stats.runs == 3
    assert len(stats.series) == 3
    assert stats.median_ms >= 0.0
    assert stats.range_ms >= 0.0
    assert stats.stddev_ms >= 0.0
    assert stats.ci95_low_ms <= stats.mean_ms <= stats.ci95_high_ms
    assert stats.mem_mean_kb is None
    assert stats.mem_series_kb is None


def test_measure_counts_warmup_separately():
    calls = []
    stats = measure(lambda: calls.append(1), runs=4, warmup=2)
    assert len(calls) == 6
    assert stats.runs == 4
    assert stats.warmup == 2


def test_measure_memory_pass_is_separate():
    calls = []
    stats = measure(lambda: calls.append(bytearray(1024)), runs=2, warmup=0, capture_memory=True)
    assert len(stats.series) == 2
    assert stats.mem_series_kb is not None
    assert len(stats.mem_series_kb) == 2
    assert stats.mem_max_kb >= stats.mem_mean_kb >= 0.0
    assert len(calls) == 4


def test_measure_rejects_zero_runs():
    import pytest

    with pytest.raises(ValueError):
        measure(_noop, runs=0)
