
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, List

"""Lightweight benchmark result containers used for flat exports.

The CLI returns per-scenario timing summaries; these dataclasses flatten them
into one record per (scheme, scenario) for CSV/JSON aggregation.
"""

@dataclass
class MetricRecord:
    scheme: str
    scenario: str  # e.g. 'Paillier Encryption (1024-bit primes)'
    op: str  # 'keygen', 'encrypt', 'decrypt' or 'add'
    runs: int
    mean_ms: float
    stddev_ms: float
    params: Dict[str, Any] = field(default_factory=dict)
    ci95_low_ms: float | None = None
    ci95_high_ms: float | None = None

@dataclass
class BenchmarkResult:
    records: List[MetricRecord]
    notes: str = ""

    def for_scheme(self, scheme: str) -> List[MetricRecord]:
        return [r for r in self.records if r.scheme == scheme]
