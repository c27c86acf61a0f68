from .interfaces import AdditiveScheme, DecryptContext, KeyPair, encryption_key
from .registry import registry
from .metrics import MetricRecord, BenchmarkResult
from .config import BenchConfig
from .errors import (
    HEBenchError,
    KeyDeserializationError,
    KeyMaterialMissing,
    KeyStoreError,
    SchemeCapacityError,
)
from .keystore import FileKeyStore, KeyCache

__all__ = [
    "AdditiveScheme",
    "DecryptContext",
    "KeyPair",
    "encryption_key",
    "registry",
    "MetricRecord",
    "BenchmarkResult",
    "BenchConfig",
    "HEBenchError",
    "KeyDeserializationError",
    "KeyMaterialMissing",
    "KeyStoreError",
    "SchemeCapacityError",
    "FileKeyStore",
    "KeyCache",
]
