from __future__ import annotations
"""Persistence and process-wide caching of expensive key material.

`FileKeyStore` is a flat-file byte store. `KeyCache` owns the key pair of one
scheme whose key generation is too slow to repeat per scenario: on first access
it loads both persisted blobs, or generates and persists a fresh pair when
either blob is absent. Every later access returns the same in-memory pair.
"""

import pathlib
import threading
import time
from typing import Any, Dict, Optional

from .errors import KeyDeserializationError, KeyMaterialMissing, KeyStoreError
from .interfaces import AdditiveScheme, KeyPair


class FileKeyStore:
    """Read/write whole key blobs at filesystem locations.

    Relative locations are resolved against `root` (the current working
    directory when omitted).
    """

    def __init__(self, root: str | pathlib.Path | None = None) -> None:
        self.root = pathlib.Path(root) if root is not None else None

    def resolve(self, location: str | pathlib.Path) -> pathlib.Path:
        path = pathlib.Path(location)
        if not path.is_absolute() and self.root is not None:
            path = self.root / path
        return path

    def exists(self, location: str | pathlib.Path) -> bool:
        return self.resolve(location).is_file()

    def save(self, blob: bytes, location: str | pathlib.Path) -> None:
        path = self.resolve(location)
        try:
            with path.open("wb") as f:
                f.write(bytes(blob))
        except OSError as exc:
            raise KeyStoreError(f"failed to write key file {path}: {exc}", str(path)) from exc

    def load(self, location: str | pathlib.Path) -> bytes:
        path = self.resolve(location)
        try:
            with path.open("rb") as f:
                return f.read()
        except FileNotFoundError as exc:
            raise KeyMaterialMissing(f"key file {path} does not exist", str(path)) from exc
        except OSError as exc:
            raise KeyStoreError(f"failed to read key file {path}: {exc}", str(path)) from exc

    def delete(self, location: str | pathlib.Path) -> bool:
        path = self.resolve(location)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise KeyStoreError(f"failed to delete key file {path}: {exc}", str(path)) from exc
        return True


class KeyCache:
    """Initialize-once holder of one scheme's key pair.

    States: uninitialized (`_keys is None`) -> initialized. The transition runs
    under a lock so concurrent first accesses still produce exactly one key
    generation.
    """

    def __init__(
        self,
        adapter: AdditiveScheme,
        store: FileKeyStore,
        secret_location: str | pathlib.Path,
        public_location: str | pathlib.Path,
    ) -> None:
        self.adapter = adapter
        self.store = store
        self.secret_location = secret_location
        self.public_location = public_location
        self._keys: Optional[KeyPair] = None
        self._lock = threading.Lock()
        self.source: Optional[str] = None  # 'generated' or 'loaded'
        self.init_ms: Optional[float] = None

    @property
    def initialized(self) -> bool:
        return self._keys is not None

    def get(self) -> KeyPair:
        keys = self._keys
        if keys is not None:
            return keys
        with self._lock:
            if self._keys is None:
                t0 = time.perf_counter()
                self._keys = self._initialize()
                self.init_ms = (time.perf_counter() - t0) * 1000.0
            return self._keys

    def status(self) -> Dict[str, Any]:
        """Cache state for summaries; never includes key material."""
        return {
            "initialized": self.initialized,
            "source": self.source,
            "init_ms": self.init_ms,
            "secret_location": str(self.store.resolve(self.secret_location)),
            "public_location": str(self.store.resolve(self.public_location)),
        }

    def _initialize(self) -> KeyPair:
        try:
            secret_blob = self.store.load(self.secret_location)
            public_blob = self.store.load(self.public_location)
        except KeyMaterialMissing:
            return self._generate()
        keys = KeyPair(
            secret=self._decode(self.adapter.deserialize_secret, secret_blob, self.secret_location),
            public=self._decode(self.adapter.deserialize_public, public_blob, self.public_location),
        )
        self.source = "loaded"
        print(
            f"[keycache] {self.adapter.name}: loaded keys from "
            f"{self.store.resolve(self.secret_location)}, {self.store.resolve(self.public_location)}"
        )
        return keys

    def _generate(self) -> KeyPair:
        print(f"[keycache] {self.adapter.name}: no persisted keys, generating (this can take a while)")
        keys = self.adapter.keygen()
        self.store.save(self.adapter.serialize_secret(keys.secret), self.secret_location)
        self.store.save(self.adapter.serialize_public(keys.public), self.public_location)
        self.source = "generated"
        print(
            f"[keycache] {self.adapter.name}: wrote keys to "
            f"{self.store.resolve(self.secret_location)}, {self.store.resolve(self.public_location)}"
        )
        return keys

    def _decode(self, decoder, blob: bytes, location) -> Any:
        path = str(self.store.resolve(location))
        try:
            return decoder(blob)
        except Exception as exc:
            # Stale or corrupt material must surface, never be regenerated over.
            raise KeyDeserializationError(
                f"failed to deserialize {self.adapter.name} key from {path}: {exc}", path
            ) from exc
