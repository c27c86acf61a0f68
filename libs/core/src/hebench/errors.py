from __future__ import annotations

"""Error taxonomy shared by adapters, the key store and the CLI.

None of these are retried: every operation is deterministic given its inputs
and the persisted key state.
"""


class HEBenchError(RuntimeError):
    """Base class for fatal harness errors."""


class KeyStoreError(HEBenchError):
    """A key location could not be read or written."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class KeyMaterialMissing(KeyStoreError):
    """The key location does not exist (the only case that triggers keygen)."""


class KeyDeserializationError(HEBenchError):
    """A persisted key blob exists but cannot be decoded."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class SchemeCapacityError(HEBenchError, ValueError):
    """Plaintext outside the encoding range, or a search bound below the value."""
