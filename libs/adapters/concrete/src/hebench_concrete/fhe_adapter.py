from __future__ import annotations
import itertools
from typing import Any, Optional

from concrete import fhe

from hebench import DecryptContext, KeyPair, SchemeCapacityError, registry

UINT8_MAX = 255


def _add(x, y):
    return x + y


def _inputset():
    # Cover the whole uint8 input domain at the extremes plus a coarse grid
    edges = [0, 1, 127, 128, 254, 255]
    grid = range(0, 256, 17)
    return sorted(set(itertools.product(edges, edges)) | set(itertools.product(grid, grid)))


@registry.register("fhe-uint8")
class FheUint8:
    """8-bit unsigned integer addition through a compiled concrete circuit.

    Secret-role material is the full client key set (used for encryption and
    decryption); public-role material is the evaluation key set the server
    needs to run the addition circuit. Key generation takes seconds, so the
    driver obtains keys from a persistent `KeyCache` only.
    """
    name = "fhe-uint8"
    label = "FHE"
    expensive_keygen = True
    encrypts_with_secret = True
    fixed_plaintexts = (15, 27)
    plaintext_modulus = UINT8_MAX + 1

    def __init__(self) -> None:
        self.mech = "concrete-TFHE-uint8"
        self._circuit: Optional[fhe.Circuit] = None

    @property
    def circuit(self) -> fhe.Circuit:
        if self._circuit is None:
            compiler = fhe.Compiler(_add, {"x": "encrypted", "y": "encrypted"})
            configuration = fhe.Configuration(single_precision=True, show_progress=False)
            self._circuit = compiler.compile(_inputset(), configuration=configuration)
        return self._circuit

    def _client(self, keys: fhe.Keys) -> fhe.Client:
        client = self.circuit.client
        if client.keys is not keys:
            client.keys = keys
        return client

    def keygen(self) -> KeyPair:
        keys = fhe.Keys(self.circuit.client.specs)
        keys.generate(force=True)
        return KeyPair(secret=keys, public=keys.evaluation)

    def encrypt(self, key: fhe.Keys, plaintext: int) -> fhe.Value:
        m = int(plaintext)
        if not 0 <= m <= UINT8_MAX:
            raise SchemeCapacityError(f"FHE plaintext {m} outside [0, {UINT8_MAX}]")
        encrypted, _ = self._client(key).encrypt(m, None)
        return encrypted

    def decrypt(self, secret_key: fhe.Keys, ciphertext: fhe.Value, context: Optional[DecryptContext] = None) -> int:
        return int(self._client(secret_key).decrypt(ciphertext)) % self.plaintext_modulus

    def add(self, public_key: fhe.EvaluationKeys, lhs: fhe.Value, rhs: fhe.Value) -> fhe.Value:
        return self.circuit.server.run(lhs, rhs, evaluation_keys=public_key)

    def serialize_secret(self, secret_key: fhe.Keys) -> bytes:
        return secret_key.serialize()

    def deserialize_secret(self, data: bytes) -> fhe.Keys:
        keys = fhe.Keys.deserialize(bytes(data))
        # Compile and bind here so loaded keys never leave compilation to the
        # first timed encrypt.
        self._client(keys)
        return keys

    def serialize_public(self, public_key: fhe.EvaluationKeys) -> bytes:
        return public_key.serialize()

    def deserialize_public(self, data: bytes) -> Any:
        return fhe.EvaluationKeys.deserialize(bytes(data))
