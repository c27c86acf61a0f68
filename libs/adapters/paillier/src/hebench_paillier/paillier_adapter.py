from __future__ import annotations
import json
import secrets
from math import gcd
from typing import Optional, Tuple

from phe import paillier

from hebench import BenchConfig, DecryptContext, KeyPair, SchemeCapacityError, registry


def _random_unit(n: int) -> int:
    while True:
        r = secrets.randbelow(n - 1) + 1
        if gcd(r, n) == 1:
            return r


@registry.register("paillier")
class PaillierScheme:
    """Paillier over a composite modulus n = p*q using python-paillier.

    Ciphertext arithmetic happens modulo n^2; key generation searches for two
    primes of `bits // 2` bits each and dominates setup cost.
    """
    name = "paillier"
    label = "Paillier"
    expensive_keygen = False
    encrypts_with_secret = False

    def __init__(self, bits: Optional[int] = None) -> None:
        self._bits = int(bits) if bits is not None else BenchConfig.from_env().paillier_bits
        self.prime_bits = self._bits // 2
        self.mech = f"Paillier-{self._bits}"

    @property
    def label_suffix(self) -> str:
        return f" ({self.prime_bits}-bit primes)"

    def keygen(self) -> KeyPair:
        public_key, private_key = paillier.generate_paillier_keypair(n_length=self._bits)
        return KeyPair(secret=private_key, public=public_key)

    def _check_range(self, key: paillier.PaillierPublicKey, plaintext: int) -> int:
        m = int(plaintext)
        if abs(m) > key.max_int:
            raise SchemeCapacityError(f"Paillier plaintext exceeds max_int for a {self._bits}-bit modulus")
        return m

    def encrypt(self, key: paillier.PaillierPublicKey, plaintext: int) -> paillier.EncryptedNumber:
        return key.encrypt(self._check_range(key, plaintext))

    def encrypt_with_randomizer(
        self, key: paillier.PaillierPublicKey, plaintext: int
    ) -> Tuple[paillier.EncryptedNumber, int]:
        """Encrypt with an explicit randomizer and return it with the ciphertext."""
        m = self._check_range(key, plaintext)
        r = _random_unit(key.n)
        return key.encrypt(m, r_value=r), r

    def decrypt(
        self,
        secret_key: paillier.PaillierPrivateKey,
        ciphertext: paillier.EncryptedNumber,
        context: Optional[DecryptContext] = None,
    ) -> int:
        return int(secret_key.decrypt(ciphertext))

    def add(
        self,
        public_key: paillier.PaillierPublicKey,
        lhs: paillier.EncryptedNumber,
        rhs: paillier.EncryptedNumber,
    ) -> paillier.EncryptedNumber:
        if lhs.public_key != public_key or rhs.public_key != public_key:
            raise ValueError("Paillier operands were encrypted under a different public key")
        return lhs + rhs

    def serialize_secret(self, secret_key: paillier.PaillierPrivateKey) -> bytes:
        doc = {"n": str(secret_key.public_key.n), "p": str(secret_key.p), "q": str(secret_key.q)}
        return json.dumps(doc).encode("utf-8")

    def deserialize_secret(self, data: bytes) -> paillier.PaillierPrivateKey:
        doc = json.loads(data.decode("utf-8"))
        public_key = paillier.PaillierPublicKey(n=int(doc["n"]))
        return paillier.PaillierPrivateKey(public_key, int(doc["p"]), int(doc["q"]))

    def serialize_public(self, public_key: paillier.PaillierPublicKey) -> bytes:
        return json.dumps({"n": str(public_key.n)}).encode("utf-8")

    def deserialize_public(self, data: bytes) -> paillier.PaillierPublicKey:
        doc = json.loads(data.decode("utf-8"))
        return paillier.PaillierPublicKey(n=int(doc["n"]))
