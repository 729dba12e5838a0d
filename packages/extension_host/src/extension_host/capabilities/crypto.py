"""Hashing and randomness for bundles; symmetric ciphers are inert."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid
from typing import Any

from extension_host.capabilities.buffer import Buffer, decode_bytes, to_bytes
from extension_host.capabilities.streams import schedule_soon


def _algorithm(name: str) -> str:
    normalized = name.lower().replace("-", "")
    if normalized.startswith("rsa"):
        normalized = normalized.removeprefix("rsa")
    if normalized not in hashlib.algorithms_available:
        msg = f"Digest method not supported: {name}"
        raise ValueError(msg)
    return normalized


class Hash:
    """Chainable ``update`` / ``digest`` hashing object."""

    def __init__(self, algorithm: str, state: Any = None) -> None:
        self.algorithm = _algorithm(algorithm)
        self._state = state if state is not None else hashlib.new(self.algorithm)
        self._finalized = False

    def update(self, data: Any, encoding: str | None = "utf8") -> Hash:
        if self._finalized:
            msg = "Digest already called"
            raise RuntimeError(msg)
        self._state.update(to_bytes(data, encoding))
        return self

    def digest(self, encoding: str | None = None) -> str | Buffer:
        self._finalized = True
        raw = self._state.digest()
        return decode_bytes(raw, encoding) if encoding else Buffer(raw)

    def copy(self) -> Hash:
        return Hash(self.algorithm, self._state.copy())


class Hmac(Hash):
    def __init__(self, algorithm: str, key: Any) -> None:
        name = _algorithm(algorithm)
        super().__init__(name, hmac.new(to_bytes(key), digestmod=name))


class InertCipher:
    """Cipher stand-in; every output is an empty buffer."""

    def __init__(self, algorithm: str, *_: Any) -> None:
        self.algorithm = algorithm

    def update(self, data: Any, input_encoding: str | None = None, output_encoding: str | None = None) -> str | Buffer:
        return "" if output_encoding else Buffer()

    def final(self, output_encoding: str | None = None) -> str | Buffer:
        return "" if output_encoding else Buffer()

    def set_auto_padding(self, auto_padding: bool = True) -> InertCipher:
        return self

    def set_aad(self, buffer: Any) -> InertCipher:
        return self

    def set_auth_tag(self, tag: Any) -> InertCipher:
        return self

    def get_auth_tag(self) -> Buffer:
        return Buffer.alloc(16)


class CryptoModule:
    """Cryptographic helpers exposed to bundles."""

    def create_hash(self, algorithm: str) -> Hash:
        return Hash(algorithm)

    def create_hmac(self, algorithm: str, key: Any) -> Hmac:
        return Hmac(algorithm, key)

    def random_bytes(self, size: int, callback: Any = None) -> Buffer | None:
        data = Buffer(secrets.token_bytes(size))
        if callback is None:
            return data
        schedule_soon(lambda: callback(None, data))
        return None

    def random_uuid(self) -> str:
        return str(uuid.uuid4())

    def random_int(self, minimum: int, maximum: int | None = None) -> int:
        if maximum is None:
            minimum, maximum = 0, minimum
        return minimum + secrets.randbelow(maximum - minimum)

    def timing_safe_equal(self, a: Any, b: Any) -> bool:
        left, right = to_bytes(a), to_bytes(b)
        if len(left) != len(right):
            msg = "Input buffers must have the same byte length"
            raise ValueError(msg)
        return hmac.compare_digest(left, right)

    def get_hashes(self) -> list[str]:
        return sorted(hashlib.algorithms_available)

    def pbkdf2_sync(self, password: Any, salt: Any, iterations: int, keylen: int, digest: str = "sha1") -> Buffer:
        return Buffer(hashlib.pbkdf2_hmac(_algorithm(digest), to_bytes(password), to_bytes(salt), iterations, keylen))

    def scrypt_sync(self, password: Any, salt: Any, keylen: int, options: dict[str, int] | None = None) -> Buffer:
        opts = options or {}
        return Buffer(
            hashlib.scrypt(
                to_bytes(password),
                salt=to_bytes(salt),
                n=opts.get("N", 16384),
                r=opts.get("r", 8),
                p=opts.get("p", 1),
                maxmem=64 * 1024 * 1024,
                dklen=keylen,
            )
        )

    def create_cipheriv(self, algorithm: str, key: Any, iv: Any, options: Any = None) -> InertCipher:
        return InertCipher(algorithm)

    def create_decipheriv(self, algorithm: str, key: Any, iv: Any, options: Any = None) -> InertCipher:
        return InertCipher(algorithm)
