"""
Key-derivation capability used by Plain-mode aggregation.

The coordinator only relies on ``derive_key(principal, derivation_path)``; it
makes no assumption about the construction behind it.

Implementations:
- HkdfKeyDeriver: local HKDF-SHA256 over a master secret (development/testing)
- HttpKeyDeriver: remote threshold key-derivation service over HTTP
"""

import binascii
import os
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from secure_fedavg.config.models import DEFAULT_KEY_ID
from secure_fedavg.errors import KeyDerivationError
from secure_fedavg.utils import get_logger

logger = get_logger("kdf")

KEY_BYTES = 32


def _frame(parts: Sequence[bytes]) -> bytes:
    """Length-prefix each component so distinct paths never collide."""
    out = bytearray()
    for part in parts:
        out += len(part).to_bytes(4, "big") + part
    return bytes(out)


class KeyDeriver(ABC):
    """Derives a client-specific symmetric key from a principal and a path."""

    @abstractmethod
    def derive_key(self, principal: str, derivation_path: Sequence[bytes]) -> bytes:
        """Return key material or raise KeyDerivationError."""
        pass


class HkdfKeyDeriver(KeyDeriver):
    """
    Local key deriver using HKDF-SHA256.

    Every key is bound to the key id, the principal and each path component.
    """

    def __init__(self, master_secret: Optional[bytes] = None, key_id: str = DEFAULT_KEY_ID) -> None:
        self._master_secret = master_secret if master_secret is not None else os.urandom(32)
        if len(self._master_secret) < 16:
            raise ValueError("master_secret must be at least 128 bits")
        self.key_id = key_id

    def derive_key(self, principal: str, derivation_path: Sequence[bytes]) -> bytes:
        if not principal:
            raise KeyDerivationError("Principal is required for key derivation")
        info = _frame([b"secure-fedavg/kdf", principal.encode(), *[bytes(p) for p in derivation_path]])
        hkdf = HKDF(algorithm=hashes.SHA256(), length=KEY_BYTES, salt=self.key_id.encode(), info=info)
        return hkdf.derive(self._master_secret)


class HttpKeyDeriver(KeyDeriver):
    """
    Key deriver backed by a remote key-derivation service.

    Expects ``POST {base_url}/derive_key`` with a JSON body holding ``key_id``,
    ``principal`` and hex-encoded ``derivation_path`` components, answering with
    ``{"key": "<hex>"}``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8100",
        key_id: str = DEFAULT_KEY_ID,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self.key_id = key_id
        self._client = client or httpx.Client(timeout=timeout)

    def derive_key(self, principal: str, derivation_path: Sequence[bytes]) -> bytes:
        try:
            response = self._client.post(
                f"{self._base_url}/derive_key",
                json={
                    "key_id": self.key_id,
                    "principal": principal,
                    "derivation_path": [bytes(p).hex() for p in derivation_path],
                },
            )
            response.raise_for_status()
            key = binascii.unhexlify(response.json()["key"])
        except httpx.HTTPError as e:
            logger.error(f"Key derivation request failed: {e}")
            raise KeyDerivationError(f"Key derivation request failed: {e}") from e
        except (KeyError, ValueError, binascii.Error) as e:
            raise KeyDerivationError(f"Malformed key derivation response: {e}") from e
        if not key:
            raise KeyDerivationError("Key derivation service returned an empty key")
        return key

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
