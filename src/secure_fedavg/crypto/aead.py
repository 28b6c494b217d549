"""
AES-GCM helpers and the wire framing of encrypted Plain-mode model updates.

A model update travels as ``nonce (12 bytes) || ciphertext || tag (16 bytes)``;
the plaintext is a JSON array of numbers.
"""

import json
import math
import os
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from secure_fedavg.errors import DecryptionFailure

NONCE_BYTES = 12
TAG_BYTES = 16


@dataclass
class AeadCiphertext:
    iv: bytes
    ciphertext: bytes
    tag: bytes

    def to_bytes(self) -> bytes:
        return self.iv + self.ciphertext + self.tag

    @classmethod
    def from_bytes(cls, blob: bytes) -> "AeadCiphertext":
        if len(blob) < NONCE_BYTES + TAG_BYTES:
            raise ValueError("Payload too short to hold nonce and tag")
        return cls(iv=blob[:NONCE_BYTES], ciphertext=blob[NONCE_BYTES:-TAG_BYTES], tag=blob[-TAG_BYTES:])


def _validate_key(key: bytes) -> None:
    if len(key) not in (16, 24, 32):
        raise ValueError("AES-GCM key must be 128/192/256 bits")


def aes_gcm_encrypt(key: bytes, plaintext: bytes, aad: bytes | None = None, iv: bytes | None = None) -> AeadCiphertext:
    _validate_key(key)
    iv = iv or os.urandom(NONCE_BYTES)
    aesgcm = AESGCM(key)
    combined = aesgcm.encrypt(iv, plaintext, aad or b"")
    return AeadCiphertext(iv=iv, ciphertext=combined[:-TAG_BYTES], tag=combined[-TAG_BYTES:])


def aes_gcm_decrypt(key: bytes, iv: bytes, ciphertext: bytes, tag: bytes, aad: bytes | None = None) -> bytes:
    _validate_key(key)
    aesgcm = AESGCM(key)
    combined = ciphertext + tag
    return aesgcm.decrypt(iv, combined, aad or b"")


def wipe(buffer: bytearray) -> None:
    """Overwrite a mutable buffer with zeros."""
    for i in range(len(buffer)):
        buffer[i] = 0


def seal_model_update(key: bytes, weights: Sequence[float], iv: bytes | None = None) -> bytes:
    """Client-side: encrypt a weight vector into the update wire format."""
    payload = json.dumps([float(w) for w in weights]).encode()
    return aes_gcm_encrypt(key, payload, iv=iv).to_bytes()


def open_model_update(key: bytes, blob: bytes) -> np.ndarray:
    """
    Decrypt and decode a model update.

    Plaintext scrubbing is best effort: the mutable copy of the decrypted
    bytes is zeroed before returning, but the immutable bytes produced by the
    AEAD and the parsed JSON list are only released to the garbage collector.
    The returned array is owned by the caller, who is responsible for wiping it.

    Raises:
        DecryptionFailure: short payload, authentication failure, or a plaintext
            that is not a JSON array of finite numbers.
    """
    try:
        _validate_key(key)
    except ValueError as exc:
        raise DecryptionFailure(str(exc)) from exc
    try:
        sealed = AeadCiphertext.from_bytes(blob)
    except ValueError as exc:
        raise DecryptionFailure(str(exc)) from exc
    try:
        plaintext = bytearray(aes_gcm_decrypt(key, sealed.iv, sealed.ciphertext, sealed.tag))
    except InvalidTag as exc:
        raise DecryptionFailure("Authentication tag mismatch") from exc
    try:
        try:
            values = json.loads(plaintext)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DecryptionFailure("Plaintext is not valid JSON") from exc
        if not isinstance(values, list) or not values:
            raise DecryptionFailure("Plaintext must be a non-empty JSON array")
        for value in values:
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise DecryptionFailure("Plaintext must contain only finite numbers")
        return np.asarray(values, dtype=np.float64)
    finally:
        wipe(plaintext)
