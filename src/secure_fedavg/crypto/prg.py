"""
Seeded pseudo-random expansion for pairwise masks.

AES-256-CTR keyed by HKDF-SHA256 over the seed. Two parties holding the same
seed expand it to the same mask without exchanging the mask itself.
"""

from typing import List

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

PRG_INFO = b"secure-fedavg/mask-prg"
# 8 bytes per coordinate keeps the modulo bias below 2**-23 for bounds up to 2**40.
BYTES_PER_INT = 8


def _keystream(seed: bytes, length: int) -> bytes:
    material = HKDF(algorithm=hashes.SHA256(), length=48, salt=None, info=PRG_INFO).derive(seed)
    encryptor = Cipher(algorithms.AES(material[:32]), modes.CTR(material[32:])).encryptor()
    return encryptor.update(b"\x00" * length) + encryptor.finalize()


def prg_bytes(seed: bytes, length: int) -> bytes:
    """Deterministic byte stream: same seed and length, same output."""
    if length < 0:
        raise ValueError("length must be non-negative")
    if length == 0:
        return b""
    return _keystream(seed, length)


def prg_signed_ints(seed: bytes, count: int, bound: int) -> List[int]:
    """Expand a seed into ``count`` integers in [-bound, bound]."""
    if bound <= 0:
        raise ValueError("bound must be positive")
    stream = prg_bytes(seed, count * BYTES_PER_INT)
    span = 2 * bound + 1
    return [
        int.from_bytes(stream[i : i + BYTES_PER_INT], byteorder="big") % span - bound
        for i in range(0, len(stream), BYTES_PER_INT)
    ]
