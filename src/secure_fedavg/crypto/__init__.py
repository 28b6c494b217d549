from .aead import (
    AeadCiphertext,
    aes_gcm_decrypt,
    aes_gcm_encrypt,
    open_model_update,
    seal_model_update,
    wipe,
)
from .kdf import HkdfKeyDeriver, HttpKeyDeriver, KeyDeriver
from .prg import prg_bytes, prg_signed_ints

__all__ = [
    "AeadCiphertext",
    "aes_gcm_encrypt",
    "aes_gcm_decrypt",
    "open_model_update",
    "seal_model_update",
    "wipe",
    "HkdfKeyDeriver",
    "HttpKeyDeriver",
    "KeyDeriver",
    "prg_bytes",
    "prg_signed_ints",
]
