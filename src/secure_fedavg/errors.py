"""Error kinds reported by coordinator operations."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Distinguishes retryable conditions from input and protocol errors."""

    UNAUTHENTICATED = "unauthenticated"
    INVALID_STATE = "invalid_state"
    LENGTH_MISMATCH = "length_mismatch"
    NOT_FOUND = "not_found"
    DECRYPTION_FAILURE = "decryption_failure"
    INCOMPLETE_CYCLE = "incomplete_cycle"
    OVERFLOW = "overflow"
    KEY_DERIVATION = "key_derivation"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.INCOMPLETE_CYCLE, ErrorKind.KEY_DERIVATION)


class CoordinatorError(RuntimeError):
    """Base class for every error surfaced to callers of the coordinator."""

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "detail": self.message, "retryable": self.kind.retryable}


class Unauthenticated(CoordinatorError):
    """Caller is not registered where registration is required."""

    kind = ErrorKind.UNAUTHENTICATED


class Forbidden(Unauthenticated):
    """Caller is authenticated but not allowed to run an administrative operation."""


class InvalidState(CoordinatorError):
    """Operation is illegal for the current cycle state or mode."""

    kind = ErrorKind.INVALID_STATE


class LengthMismatch(CoordinatorError):
    """sMPC vector length disagrees with the length fixed for the cycle."""

    kind = ErrorKind.LENGTH_MISMATCH


class NotFound(CoordinatorError):
    """Unknown cycle or client."""

    kind = ErrorKind.NOT_FOUND


class DecryptionFailure(CoordinatorError):
    """Ciphertext could not be opened with the derived key."""

    kind = ErrorKind.DECRYPTION_FAILURE


class IncompleteCycle(CoordinatorError):
    """Not enough submissions to aggregate the cycle."""

    kind = ErrorKind.INCOMPLETE_CYCLE


class Overflow(CoordinatorError):
    """Fixed-point values or sums leave the signed 64-bit range."""

    kind = ErrorKind.OVERFLOW


class KeyDerivationError(CoordinatorError):
    """The key-derivation collaborator failed to produce a key."""

    kind = ErrorKind.KEY_DERIVATION


__all__ = [
    "ErrorKind",
    "CoordinatorError",
    "Unauthenticated",
    "Forbidden",
    "InvalidState",
    "LengthMismatch",
    "NotFound",
    "DecryptionFailure",
    "IncompleteCycle",
    "Overflow",
    "KeyDerivationError",
]
