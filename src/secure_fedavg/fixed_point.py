"""Fixed-point encoding of real-valued vectors as signed 64-bit integers."""

from __future__ import annotations

from typing import Iterable, List, Sequence

import numpy as np

from secure_fedavg.config.models import DEFAULT_SMPC_SCALE
from secure_fedavg.errors import Overflow

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def fits_int64(value: int) -> bool:
    return INT64_MIN <= value <= INT64_MAX


def ensure_int64_vector(values: Iterable[int], what: str = "vector") -> List[int]:
    """Coerce to a list of Python ints, rejecting anything outside int64."""
    out: List[int] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise TypeError(f"{what} must contain integers, got {type(value).__name__}")
        value = int(value)
        if not fits_int64(value):
            raise Overflow(f"{what} element {value} is outside the signed 64-bit range")
        out.append(value)
    return out


def encode_fixed_point(values: Sequence[float], scale: int = DEFAULT_SMPC_SCALE) -> List[int]:
    """round(value * scale) per element, rounding half to even."""
    scaled = np.rint(np.asarray(values, dtype=np.float64) * float(scale))
    if not np.all(np.isfinite(scaled)):
        raise Overflow("Cannot encode non-finite values")
    # float64 cannot represent INT64_MAX exactly; compare against 2**63.
    if np.any(scaled >= 2.0**63) or np.any(scaled < -(2.0**63)):
        raise Overflow("Scaled value is outside the signed 64-bit range")
    return [int(v) for v in scaled]


def decode_fixed_point(values: Sequence[int], scale: int = DEFAULT_SMPC_SCALE) -> np.ndarray:
    return np.asarray([int(v) / scale for v in values], dtype=np.float64)
