import numpy as np
import pytest

from secure_fedavg.errors import Overflow
from secure_fedavg.fixed_point import (
    INT64_MAX,
    INT64_MIN,
    decode_fixed_point,
    encode_fixed_point,
    ensure_int64_vector,
    fits_int64,
)


def test_encode_rounds_half_to_even() -> None:
    assert encode_fixed_point([0.5, 1.5, -2.5, 1.25], scale=1) == [0, 2, -2, 1]
    assert encode_fixed_point([1.0, -0.000001], scale=1_000_000) == [1_000_000, -1]


def test_decode_inverts_encode_within_resolution() -> None:
    values = [3.141592, -2.718281, 0.0]
    decoded = decode_fixed_point(encode_fixed_point(values), scale=1_000_000)
    assert decoded.dtype == np.float64
    np.testing.assert_allclose(decoded, values, atol=1e-6)


def test_decode_divides_exact_integers() -> None:
    # Sums beyond 2**53 still divide from the exact Python int.
    np.testing.assert_allclose(decode_fixed_point([2**60], scale=2**10), [2.0**50])


@pytest.mark.parametrize("value", [float("inf"), float("nan"), 1e13])
def test_encode_overflow(value: float) -> None:
    with pytest.raises(Overflow):
        encode_fixed_point([value], scale=1_000_000)


def test_int64_bounds() -> None:
    assert fits_int64(INT64_MAX) and fits_int64(INT64_MIN)
    assert not fits_int64(INT64_MAX + 1)
    assert ensure_int64_vector([np.int64(3), 4]) == [3, 4]
    with pytest.raises(Overflow):
        ensure_int64_vector([INT64_MIN - 1])
    with pytest.raises(TypeError):
        ensure_int64_vector([1.0])
