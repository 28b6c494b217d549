from secure_fedavg.crypto import prg_bytes, prg_signed_ints


def test_prg_is_deterministic_and_length() -> None:
    seed = b"seed-123"
    out1 = prg_bytes(seed, 64)
    out2 = prg_bytes(seed, 64)
    assert out1 == out2
    assert len(out1) == 64
    assert prg_bytes(seed + b"x", 64) != out1


def test_prg_zero_length() -> None:
    assert prg_bytes(b"seed", 0) == b""


def test_signed_ints_stay_within_bound() -> None:
    values = prg_signed_ints(b"pair/0->1", 256, bound=3)
    assert len(values) == 256
    assert set(values) <= set(range(-3, 4))
    assert len(set(values)) > 1
    assert values == prg_signed_ints(b"pair/0->1", 256, bound=3)
