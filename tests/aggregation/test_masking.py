import pytest

from secure_fedavg.aggregation import (
    SmpcClientSession,
    compute_mask_sum,
    compute_masked_share,
    deliver,
    generate_pairwise_masks,
)
from secure_fedavg.errors import LengthMismatch, Overflow


def test_pairwise_masks_skip_sender_and_respect_bound() -> None:
    masks = generate_pairwise_masks(1, [0, 1, 2], length=4, bound=100)
    assert sorted(masks) == [0, 2]
    for mask in masks.values():
        assert len(mask) == 4
        assert all(-100 <= v <= 100 for v in mask)


def test_seeded_masks_are_reproducible_per_pair() -> None:
    a = generate_pairwise_masks(0, [0, 1, 2], length=3, seed=b"s")
    b = generate_pairwise_masks(0, [0, 1, 2], length=3, seed=b"s")
    assert a == b
    assert a[1] != a[2]


def test_masked_share_and_mask_sum() -> None:
    assert compute_masked_share([1.5, -2.0], {1: [5, 5], 2: [1, -1]}, scale=10) == [9, -24]
    assert compute_mask_sum({0: [1, 2], 3: [3, 4]}, length=2) == [4, 6]
    assert compute_mask_sum({}, length=3) == [0, 0, 0]


def test_share_length_mismatch() -> None:
    with pytest.raises(LengthMismatch):
        compute_masked_share([1.0, 2.0], {1: [1]}, scale=1)


def test_share_overflow() -> None:
    with pytest.raises(Overflow):
        compute_masked_share([1e13], {}, scale=10**6)


def test_sessions_exchange_masks() -> None:
    sessions = {cid: SmpcClientSession(client_id=cid, participants=[0, 1, 2], gradient=[0.0, 0.0]) for cid in range(3)}
    for session in sessions.values():
        session.sample_masks()
    deliver(sessions)
    for cid, session in sessions.items():
        assert sorted(session.incoming) == [c for c in range(3) if c != cid]
        assert session.incoming[(cid + 1) % 3] == sessions[(cid + 1) % 3].outgoing[cid]

    total = [0, 0]
    for session in sessions.values():
        for i, value in enumerate(session.masked_share()):
            total[i] += value
        for i, value in enumerate(session.mask_sum()):
            total[i] += value
    assert total == [0, 0]


def test_receive_mask_checks_length() -> None:
    session = SmpcClientSession(client_id=0, participants=[0, 1], gradient=[1.0])
    with pytest.raises(LengthMismatch):
        session.receive_mask(1, [1, 2])
