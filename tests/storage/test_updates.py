import pytest

from secure_fedavg.errors import LengthMismatch, Overflow
from secure_fedavg.storage import MaskedShareStore, PlainUpdateStore, ShareKind


class TestPlainUpdateStore:
    def test_overwrite_keeps_latest(self) -> None:
        store = PlainUpdateStore()
        store.put(0, 1, b"first")
        store.put(0, 1, b"second")
        assert store.for_cycle(0) == {1: b"second"}
        assert store.submitters(0) == [1]

    def test_cycles_are_separate(self) -> None:
        store = PlainUpdateStore()
        store.put(0, 0, b"a")
        store.put(1, 0, b"b")
        store.discard(0)
        assert store.for_cycle(0) == {}
        assert store.get(1, 0) == b"b"

    def test_dict_restore(self) -> None:
        store = PlainUpdateStore()
        store.put(2, 3, b"\x00\xff")
        assert PlainUpdateStore.from_dict(store.to_dict()).get(2, 3) == b"\x00\xff"


class TestMaskedShareStore:
    def test_first_vector_fixes_length(self) -> None:
        store = MaskedShareStore()
        store.put(0, 0, ShareKind.S, [1, 2, 3])
        with pytest.raises(LengthMismatch):
            store.put(0, 1, ShareKind.T, [1, 2])
        assert store.expected_length(0) == 3
        assert store.submitters(0, ShareKind.T) == []

    def test_length_stays_fixed_after_overwrite(self) -> None:
        store = MaskedShareStore()
        store.put(0, 0, ShareKind.S, [1, 2])
        with pytest.raises(LengthMismatch):
            store.put(0, 0, ShareKind.S, [1, 2, 3])
        store.put(0, 0, ShareKind.S, [5, 6])
        assert store.shares(0).s == {0: [5, 6]}

    def test_empty_vector_rejected(self) -> None:
        with pytest.raises(LengthMismatch):
            MaskedShareStore().put(0, 0, ShareKind.S, [])

    def test_out_of_range_element_rejected(self) -> None:
        with pytest.raises(Overflow):
            MaskedShareStore().put(0, 0, ShareKind.S, [2**63])

    def test_shares_returns_copy(self) -> None:
        store = MaskedShareStore()
        store.put(0, 0, ShareKind.S, [1])
        copy = store.shares(0)
        copy.s[9] = [0]
        assert store.submitters(0, ShareKind.S) == [0]

    def test_dict_restore(self) -> None:
        store = MaskedShareStore()
        store.put(1, 0, ShareKind.S, [-4, 4])
        store.put(1, 0, ShareKind.T, [4, -4])
        restored = MaskedShareStore.from_dict(store.to_dict())
        shares = restored.shares(1)
        assert shares.length == 2
        assert shares.t == {0: [4, -4]}
