import json

import pytest

from secure_fedavg.storage import InMemorySnapshotStore, JsonFileSnapshotStore


class TestJsonFileSnapshotStore:
    def test_missing_file_loads_none(self, tmp_path) -> None:
        assert JsonFileSnapshotStore(str(tmp_path / "state.json")).load() is None

    def test_save_then_load(self, tmp_path) -> None:
        store = JsonFileSnapshotStore(str(tmp_path / "nested" / "state.json"))
        store.save({"mode": "smpc"})
        store.save({"mode": "plain"})
        assert store.load() == {"mode": "plain"}
        assert [p.name for p in store.path.parent.iterdir()] == ["state.json"]

    def test_corrupt_file_raises(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            JsonFileSnapshotStore(str(path)).load()

    def test_unknown_format_version_raises(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"format_version": 99, "state": {}}))
        with pytest.raises(ValueError):
            JsonFileSnapshotStore(str(path)).load()


def test_in_memory_snapshot_is_detached() -> None:
    store = InMemorySnapshotStore()
    snapshot = {"registry": {"principals": ["a"]}}
    store.save(snapshot)
    snapshot["registry"]["principals"].append("b")
    assert store.load() == {"registry": {"principals": ["a"]}}
    assert store.saves == 1
