import threading

import numpy as np
import pytest

from secure_fedavg.storage import GlobalModelStore, GlobalModelVersion, compute_model_hash, verify_model_hash


class TestGlobalModelStore:
    def test_initial_version(self) -> None:
        latest = GlobalModelStore().latest()
        assert latest.version == 0
        assert latest.cycle is None
        assert latest.weights.size == 0

    def test_commit_increments_version(self) -> None:
        store = GlobalModelStore()
        v1 = store.commit([1.0, 2.0], cycle=0)
        v2 = store.commit([3.0, 4.0], cycle=1)
        assert (v1.version, v2.version) == (1, 2)
        assert store.latest() is v2
        assert verify_model_hash(v2.weights, v2.hash)

    def test_committed_weights_are_read_only_copies(self) -> None:
        store = GlobalModelStore()
        source = np.array([1.0, 2.0])
        version = store.commit(source, cycle=0)
        source[0] = 99.0
        assert version.weights[0] == 1.0
        with pytest.raises(ValueError):
            version.weights[0] = 5.0

    def test_history_is_bounded(self) -> None:
        store = GlobalModelStore(history_limit=2)
        for cycle in range(4):
            store.commit([float(cycle)], cycle=cycle)
        assert [v.version for v in store.history()] == [3, 4]

    def test_concurrent_readers_see_whole_versions(self) -> None:
        """Readers only ever see a version whose hash matches its weights."""
        store = GlobalModelStore()
        stop = threading.Event()
        bad = []

        def reader() -> None:
            while not stop.is_set():
                latest = store.latest()
                if latest.weights.size and not verify_model_hash(latest.weights, latest.hash):
                    bad.append(latest.version)

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        for i in range(200):
            store.commit(np.full(64, float(i)), cycle=i)
        stop.set()
        for t in threads:
            t.join()
        assert bad == []
        assert store.latest().version == 200

    def test_dict_round_trip_and_tamper_detection(self) -> None:
        store = GlobalModelStore()
        store.commit([0.5, -0.5], cycle=3)
        restored = GlobalModelStore.from_dict(store.to_dict())
        assert restored.latest().version == 1
        assert restored.latest().cycle == 3

        data = store.latest().to_dict()
        data["weights"][0] = 7.0
        with pytest.raises(ValueError):
            GlobalModelVersion.from_dict(data)

    def test_hash_is_stable(self) -> None:
        assert compute_model_hash(np.array([1.0])) == compute_model_hash([1.0])
