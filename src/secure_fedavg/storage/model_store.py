"""
Versioned store for the aggregated global model.

Every successful aggregation commits exactly one new version. A commit builds
the complete, read-only version first and only then swaps the latest
reference, so readers never observe a partially aggregated model.
"""

import hashlib
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np


def compute_model_hash(model: np.ndarray) -> str:
    """Compute SHA256 hash of model parameters."""
    return hashlib.sha256(np.ascontiguousarray(model, dtype=np.float64).tobytes()).hexdigest()


def verify_model_hash(model: np.ndarray, expected_hash: str) -> bool:
    """Verify model integrity by comparing hashes."""
    return compute_model_hash(model) == expected_hash


def _frozen(weights: Sequence[float]) -> np.ndarray:
    arr = np.array(weights, dtype=np.float64, copy=True).reshape(-1)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class GlobalModelVersion:
    """Immutable snapshot of the global model."""

    version: int
    cycle: Optional[int]
    weights: np.ndarray
    hash: str

    def to_dict(self) -> Dict:
        return {
            "version": self.version,
            "cycle": self.cycle,
            "weights": [float(w) for w in self.weights],
            "hash": self.hash,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "GlobalModelVersion":
        weights = _frozen(data.get("weights", []))
        version = cls(
            version=int(data["version"]),
            cycle=data.get("cycle"),
            weights=weights,
            hash=compute_model_hash(weights),
        )
        expected = data.get("hash")
        if expected and expected != version.hash:
            raise ValueError(f"Hash mismatch for global model version {version.version}")
        return version


def _initial_version() -> GlobalModelVersion:
    weights = _frozen([])
    return GlobalModelVersion(version=0, cycle=None, weights=weights, hash=compute_model_hash(weights))


class GlobalModelStore:
    """Thread-safe, monotonically versioned global model with bounded history."""

    def __init__(self, history_limit: int = 16) -> None:
        if history_limit <= 0:
            raise ValueError("history_limit must be positive")
        self.history_limit = history_limit
        self._lock = threading.Lock()
        self._latest = _initial_version()
        self._history: List[GlobalModelVersion] = [self._latest]

    def latest(self) -> GlobalModelVersion:
        with self._lock:
            return self._latest

    def history(self) -> List[GlobalModelVersion]:
        with self._lock:
            return list(self._history)

    def commit(self, weights: Sequence[float], cycle: int) -> GlobalModelVersion:
        """Atomically replace the latest version."""
        frozen = _frozen(weights)
        digest = compute_model_hash(frozen)
        with self._lock:
            version = GlobalModelVersion(
                version=self._latest.version + 1,
                cycle=cycle,
                weights=frozen,
                hash=digest,
            )
            self._history.append(version)
            if len(self._history) > self.history_limit:
                del self._history[: len(self._history) - self.history_limit]
            self._latest = version
            return version

    def to_dict(self) -> Dict:
        with self._lock:
            return {"history": [v.to_dict() for v in self._history]}

    @classmethod
    def from_dict(cls, data: Dict, history_limit: int = 16) -> "GlobalModelStore":
        store = cls(history_limit=history_limit)
        history = [GlobalModelVersion.from_dict(v) for v in data.get("history", [])]
        if history:
            history.sort(key=lambda v: v.version)
            store._history = history[-history_limit:]
            store._latest = store._history[-1]
        return store
