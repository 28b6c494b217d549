from .model_store import (
    GlobalModelStore,
    GlobalModelVersion,
    compute_model_hash,
    verify_model_hash,
)
from .snapshot import InMemorySnapshotStore, JsonFileSnapshotStore, SnapshotStore
from .updates import CycleShares, MaskedShareStore, PlainUpdateStore, ShareKind

__all__ = [
    "GlobalModelStore",
    "GlobalModelVersion",
    "compute_model_hash",
    "verify_model_hash",
    "InMemorySnapshotStore",
    "JsonFileSnapshotStore",
    "SnapshotStore",
    "CycleShares",
    "MaskedShareStore",
    "PlainUpdateStore",
    "ShareKind",
]
