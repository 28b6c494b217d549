"""
Persistence of coordinator state snapshots.

- InMemorySnapshotStore: keeps the last snapshot in memory (testing)
- JsonFileSnapshotStore: JSON document on disk, replaced atomically on save
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = 1


class SnapshotStore(ABC):
    """Abstract interface for persisting the coordinator state document."""

    @abstractmethod
    def save(self, snapshot: Dict) -> None:
        """Persist the snapshot, replacing any previous one."""
        pass

    @abstractmethod
    def load(self) -> Optional[Dict]:
        """Return the last saved snapshot, or None if nothing was saved."""
        pass


class InMemorySnapshotStore(SnapshotStore):
    def __init__(self) -> None:
        self._snapshot: Optional[str] = None
        self._lock = threading.Lock()
        self.saves = 0

    def save(self, snapshot: Dict) -> None:
        encoded = json.dumps(snapshot)
        with self._lock:
            self._snapshot = encoded
            self.saves += 1

    def load(self) -> Optional[Dict]:
        with self._lock:
            if self._snapshot is None:
                return None
            return json.loads(self._snapshot)


class JsonFileSnapshotStore(SnapshotStore):
    """Snapshot stored as a JSON file; writes go through a temp file and os.replace."""

    def __init__(self, storage_path: str) -> None:
        self._storage_path = Path(storage_path)
        self._lock = threading.Lock()
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._storage_path

    def save(self, snapshot: Dict) -> None:
        document = {"format_version": SNAPSHOT_FORMAT_VERSION, "state": snapshot}
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(dir=self._storage_path.parent, prefix=".snapshot-")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(document, f)
                os.replace(tmp_name, self._storage_path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def load(self) -> Optional[Dict]:
        with self._lock:
            if not self._storage_path.exists():
                return None
            try:
                document = json.loads(self._storage_path.read_text())
            except json.JSONDecodeError as exc:
                raise ValueError(f"Corrupt state snapshot at {self._storage_path}: {exc}") from exc
        version = document.get("format_version")
        if version != SNAPSHOT_FORMAT_VERSION:
            raise ValueError(f"Unsupported snapshot format version {version}")
        logger.info(f"Loaded coordinator snapshot from {self._storage_path}")
        return document["state"]
