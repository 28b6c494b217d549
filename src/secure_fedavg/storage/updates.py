"""Per-cycle storage of pending client submissions."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from secure_fedavg.errors import LengthMismatch
from secure_fedavg.fixed_point import ensure_int64_vector
from secure_fedavg.state.registry import ClientId


class PlainUpdateStore:
    """Encrypted Plain-mode updates, at most one per (cycle, client)."""

    def __init__(self) -> None:
        self._updates: Dict[int, Dict[ClientId, bytes]] = {}

    def put(self, cycle: int, client_id: ClientId, ciphertext: bytes) -> None:
        """Store or overwrite the client's update for the cycle."""
        self._updates.setdefault(cycle, {})[client_id] = bytes(ciphertext)

    def get(self, cycle: int, client_id: ClientId) -> Optional[bytes]:
        return self._updates.get(cycle, {}).get(client_id)

    def for_cycle(self, cycle: int) -> Dict[ClientId, bytes]:
        return dict(self._updates.get(cycle, {}))

    def submitters(self, cycle: int) -> List[ClientId]:
        return sorted(self._updates.get(cycle, {}))

    def discard(self, cycle: int) -> None:
        self._updates.pop(cycle, None)

    def to_dict(self) -> Dict:
        return {
            str(cycle): {str(cid): base64.b64encode(blob).decode() for cid, blob in entries.items()}
            for cycle, entries in self._updates.items()
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "PlainUpdateStore":
        store = cls()
        for cycle, entries in data.items():
            for cid, blob in entries.items():
                store.put(int(cycle), int(cid), base64.b64decode(blob))
        return store


class ShareKind(str, Enum):
    S = "s"  # masked contribution
    T = "t"  # sum of masks received


@dataclass
class CycleShares:
    length: Optional[int] = None
    s: Dict[ClientId, List[int]] = field(default_factory=dict)
    t: Dict[ClientId, List[int]] = field(default_factory=dict)

    def entries(self, kind: ShareKind) -> Dict[ClientId, List[int]]:
        return self.s if kind is ShareKind.S else self.t


class MaskedShareStore:
    """
    sMPC submissions per cycle.

    The first vector accepted in a cycle, of either kind, fixes the length every
    later vector of that cycle must have. The length stays fixed even if that
    first vector is later overwritten.
    """

    def __init__(self) -> None:
        self._cycles: Dict[int, CycleShares] = {}

    def put(self, cycle: int, client_id: ClientId, kind: ShareKind, vector: Sequence[int]) -> None:
        values = ensure_int64_vector(vector, what=f"{kind.value} vector")
        if not values:
            raise LengthMismatch("Share vectors cannot be empty")
        shares = self._cycles.setdefault(cycle, CycleShares())
        if shares.length is None:
            shares.length = len(values)
        elif len(values) != shares.length:
            raise LengthMismatch(
                f"Cycle {cycle} expects vectors of length {shares.length}, got {len(values)}"
            )
        shares.entries(kind)[client_id] = values

    def shares(self, cycle: int) -> CycleShares:
        """Copy of the cycle's submissions."""
        current = self._cycles.get(cycle)
        if current is None:
            return CycleShares()
        return CycleShares(length=current.length, s=dict(current.s), t=dict(current.t))

    def expected_length(self, cycle: int) -> Optional[int]:
        current = self._cycles.get(cycle)
        return current.length if current else None

    def submitters(self, cycle: int, kind: ShareKind) -> List[ClientId]:
        current = self._cycles.get(cycle)
        if current is None:
            return []
        return sorted(current.entries(kind))

    def discard(self, cycle: int) -> None:
        self._cycles.pop(cycle, None)

    def to_dict(self) -> Dict:
        return {
            str(cycle): {
                "length": shares.length,
                "s": {str(cid): vec for cid, vec in shares.s.items()},
                "t": {str(cid): vec for cid, vec in shares.t.items()},
            }
            for cycle, shares in self._cycles.items()
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "MaskedShareStore":
        store = cls()
        for cycle, entry in data.items():
            store._cycles[int(cycle)] = CycleShares(
                length=entry.get("length"),
                s={int(cid): [int(v) for v in vec] for cid, vec in entry.get("s", {}).items()},
                t={int(cid): [int(v) for v in vec] for cid, vec in entry.get("t", {}).items()},
            )
        return store
