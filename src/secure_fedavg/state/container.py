"""Single explicit container for all process-wide coordinator state."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict

from secure_fedavg.config.models import AggregationMode
from secure_fedavg.state.cycle import CycleManager
from secure_fedavg.state.registry import Registry
from secure_fedavg.storage.model_store import GlobalModelStore
from secure_fedavg.storage.updates import MaskedShareStore, PlainUpdateStore


@dataclass
class CoordinatorState:
    """
    Registry, cycle lifecycle, pending submissions, mode and global model.

    ``lock`` serializes externally triggered operations so each one observes
    and mutates the state as a unit. The global model store carries its own
    lock so readers never wait on an aggregation in progress.
    """

    registry: Registry = field(default_factory=Registry)
    cycles: CycleManager = field(default_factory=CycleManager)
    plain_updates: PlainUpdateStore = field(default_factory=PlainUpdateStore)
    masked_shares: MaskedShareStore = field(default_factory=MaskedShareStore)
    mode: AggregationMode = AggregationMode.PLAIN
    model_store: GlobalModelStore = field(default_factory=GlobalModelStore)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def to_dict(self) -> Dict:
        with self.lock:
            return {
                "registry": self.registry.to_dict(),
                "cycles": self.cycles.to_dict(),
                "plain_updates": self.plain_updates.to_dict(),
                "masked_shares": self.masked_shares.to_dict(),
                "mode": self.mode.value,
                "global_model": self.model_store.to_dict(),
            }

    @classmethod
    def from_dict(cls, data: Dict, history_limit: int = 16) -> "CoordinatorState":
        return cls(
            registry=Registry.from_dict(data.get("registry", {})),
            cycles=CycleManager.from_dict(data.get("cycles", {})),
            plain_updates=PlainUpdateStore.from_dict(data.get("plain_updates", {})),
            masked_shares=MaskedShareStore.from_dict(data.get("masked_shares", {})),
            mode=AggregationMode.parse(data.get("mode", AggregationMode.PLAIN)),
            model_store=GlobalModelStore.from_dict(data.get("global_model", {}), history_limit=history_limit),
        )
