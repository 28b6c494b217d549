from .cycle import CycleManager, CycleState, TrainingCycle
from .registry import ClientId, Registry

__all__ = [
    "ClientId",
    "CycleManager",
    "CycleState",
    "Registry",
    "TrainingCycle",
]
