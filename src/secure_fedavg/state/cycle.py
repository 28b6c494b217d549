"""Training-cycle lifecycle: Open -> Aggregating -> Closed."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from secure_fedavg.errors import InvalidState, NotFound
from secure_fedavg.state.registry import ClientId


class CycleState(str, Enum):
    OPEN = "open"
    AGGREGATING = "aggregating"
    CLOSED = "closed"


@dataclass
class TrainingCycle:
    """
    One training round.

    Attributes:
        number: Monotonic cycle number starting at 0.
        state: Lifecycle state.
        participants: Registry membership snapshot taken when the cycle started.
        committed_version: Global model version produced by this cycle, if any.
            A cycle superseded while Open is Closed without a version.
    """

    number: int
    state: CycleState = CycleState.OPEN
    participants: List[ClientId] = field(default_factory=list)
    committed_version: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "number": self.number,
            "state": self.state.value,
            "participants": list(self.participants),
            "committed_version": self.committed_version,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "TrainingCycle":
        return cls(
            number=int(data["number"]),
            state=CycleState(data["state"]),
            participants=[int(p) for p in data.get("participants", [])],
            committed_version=data.get("committed_version"),
        )


class CycleManager:
    """Owns the current cycle number and gates which operations are legal."""

    def __init__(self) -> None:
        self._cycles: Dict[int, TrainingCycle] = {}
        self._current: Optional[int] = None

    @property
    def current_number(self) -> Optional[int]:
        return self._current

    def start_new_cycle(self, participants: Sequence[ClientId]) -> int:
        """
        Open the next cycle with the given participant snapshot.

        A previous cycle still Open is closed for submissions; its stored
        entries stay where they are.
        """
        if self._current is not None:
            previous = self._cycles[self._current]
            if previous.state is CycleState.AGGREGATING:
                raise InvalidState(f"Cycle {previous.number} is aggregating")
            if previous.state is CycleState.OPEN:
                previous.state = CycleState.CLOSED
            number = self._current + 1
        else:
            number = 0
        self._cycles[number] = TrainingCycle(number=number, participants=list(participants))
        self._current = number
        return number

    def current_cycle(self) -> TrainingCycle:
        if self._current is None:
            raise NotFound("No training cycle has been started")
        return self._cycles[self._current]

    def get_cycle(self, number: int) -> TrainingCycle:
        cycle = self._cycles.get(number)
        if cycle is None:
            raise NotFound(f"Unknown cycle {number}")
        return cycle

    def get_participants(self, number: int) -> List[ClientId]:
        return list(self.get_cycle(number).participants)

    def is_aggregating(self) -> bool:
        return self._current is not None and self._cycles[self._current].state is CycleState.AGGREGATING

    def require_open(self) -> int:
        """Return the current cycle number if it accepts submissions."""
        if self._current is None:
            raise InvalidState("No training cycle has been started")
        cycle = self._cycles[self._current]
        if cycle.state is not CycleState.OPEN:
            raise InvalidState(f"Cycle {cycle.number} is {cycle.state.value}, not open")
        return cycle.number

    def begin_aggregation(self) -> int:
        number = self.require_open()
        self._cycles[number].state = CycleState.AGGREGATING
        return number

    def require_aggregating(self, number: int) -> None:
        cycle = self.get_cycle(number)
        if cycle.state is not CycleState.AGGREGATING or number != self._current:
            raise InvalidState(f"Cycle {number} is no longer aggregating")

    def complete_aggregation(self, number: int, version: int) -> None:
        self.require_aggregating(number)
        cycle = self._cycles[number]
        cycle.state = CycleState.CLOSED
        cycle.committed_version = version

    def abort_aggregation(self, number: int) -> None:
        """Revert a failed aggregation so the cycle can be retried."""
        cycle = self._cycles.get(number)
        if cycle is not None and cycle.state is CycleState.AGGREGATING:
            cycle.state = CycleState.OPEN

    def to_dict(self) -> Dict:
        return {
            "current": self._current,
            "cycles": [c.to_dict() for c in sorted(self._cycles.values(), key=lambda c: c.number)],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "CycleManager":
        """Restore cycles; an aggregation interrupted by a restart reverts to Open."""
        manager = cls()
        for entry in data.get("cycles", []):
            cycle = TrainingCycle.from_dict(entry)
            if cycle.state is CycleState.AGGREGATING:
                cycle.state = CycleState.OPEN
            manager._cycles[cycle.number] = cycle
        current = data.get("current")
        manager._current = int(current) if current is not None else None
        return manager
