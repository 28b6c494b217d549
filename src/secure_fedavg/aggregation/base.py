from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from secure_fedavg.config.models import AggregationMode
from secure_fedavg.errors import InvalidState
from secure_fedavg.state.container import CoordinatorState
from secure_fedavg.state.registry import ClientId
from secure_fedavg.storage.model_store import GlobalModelVersion
from secure_fedavg.utils.metrics import InMemoryMetrics, MetricsSink


@dataclass
class AggregationOutcome:
    """What a committed aggregation produced and which clients it covered."""

    cycle: int
    mode: AggregationMode
    version: GlobalModelVersion
    included: List[ClientId] = field(default_factory=list)
    skipped: List[ClientId] = field(default_factory=list)


class AggregatorBase:
    mode: AggregationMode

    def __init__(self, state: CoordinatorState, metrics: Optional[MetricsSink] = None) -> None:
        self.state = state
        self.metrics: MetricsSink = metrics if metrics is not None else InMemoryMetrics()

    def _require_mode(self) -> None:
        """Caller must hold the state lock."""
        if self.state.mode is not self.mode:
            raise InvalidState(
                f"Aggregation mode is {self.state.mode.value}, operation requires {self.mode.value}"
            )

    def _context(self, cycle: int, client_id: Optional[ClientId] = None) -> Dict[str, object]:
        """Fields for ``extra=`` so JSON logs carry cycle, mode and client."""
        context: Dict[str, object] = {"cycle": cycle, "mode": self.mode.value}
        if client_id is not None:
            context["client_id"] = client_id
        return context

    def _record_run(self, outcome: str) -> None:
        self.metrics.emit_counter("aggregation_runs_total", mode=self.mode.value, outcome=outcome)

    def _record_commit(self, version: GlobalModelVersion) -> None:
        self.metrics.emit_gauge("global_model_version", float(version.version))
