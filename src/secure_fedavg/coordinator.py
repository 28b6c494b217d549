"""Coordinator facade exposing every externally triggered operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from secure_fedavg.aggregation import AggregationOutcome, PlainAggregator, SmpcAggregator
from secure_fedavg.config.models import AggregationMode, CoordinatorConfig
from secure_fedavg.crypto.kdf import KeyDeriver
from secure_fedavg.errors import CoordinatorError, InvalidState, KeyDerivationError, Unauthenticated
from secure_fedavg.state.container import CoordinatorState
from secure_fedavg.state.cycle import CycleState
from secure_fedavg.state.registry import ClientId
from secure_fedavg.storage.model_store import GlobalModelStore, GlobalModelVersion
from secure_fedavg.storage.snapshot import JsonFileSnapshotStore, SnapshotStore
from secure_fedavg.storage.updates import ShareKind
from secure_fedavg.utils import get_logger
from secure_fedavg.utils.metrics import InMemoryMetrics, MetricsSink

logger = get_logger("coordinator")


@dataclass(frozen=True)
class CycleStatus:
    number: int
    state: CycleState
    participants: List[ClientId]
    plain_submitters: List[ClientId]
    s_submitters: List[ClientId]
    t_submitters: List[ClientId]
    vector_length: Optional[int]
    committed_version: Optional[int]


class Coordinator:
    """
    Training-cycle coordinator for secure federated averaging.

    All state lives in the CoordinatorState passed in (or created empty);
    callers identify themselves by an already authenticated principal.
    """

    def __init__(
        self,
        key_deriver: KeyDeriver,
        config: Optional[CoordinatorConfig] = None,
        state: Optional[CoordinatorState] = None,
        metrics: Optional[MetricsSink] = None,
        snapshot_store: Optional[SnapshotStore] = None,
    ) -> None:
        self.config = config or CoordinatorConfig()
        self.state = state or CoordinatorState(
            mode=self.config.aggregation_mode,
            model_store=GlobalModelStore(history_limit=self.config.history_limit),
        )
        self.metrics: MetricsSink = metrics if metrics is not None else InMemoryMetrics()
        self.key_deriver = key_deriver
        self.snapshot_store = snapshot_store
        self.plain = PlainAggregator(
            self.state,
            key_deriver,
            derivation_seed=self.config.derivation_seed_bytes,
            metrics=self.metrics,
        )
        self.smpc = SmpcAggregator(
            self.state,
            scale=self.config.smpc_scale,
            dropout_policy=self.config.smpc_dropout_policy,
            metrics=self.metrics,
        )

    @classmethod
    def from_snapshot(
        cls,
        key_deriver: KeyDeriver,
        snapshot_store: SnapshotStore,
        config: Optional[CoordinatorConfig] = None,
        metrics: Optional[MetricsSink] = None,
    ) -> "Coordinator":
        """Rebuild a coordinator from the last snapshot, or start empty if there is none."""
        config = config or CoordinatorConfig()
        snapshot = snapshot_store.load()
        state = None
        if snapshot is not None:
            state = CoordinatorState.from_dict(snapshot, history_limit=config.history_limit)
            logger.info(
                "Restored coordinator state clients=%d cycle=%s version=%d",
                len(state.registry),
                state.cycles.current_number,
                state.model_store.latest().version,
            )
        return cls(key_deriver, config=config, state=state, metrics=metrics, snapshot_store=snapshot_store)

    @classmethod
    def from_config(
        cls,
        key_deriver: KeyDeriver,
        config: CoordinatorConfig,
        metrics: Optional[MetricsSink] = None,
    ) -> "Coordinator":
        if config.state_path:
            return cls.from_snapshot(key_deriver, JsonFileSnapshotStore(config.state_path), config, metrics)
        return cls(key_deriver, config=config, metrics=metrics)

    def _persist(self) -> None:
        if self.snapshot_store is None:
            return
        try:
            self.snapshot_store.save(self.state.to_dict())
        except OSError as exc:
            logger.error("Failed to persist coordinator snapshot: %s", exc)
            raise

    # Registry

    def register(self, principal: str) -> ClientId:
        with self.state.lock:
            known = len(self.state.registry)
            client_id = self.state.registry.register(principal)
            created = len(self.state.registry) != known
        if created:
            logger.info("Registered client %d", client_id)
            self.metrics.emit_gauge("registered_clients", float(client_id + 1))
            self._persist()
        return client_id

    # Cycles

    def start_new_cycle(self) -> int:
        with self.state.lock:
            participants = self.state.registry.members()
            number = self.state.cycles.start_new_cycle(participants)
        logger.info("Started cycle %d with %d participants", number, len(participants))
        self.metrics.emit_gauge("current_cycle", float(number))
        self._persist()
        return number

    def current_cycle(self) -> CycleStatus:
        with self.state.lock:
            cycle = self.state.cycles.current_cycle()
            return self.get_cycle_status(cycle.number)

    def get_cycle_status(self, cycle: int) -> CycleStatus:
        with self.state.lock:
            entry = self.state.cycles.get_cycle(cycle)
            return CycleStatus(
                number=entry.number,
                state=entry.state,
                participants=list(entry.participants),
                plain_submitters=self.state.plain_updates.submitters(cycle),
                s_submitters=self.state.masked_shares.submitters(cycle, ShareKind.S),
                t_submitters=self.state.masked_shares.submitters(cycle, ShareKind.T),
                vector_length=self.state.masked_shares.expected_length(cycle),
                committed_version=entry.committed_version,
            )

    def get_cycle_participants(self, cycle: int) -> List[ClientId]:
        with self.state.lock:
            return self.state.cycles.get_participants(cycle)

    # Global model

    def get_global_model(self) -> GlobalModelVersion:
        # Only the model store's own lock: never waits on an aggregation.
        return self.state.model_store.latest()

    def get_global_model_history(self) -> List[GlobalModelVersion]:
        return self.state.model_store.history()

    # Mode

    def get_aggregation_mode(self) -> AggregationMode:
        with self.state.lock:
            return self.state.mode

    def set_aggregation_mode(self, mode: AggregationMode | str) -> AggregationMode:
        parsed = AggregationMode.parse(mode)
        with self.state.lock:
            if self.state.cycles.is_aggregating():
                raise InvalidState("Cannot change aggregation mode while a cycle is aggregating")
            previous = self.state.mode
            self.state.mode = parsed
        if previous is not parsed:
            logger.info("Aggregation mode changed %s -> %s", previous.value, parsed.value)
        self._persist()
        return parsed

    # Plain path

    def get_symmetric_key_for_client(self, principal: str, derivation_path: bytes) -> str:
        """Hex key for (caller, [derivation_path]); clients use it to seal updates."""
        if not principal:
            raise Unauthenticated("Anonymous callers cannot obtain keys")
        try:
            key = self.key_deriver.derive_key(principal, [bytes(derivation_path)])
        except CoordinatorError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise KeyDerivationError(f"Key derivation failed: {exc}") from exc
        return key.hex()

    def upload_model_update(self, principal: str, ciphertext: bytes) -> int:
        cycle = self.plain.upload(principal, ciphertext)
        self._persist()
        return cycle

    def run_aggregation(self) -> AggregationOutcome:
        outcome = self.plain.run()
        self._persist()
        return outcome

    # sMPC path

    def upload_masked_update_s(self, principal: str, vector: List[int]) -> int:
        cycle = self.smpc.upload_masked_update_s(principal, vector)
        self._persist()
        return cycle

    def upload_mask_sum_t(self, principal: str, vector: List[int]) -> int:
        cycle = self.smpc.upload_mask_sum_t(principal, vector)
        self._persist()
        return cycle

    def run_smpc_aggregation(self) -> AggregationOutcome:
        outcome = self.smpc.run()
        self._persist()
        return outcome
