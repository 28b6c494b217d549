"""
Plain-mode aggregation: just-in-time decryption followed by federated averaging.

Each client encrypts its weight vector under a key derived for
(principal, [derivation_seed]). At aggregation time the coordinator derives the
same key, decrypts, accumulates and wipes the plaintext before moving to the
next client. Plaintext never outlives the aggregation call.

Decryption failures use the skip-and-count policy: the failing client is left
out of both the sum and the divisor, and the round still commits as long as
at least one update could be decrypted. A failure of the key-derivation
collaborator aborts the whole round.

Vector length is decided by the round, never by a single client:
- once a non-empty global model exists, its length is the expected length and
  updates of any other length are skipped;
- before that, decrypted updates are summed per length and the length shared
  by the most clients wins; the others are skipped. A tie between the largest
  groups aborts the round with LengthMismatch.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import numpy as np

from secure_fedavg.aggregation.base import AggregationOutcome, AggregatorBase
from secure_fedavg.config.models import DEFAULT_DERIVATION_SEED, AggregationMode
from secure_fedavg.crypto.aead import open_model_update
from secure_fedavg.crypto.kdf import KeyDeriver
from secure_fedavg.errors import (
    CoordinatorError,
    DecryptionFailure,
    IncompleteCycle,
    InvalidState,
    KeyDerivationError,
    LengthMismatch,
)
from secure_fedavg.state.container import CoordinatorState
from secure_fedavg.state.registry import ClientId
from secure_fedavg.utils import Timer, get_logger
from secure_fedavg.utils.metrics import MetricsSink

logger = get_logger("plain_aggregator")


@contextmanager
def scrubbed(vector: np.ndarray) -> Iterator[np.ndarray]:
    """Zero the vector on every exit path."""
    try:
        yield vector
    finally:
        vector.fill(0.0)


class PlainAggregator(AggregatorBase):
    mode = AggregationMode.PLAIN

    def __init__(
        self,
        state: CoordinatorState,
        key_deriver: KeyDeriver,
        derivation_seed: bytes = DEFAULT_DERIVATION_SEED.encode(),
        metrics: Optional[MetricsSink] = None,
    ) -> None:
        super().__init__(state, metrics)
        self.key_deriver = key_deriver
        self.derivation_seed = derivation_seed

    def derivation_path(self) -> List[bytes]:
        """Path under which update-encryption keys are derived for every client."""
        return [self.derivation_seed]

    def upload(self, principal: str, ciphertext: bytes) -> int:
        """Store or overwrite the caller's encrypted update for the open cycle."""
        with self.state.lock:
            client_id = self.state.registry.client_id_for(principal)
            self._require_mode()
            cycle = self.state.cycles.require_open()
            self.state.plain_updates.put(cycle, client_id, ciphertext)
        self.metrics.emit_counter("submissions_total", kind="plain")
        logger.debug("Stored plain update client=%d cycle=%d bytes=%d", client_id, cycle, len(ciphertext))
        return cycle

    def run(self) -> AggregationOutcome:
        with self.state.lock:
            self._require_mode()
            cycle = self.state.cycles.require_open()
            pending = self.state.plain_updates.for_cycle(cycle)
            if not pending:
                raise IncompleteCycle(f"No model updates submitted for cycle {cycle}")
            self.state.cycles.begin_aggregation()
        logger.info(
            "Plain aggregation started cycle=%d updates=%d", cycle, len(pending), extra=self._context(cycle)
        )
        try:
            with Timer(self.metrics, "aggregation_seconds", mode=self.mode.value):
                outcome = self._aggregate(cycle, pending)
        except Exception:
            with self.state.lock:
                self.state.cycles.abort_aggregation(cycle)
            self._record_run("failed")
            logger.warning("Plain aggregation failed cycle=%d; cycle reopened", cycle, extra=self._context(cycle))
            raise
        self._record_run("committed")
        self._record_commit(outcome.version)
        logger.info(
            "Plain aggregation committed cycle=%d version=%d included=%d skipped=%d",
            cycle,
            outcome.version.version,
            len(outcome.included),
            len(outcome.skipped),
            extra=self._context(cycle),
        )
        return outcome

    def _derive(self, client_id: ClientId) -> bytes:
        with self.state.lock:
            principal = self.state.registry.principal_for(client_id)
        # The lock is not held while the collaborator is called.
        try:
            return self.key_deriver.derive_key(principal, self.derivation_path())
        except CoordinatorError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise KeyDerivationError(f"Key derivation failed for client {client_id}: {exc}") from exc

    def _revalidate(self, cycle: int, client_id: ClientId, blob: bytes) -> None:
        """Caller must hold the state lock."""
        self.state.cycles.require_aggregating(cycle)
        if self.state.plain_updates.get(cycle, client_id) is not blob:
            raise InvalidState(f"Update from client {client_id} changed during aggregation of cycle {cycle}")

    def _expected_length(self) -> Optional[int]:
        weights = self.state.model_store.latest().weights
        return int(weights.size) if weights.size else None

    def _skip(self, cycle: int, client_id: ClientId, reason: str, skipped: List[ClientId]) -> None:
        logger.warning(
            "Skipping update client=%d cycle=%d: %s",
            client_id,
            cycle,
            reason,
            extra=self._context(cycle, client_id),
        )
        self.metrics.emit_counter("decryption_skips_total")
        skipped.append(client_id)

    def _select_length(self, cycle: int, groups: Dict[int, List[ClientId]]) -> int:
        if not groups:
            raise IncompleteCycle(f"No update in cycle {cycle} could be decrypted")
        ranked = sorted(groups, key=lambda length: len(groups[length]), reverse=True)
        if len(ranked) > 1 and len(groups[ranked[0]]) == len(groups[ranked[1]]):
            raise LengthMismatch(
                f"Cycle {cycle} updates disagree on vector length: "
                + ", ".join(f"{length} ({len(groups[length])} clients)" for length in sorted(groups))
            )
        return ranked[0]

    def _aggregate(self, cycle: int, pending: Dict[ClientId, bytes]) -> AggregationOutcome:
        expected = self._expected_length()
        totals: Dict[int, np.ndarray] = {}
        groups: Dict[int, List[ClientId]] = {}
        skipped: List[ClientId] = []
        try:
            for client_id in sorted(pending):
                blob = pending[client_id]
                key = self._derive(client_id)
                with self.state.lock:
                    self._revalidate(cycle, client_id, blob)
                try:
                    decrypted = open_model_update(key, blob)
                except DecryptionFailure as exc:
                    self._skip(cycle, client_id, exc.message, skipped)
                    continue
                with scrubbed(decrypted) as vector:
                    if expected is not None and vector.size != expected:
                        self._skip(cycle, client_id, f"length {vector.size}, expected {expected}", skipped)
                        continue
                    if vector.size not in totals:
                        totals[vector.size] = np.zeros_like(vector)
                    totals[vector.size] += vector
                    groups.setdefault(vector.size, []).append(client_id)
                del decrypted

            length = self._select_length(cycle, groups)
            included = groups[length]
            for other, clients in groups.items():
                if other == length:
                    continue
                for client_id in clients:
                    self._skip(cycle, client_id, f"length {other}, most updates have {length}", skipped)
            skipped.sort()
            mean = totals[length] / len(included)

            with self.state.lock:
                self.state.cycles.require_aggregating(cycle)
                version = self.state.model_store.commit(mean, cycle)
                self.state.cycles.complete_aggregation(cycle, version.version)
                self.state.plain_updates.discard(cycle)
            return AggregationOutcome(
                cycle=cycle, mode=self.mode, version=version, included=included, skipped=skipped
            )
        finally:
            for total in totals.values():
                total.fill(0.0)
