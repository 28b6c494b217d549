"""
sMPC aggregation over additive pairwise masks.

Client i submits s_i = round(g_i * scale) - sum_j r_{i->j} and
t_i = sum_k r_{k->i}. Every mask appears once negated in some s and once
positive in the matching t, so sum(s) + sum(t) equals the sum of the encoded
gradients. The coordinator never sees an individual gradient or mask.

All sums are exact integer arithmetic; the only floating point operation is
the final division by (n * scale). Sums that leave the signed 64-bit range
raise Overflow.

The coordinator does not verify that the off-core mask exchange was complete
and symmetric. Under the strict dropout policy the s-submitters and
t-submitters must be the same set; under the lenient policy whatever was
submitted is summed.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from secure_fedavg.aggregation.base import AggregationOutcome, AggregatorBase
from secure_fedavg.config.models import DEFAULT_SMPC_SCALE, AggregationMode, DropoutPolicy
from secure_fedavg.errors import IncompleteCycle, Overflow
from secure_fedavg.fixed_point import decode_fixed_point, fits_int64
from secure_fedavg.state.container import CoordinatorState
from secure_fedavg.state.registry import ClientId
from secure_fedavg.storage.updates import CycleShares, ShareKind
from secure_fedavg.utils import Timer, get_logger
from secure_fedavg.utils.metrics import MetricsSink

logger = get_logger("smpc_aggregator")


def _checked_sum(vectors: Sequence[Sequence[int]], length: int, what: str) -> List[int]:
    acc = [0] * length
    for vec in vectors:
        for i, value in enumerate(vec):
            acc[i] += value
    for i, value in enumerate(acc):
        if not fits_int64(value):
            raise Overflow(f"Sum of {what} overflows signed 64-bit at index {i}")
    return acc


def combine_shares(
    s_vectors: Sequence[Sequence[int]],
    t_vectors: Sequence[Sequence[int]],
    length: int,
    scale: int = DEFAULT_SMPC_SCALE,
) -> np.ndarray:
    """Recover avg = (S + T) / n / scale with n the number of s vectors."""
    if not s_vectors:
        raise IncompleteCycle("No masked shares to combine")
    sum_s = _checked_sum(s_vectors, length, "s shares")
    sum_t = _checked_sum(t_vectors, length, "t mask sums")
    total = []
    for i, (a, b) in enumerate(zip(sum_s, sum_t)):
        value = a + b
        if not fits_int64(value):
            raise Overflow(f"Combined sum overflows signed 64-bit at index {i}")
        total.append(value)
    # Averaging folds into the fixed-point decode: one division by n * scale.
    return decode_fixed_point(total, scale=len(s_vectors) * scale)


class SmpcAggregator(AggregatorBase):
    mode = AggregationMode.SMPC

    def __init__(
        self,
        state: CoordinatorState,
        scale: int = DEFAULT_SMPC_SCALE,
        dropout_policy: DropoutPolicy = DropoutPolicy.STRICT,
        metrics: Optional[MetricsSink] = None,
    ) -> None:
        super().__init__(state, metrics)
        if scale <= 0:
            raise ValueError("scale must be positive")
        self.scale = scale
        self.dropout_policy = dropout_policy

    def upload_masked_update_s(self, principal: str, vector: Sequence[int]) -> int:
        return self._upload(principal, ShareKind.S, vector)

    def upload_mask_sum_t(self, principal: str, vector: Sequence[int]) -> int:
        return self._upload(principal, ShareKind.T, vector)

    def _upload(self, principal: str, kind: ShareKind, vector: Sequence[int]) -> int:
        with self.state.lock:
            client_id = self.state.registry.client_id_for(principal)
            self._require_mode()
            cycle = self.state.cycles.require_open()
            self.state.masked_shares.put(cycle, client_id, kind, vector)
        self.metrics.emit_counter("submissions_total", kind=f"smpc_{kind.value}")
        logger.debug("Stored %s vector client=%d cycle=%d len=%d", kind.value, client_id, cycle, len(vector))
        return cycle

    def _check_complete(self, cycle: int, shares: CycleShares) -> None:
        if not shares.s:
            raise IncompleteCycle(f"No masked shares submitted for cycle {cycle}")
        if not shares.t:
            raise IncompleteCycle(f"No mask sums submitted for cycle {cycle}")
        if self.dropout_policy is DropoutPolicy.STRICT and set(shares.s) != set(shares.t):
            missing_t = sorted(set(shares.s) - set(shares.t))
            missing_s = sorted(set(shares.t) - set(shares.s))
            raise IncompleteCycle(
                f"Cycle {cycle} submitter sets differ: missing t from {missing_t}, missing s from {missing_s}"
            )
        if set(shares.s) != set(shares.t):
            logger.warning(
                "Lenient sMPC aggregation cycle=%d with %d s-submitters and %d t-submitters",
                cycle,
                len(shares.s),
                len(shares.t),
            )

    def run(self) -> AggregationOutcome:
        with self.state.lock:
            self._require_mode()
            cycle = self.state.cycles.require_open()
            shares = self.state.masked_shares.shares(cycle)
            self._check_complete(cycle, shares)
            self.state.cycles.begin_aggregation()
            logger.info(
                "sMPC aggregation started cycle=%d s=%d t=%d",
                cycle,
                len(shares.s),
                len(shares.t),
                extra=self._context(cycle),
            )
            try:
                with Timer(self.metrics, "aggregation_seconds", mode=self.mode.value):
                    included: List[ClientId] = sorted(shares.s)
                    average = combine_shares(
                        [shares.s[cid] for cid in included],
                        [shares.t[cid] for cid in sorted(shares.t)],
                        shares.length or 0,
                        self.scale,
                    )
                    version = self.state.model_store.commit(average, cycle)
                    self.state.cycles.complete_aggregation(cycle, version.version)
                    self.state.masked_shares.discard(cycle)
            except Exception:
                self.state.cycles.abort_aggregation(cycle)
                self._record_run("failed")
                logger.warning("sMPC aggregation failed cycle=%d; cycle reopened", cycle, extra=self._context(cycle))
                raise
        self._record_run("committed")
        self._record_commit(version)
        logger.info(
            "sMPC aggregation committed cycle=%d version=%d n=%d",
            cycle,
            version.version,
            len(included),
            extra=self._context(cycle),
        )
        return AggregationOutcome(cycle=cycle, mode=self.mode, version=version, included=included)

