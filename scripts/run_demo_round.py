#!/usr/bin/env python3
"""
In-process demo: one Plain round and one sMPC round against a local coordinator.

Usage:
  pip install -e .
  python scripts/run_demo_round.py --clients 4 --length 3
"""

import argparse
import random

from secure_fedavg.aggregation import SmpcClientSession, deliver
from secure_fedavg.config import CoordinatorConfig
from secure_fedavg.coordinator import Coordinator
from secure_fedavg.crypto import HkdfKeyDeriver, seal_model_update
from secure_fedavg.utils import configure_logging, get_logger


def run_plain_round(coordinator: Coordinator, principals, gradients) -> None:
    coordinator.set_aggregation_mode("plain")
    coordinator.start_new_cycle()
    path = coordinator.config.derivation_seed_bytes
    for principal, gradient in zip(principals, gradients):
        key = bytes.fromhex(coordinator.get_symmetric_key_for_client(principal, path))
        coordinator.upload_model_update(principal, seal_model_update(key, gradient))
    coordinator.run_aggregation()


def run_smpc_round(coordinator: Coordinator, principals, gradients) -> None:
    coordinator.set_aggregation_mode("smpc")
    cycle = coordinator.start_new_cycle()
    participants = coordinator.get_cycle_participants(cycle)
    ids = [coordinator.register(p) for p in principals]
    sessions = {
        cid: SmpcClientSession(
            client_id=cid,
            participants=participants,
            gradient=gradient,
            scale=coordinator.config.smpc_scale,
        )
        for cid, gradient in zip(ids, gradients)
    }
    for session in sessions.values():
        session.sample_masks()
    deliver(sessions)
    for principal, cid in zip(principals, ids):
        coordinator.upload_masked_update_s(principal, sessions[cid].masked_share())
        coordinator.upload_mask_sum_t(principal, sessions[cid].mask_sum())
    coordinator.run_smpc_aggregation()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a Plain and an sMPC aggregation round in-process")
    parser.add_argument("--clients", type=int, default=3, help="Number of clients (default: 3)")
    parser.add_argument("--length", type=int, default=2, help="Model vector length (default: 2)")
    parser.add_argument("--seed", type=int, default=0, help="Seed for the demo gradients (default: 0)")
    args = parser.parse_args()

    configure_logging()
    logger = get_logger("demo")
    rng = random.Random(args.seed)
    principals = [f"client-{i}" for i in range(args.clients)]
    gradients = [[round(rng.uniform(-1.0, 1.0), 4) for _ in range(args.length)] for _ in principals]

    coordinator = Coordinator(HkdfKeyDeriver(), config=CoordinatorConfig())
    for principal in principals:
        coordinator.register(principal)

    run_plain_round(coordinator, principals, gradients)
    plain = coordinator.get_global_model()
    logger.info(f"Plain round -> version {plain.version}: {list(plain.weights)}")

    run_smpc_round(coordinator, principals, gradients)
    smpc = coordinator.get_global_model()
    logger.info(f"sMPC round -> version {smpc.version}: {list(smpc.weights)}")


if __name__ == "__main__":
    main()
