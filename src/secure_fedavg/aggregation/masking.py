"""
Client-side helpers for the sMPC protocol.

These run off-core, on the clients: they sample pairwise masks r_{i->j},
build s_i from a gradient and the outgoing masks, and t_i from the incoming
ones. They live here so clients, examples and tests share one encoding.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from secure_fedavg.config.models import DEFAULT_SMPC_SCALE
from secure_fedavg.crypto.prg import prg_signed_ints
from secure_fedavg.errors import LengthMismatch, Overflow
from secure_fedavg.fixed_point import encode_fixed_point, fits_int64
from secure_fedavg.state.registry import ClientId

# Keeps any realistic number of participants far away from int64 overflow.
DEFAULT_MASK_BOUND = 2**40


def generate_pairwise_masks(
    sender: ClientId,
    participants: Sequence[ClientId],
    length: int,
    bound: int = DEFAULT_MASK_BOUND,
    seed: Optional[bytes] = None,
) -> Dict[ClientId, List[int]]:
    """
    Sample r_{sender->j} for every other participant j.

    With a seed the masks are deterministic (per sender/recipient pair);
    without one they come from the OS CSPRNG.
    """
    if length <= 0:
        raise ValueError("length must be positive")
    if bound <= 0:
        raise ValueError("bound must be positive")
    masks: Dict[ClientId, List[int]] = {}
    for recipient in participants:
        if recipient == sender:
            continue
        if seed is not None:
            pair_seed = seed + f"/{sender}->{recipient}".encode()
            masks[recipient] = prg_signed_ints(pair_seed, length, bound)
        else:
            masks[recipient] = [secrets.randbelow(2 * bound + 1) - bound for _ in range(length)]
    return masks


def _vector_add(a: Sequence[int], b: Sequence[int]) -> List[int]:
    if len(a) != len(b):
        raise LengthMismatch("Vector lengths must match")
    return [x + y for x, y in zip(a, b)]


def _vector_sub(a: Sequence[int], b: Sequence[int]) -> List[int]:
    if len(a) != len(b):
        raise LengthMismatch("Vector lengths must match")
    return [x - y for x, y in zip(a, b)]


def _checked(vector: List[int], what: str) -> List[int]:
    for value in vector:
        if not fits_int64(value):
            raise Overflow(f"{what} leaves the signed 64-bit range")
    return vector


def compute_masked_share(
    gradient: Sequence[float],
    outgoing_masks: Mapping[ClientId, Sequence[int]],
    scale: int = DEFAULT_SMPC_SCALE,
) -> List[int]:
    """s_i = round(gradient * scale) - sum_j r_{i->j}."""
    share = encode_fixed_point(gradient, scale)
    for recipient in sorted(outgoing_masks):
        share = _vector_sub(share, outgoing_masks[recipient])
    return _checked(share, "masked share")


def compute_mask_sum(incoming_masks: Mapping[ClientId, Sequence[int]], length: int) -> List[int]:
    """t_i = sum_k r_{k->i}; a client with no incoming masks submits zeros."""
    total = [0] * length
    for sender in sorted(incoming_masks):
        total = _vector_add(total, incoming_masks[sender])
    return _checked(total, "mask sum")


@dataclass
class SmpcClientSession:
    """
    One client's view of an sMPC cycle.

    The out-of-band mask exchange is modelled by ``deliver``: each session
    hands its outgoing masks to the recipients' sessions.
    """

    client_id: ClientId
    participants: List[ClientId]
    gradient: List[float]
    scale: int = DEFAULT_SMPC_SCALE
    bound: int = DEFAULT_MASK_BOUND
    seed: Optional[bytes] = None
    outgoing: Dict[ClientId, List[int]] = field(default_factory=dict)
    incoming: Dict[ClientId, List[int]] = field(default_factory=dict)

    def sample_masks(self) -> Dict[ClientId, List[int]]:
        self.outgoing = generate_pairwise_masks(
            self.client_id, self.participants, len(self.gradient), self.bound, self.seed
        )
        return self.outgoing

    def receive_mask(self, sender: ClientId, mask: Sequence[int]) -> None:
        if len(mask) != len(self.gradient):
            raise LengthMismatch(f"Mask from {sender} has length {len(mask)}, expected {len(self.gradient)}")
        self.incoming[sender] = list(mask)

    def masked_share(self) -> List[int]:
        return compute_masked_share(self.gradient, self.outgoing, self.scale)

    def mask_sum(self) -> List[int]:
        return compute_mask_sum(self.incoming, len(self.gradient))


def deliver(sessions: Mapping[ClientId, SmpcClientSession]) -> None:
    """Route every outgoing mask to its recipient session."""
    for sender, session in sessions.items():
        for recipient, mask in session.outgoing.items():
            target = sessions.get(recipient)
            if target is not None:
                target.receive_mask(sender, mask)
