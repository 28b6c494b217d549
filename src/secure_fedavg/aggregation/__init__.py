from .base import AggregationOutcome
from .masking import (
    DEFAULT_MASK_BOUND,
    SmpcClientSession,
    compute_mask_sum,
    compute_masked_share,
    deliver,
    generate_pairwise_masks,
)
from .plain import PlainAggregator
from .smpc import SmpcAggregator, combine_shares

__all__ = [
    "AggregationOutcome",
    "DEFAULT_MASK_BOUND",
    "SmpcClientSession",
    "compute_mask_sum",
    "compute_masked_share",
    "deliver",
    "generate_pairwise_masks",
    "PlainAggregator",
    "SmpcAggregator",
    "combine_shares",
]
